"""Exception types raised by the documenter."""


class DocumenterError(Exception):
    """Base class for documenter errors."""


class DuplicateKeyError(DocumenterError):
    """A row with the same primary key already exists in the table."""

    def __init__(self, table: str, key: tuple):
        super().__init__(f"Duplicate primary key {key!r} in table '{table}'")
        self.table = table
        self.key = key


class SchemaMismatchError(DocumenterError):
    """Pilot and production snapshots do not share one schema."""


class PrintPlanMismatchError(DocumenterError):
    """A print plan does not match the tables it is applied to."""


class ConfigLoadError(DocumenterError):
    """A configuration export file could not be parsed."""


class ConfigDirectoryNotFoundError(DocumenterError, FileNotFoundError):
    """A pilot or production configuration directory does not exist."""
