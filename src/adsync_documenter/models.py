"""Relational table model for configuration snapshots.

A snapshot is one side (pilot or production) of a report section: a set of
typed, primary-keyed tables plus the parent -> child relations between them.
Section builders fill two snapshots with the same schema and hand them to
the diff engine.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Iterator

from .errors import DuplicateKeyError, SchemaMismatchError

logger = logging.getLogger(__name__)

PLACEHOLDER_TEXT = "-"


@dataclass(frozen=True)
class Column:
    """A typed table column.

    Attributes:
        name: Column name (unique within its table)
        value_type: Declared value type, ``str`` or ``int``
        primary_key: Whether the column is part of the row identity
        change_ignored: Value differences never mark the row Modified
    """

    name: str
    value_type: type = str
    primary_key: bool = False
    change_ignored: bool = False

    def coerce(self, value: Any) -> Any:
        """Convert a raw value to the column type (None stays None)."""
        if value is None:
            return None
        if self.value_type is int:
            return int(value)
        return str(value)


@dataclass(frozen=True)
class Relation:
    """Parent -> child link between two tables of one snapshot."""

    parent: str
    parent_columns: tuple[str, ...]
    child: str
    child_columns: tuple[str, ...]


class Table:
    """Named, ordered collection of rows with a unique primary key."""

    def __init__(self, name: str, columns: list[Column]):
        if not columns:
            raise ValueError(f"Table '{name}' needs at least one column")
        names = [c.name for c in columns]
        if len(set(names)) != len(names):
            raise ValueError(f"Table '{name}' has duplicate column names: {names}")
        if not any(c.primary_key for c in columns):
            raise ValueError(f"Table '{name}' has no primary key column")

        self.name = name
        self.columns = list(columns)
        self.rows: list[tuple] = []
        self.placeholders: set[tuple] = set()
        self.diagnostics: list[str] = []
        self._index: dict[tuple, int] = {}

    def __len__(self) -> int:
        return len(self.rows)

    def __iter__(self) -> Iterator[tuple]:
        return iter(self.rows)

    def __repr__(self) -> str:
        return f"Table({self.name!r}, columns={self.column_names}, rows={len(self.rows)})"

    @property
    def column_names(self) -> list[str]:
        return [c.name for c in self.columns]

    @property
    def key_indices(self) -> list[int]:
        """Positions of the primary-key columns, in column order."""
        return [i for i, c in enumerate(self.columns) if c.primary_key]

    def column_index(self, name: str) -> int:
        """Position of a column by name.

        Raises:
            KeyError: If the column does not exist
        """
        for i, column in enumerate(self.columns):
            if column.name == name:
                return i
        raise KeyError(f"Table '{self.name}' has no column '{name}'")

    def key_of(self, row: tuple) -> tuple:
        """Primary-key tuple of a row."""
        return tuple(row[i] for i in self.key_indices)

    def get(self, key: tuple) -> tuple | None:
        position = self._index.get(tuple(key))
        return None if position is None else self.rows[position]

    def is_placeholder(self, key: tuple) -> bool:
        return tuple(key) in self.placeholders

    def _build_row(self, values) -> tuple:
        if isinstance(values, dict):
            unknown = set(values) - set(self.column_names)
            if unknown:
                raise KeyError(f"Table '{self.name}' has no columns {sorted(unknown)}")
            values = [values.get(c.name) for c in self.columns]
        values = list(values)
        if len(values) != len(self.columns):
            raise ValueError(
                f"Table '{self.name}' expects {len(self.columns)} values, got {len(values)}"
            )
        return tuple(c.coerce(v) for c, v in zip(self.columns, values))

    def add_row(self, values, placeholder: bool = False) -> tuple:
        """Append a row.

        Args:
            values: Sequence aligned with the columns, or a column-name mapping
            placeholder: Row stands in for an empty section

        Returns:
            The stored row tuple

        Raises:
            DuplicateKeyError: If the primary key is already present
            ValueError: If the value count does not match the columns
        """
        row = self._build_row(values)
        key = self.key_of(row)
        if key in self._index:
            raise DuplicateKeyError(self.name, key)
        self._index[key] = len(self.rows)
        self.rows.append(row)
        if placeholder:
            self.placeholders.add(key)
        return row

    def add_row_if_absent(
        self, values, log: logging.Logger | logging.LoggerAdapter | None = None
    ) -> bool:
        """Append a row unless its key is already present.

        Adding the same row twice is a no-op. A different row under an
        existing key is dropped, logged at WARNING and kept in
        ``diagnostics``.

        Args:
            values: Sequence aligned with the columns, or a column-name mapping
            log: Logger carrying the caller's context

        Returns:
            True if the row was added
        """
        row = self._build_row(values)
        key = self.key_of(row)
        existing = self.get(key)
        if existing is None:
            self.add_row(row)
            return True
        if existing != row:
            message = (
                f"Table '{self.name}': dropping row {row!r}, "
                f"key {key!r} already holds {existing!r}"
            )
            (log or logger).warning(message)
            self.diagnostics.append(message)
        return False

    def add_placeholder_row(self) -> tuple:
        """Append the "-" row used when a section has nothing to show."""
        values = [PLACEHOLDER_TEXT if c.value_type is str else 0 for c in self.columns]
        return self.add_row(values, placeholder=True)

    def schema(self) -> tuple:
        """Hashable description of the table's columns."""
        return (
            self.name,
            tuple((c.name, c.value_type, c.primary_key, c.change_ignored) for c in self.columns),
        )


@dataclass
class Snapshot:
    """One side of a report section: tables plus relations.

    Attributes:
        name: Free-form label (e.g. "pilot" or "production")
        tables: Tables in declaration order; the order defines table indices
        relations: Declared parent -> child links
    """

    name: str = ""
    tables: dict[str, Table] = field(default_factory=dict)
    relations: list[Relation] = field(default_factory=list)

    def add_table(self, name: str, columns: list[Column]) -> Table:
        """Create and register a new empty table."""
        if name in self.tables:
            raise ValueError(f"Snapshot already has a table named '{name}'")
        table = Table(name, columns)
        self.tables[name] = table
        return table

    def __getitem__(self, name: str) -> Table:
        return self.tables[name]

    def table_at(self, index: int) -> Table:
        return list(self.tables.values())[index]

    def table_index(self, name: str) -> int:
        return list(self.tables).index(name)

    def declare_relation(
        self,
        parent: str,
        parent_columns: list[str],
        child: str,
        child_columns: list[str],
    ) -> Relation:
        """Register a parent -> child link between two tables.

        Raises:
            KeyError: If a table or column does not exist
            ValueError: If the column lists differ in length or the child
                already has a parent
        """
        parent_table = self.tables[parent]
        child_table = self.tables[child]
        if len(parent_columns) != len(child_columns) or not parent_columns:
            raise ValueError(
                f"Relation {parent} -> {child} needs matching column lists, "
                f"got {parent_columns} and {child_columns}"
            )
        for name in parent_columns:
            parent_table.column_index(name)
        for name in child_columns:
            child_table.column_index(name)
        if self.parent_relation(child) is not None:
            raise ValueError(f"Table '{child}' already has a parent relation")

        relation = Relation(parent, tuple(parent_columns), child, tuple(child_columns))
        self.relations.append(relation)
        return relation

    def parent_relation(self, table: str) -> Relation | None:
        for relation in self.relations:
            if relation.child == table:
                return relation
        return None

    def child_relations(self, table: str) -> list[Relation]:
        return [r for r in self.relations if r.parent == table]

    def processing_order(self) -> list[str]:
        """Table names with every parent ahead of its children."""
        ordered: list[str] = []
        pending = list(self.tables)
        while pending:
            progressed = False
            for name in list(pending):
                relation = self.parent_relation(name)
                if relation is None or relation.parent in ordered:
                    ordered.append(name)
                    pending.remove(name)
                    progressed = True
            if not progressed:
                raise ValueError(f"Relations form a cycle between tables {pending}")
        return ordered

    def schema(self) -> tuple:
        """Hashable description of tables and relations."""
        return (
            tuple(t.schema() for t in self.tables.values()),
            tuple(self.relations),
        )

    def clone_schema(self, name: str = "") -> "Snapshot":
        """Create an empty snapshot with the same tables and relations."""
        clone = Snapshot(name=name)
        for table in self.tables.values():
            clone.add_table(table.name, table.columns)
        clone.relations = list(self.relations)
        return clone

    def check_same_schema(self, other: "Snapshot") -> None:
        """Raise SchemaMismatchError unless ``other`` has the same schema."""
        if self.schema() != other.schema():
            raise SchemaMismatchError(
                f"Snapshots '{self.name}' and '{other.name}' have different schemas"
            )
