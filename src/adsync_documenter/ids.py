"""Stable identifier generation for report bookmarks and temporary files."""

import hashlib
import re


def bookmark_code(text: str, section_guid: str | None = None) -> str:
    """Generate the anchor name for a bookmark.

    The code only depends on the upper-cased section guid and text, so the
    cell that defines a bookmark and every cell that jumps to it agree on the
    anchor without sharing state.

    Args:
        text: Bookmark text (e.g. a sync rule name)
        section_guid: Identifier of the owning section, if any

    Returns:
        16-char Blake2b hex digest, safe for HTML anchor names
    """
    seed = f"{section_guid or ''}{text or ''}".upper()
    return hashlib.blake2b(seed.encode("utf-8"), digest_size=8).hexdigest()


def report_file_stem(pilot: str, production: str) -> str:
    """Build the report file stem from the two relative config paths.

    Path separators are replaced with underscores so nested config folders
    produce a flat file name.

    Examples:
        >>> report_file_stem("Contoso/Pilot", "Contoso/Production")
        'Contoso_Pilot_To_Contoso_Production'
    """
    return _flatten(pilot) + "_To_" + _flatten(production)


def _flatten(path: str) -> str:
    return re.sub(r"[\\/]+", "_", path.strip("\\/"))
