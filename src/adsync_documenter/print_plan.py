"""Declarative rendering metadata for report section tables.

A print plan tells the renderer, per table and column, whether the column is
shown, how rows are sorted and which cells are bookmark anchors or links to
bookmarks. Header cells describe the (possibly multi-row) ``<thead>``.
"""

import logging
from dataclasses import asdict, dataclass
from typing import Any

from .errors import PrintPlanMismatchError
from .models import Column, Snapshot

logger = logging.getLogger(__name__)

MAX_SORT_COLUMNS = 10


@dataclass(frozen=True)
class PrintPlanEntry:
    """Rendering metadata for one column of one table.

    Attributes:
        table_index: Position of the table in its snapshot
        column_index: Position of the column in its table
        hidden: Column is used for sorting or linking but not shown
        sort_order: Rank in the multi-key sort, -1 if not sorted
        bookmark_index: Column holding the section guid of the anchor this
            cell defines, -1 if the cell is not an anchor
        jump_to_bookmark_index: Column holding the section guid of the anchor
            this cell links to, -1 if the cell is not a link
        change_ignored: Value changes never mark the row Modified
    """

    table_index: int
    column_index: int
    hidden: bool = False
    sort_order: int = -1
    bookmark_index: int = -1
    jump_to_bookmark_index: int = -1
    change_ignored: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PrintPlanEntry":
        """Create from dictionary loaded from JSON."""
        return cls(**data)


@dataclass(frozen=True)
class HeaderCell:
    """One ``<th>`` of a table header.

    Attributes:
        row_index: Header row the cell belongs to
        column_index: Position within the header row
        text: Header text
        row_span: Number of header rows covered
        col_span: Number of columns covered
        width: Column width in percent, 0 for group cells
    """

    row_index: int
    column_index: int
    text: str
    row_span: int = 1
    col_span: int = 1
    width: int = 0


class PrintPlan:
    """Per-column rendering metadata for every table of a section."""

    def __init__(self, entries: list[PrintPlanEntry]):
        self.entries = list(entries)
        self._by_position = {(e.table_index, e.column_index): e for e in self.entries}
        if len(self._by_position) != len(self.entries):
            raise PrintPlanMismatchError("Print plan has duplicate (table, column) entries")

    def __len__(self) -> int:
        return len(self.entries)

    @classmethod
    def default_for(cls, snapshot: Snapshot) -> "PrintPlan":
        """All columns visible, rows sorted by primary key."""
        entries = []
        for t, table in enumerate(snapshot.tables.values()):
            keys = table.key_indices
            for c in range(len(table.columns)):
                sort_order = keys.index(c) if c in keys else -1
                entries.append(PrintPlanEntry(t, c, sort_order=sort_order))
        return cls(entries)

    @property
    def table_count(self) -> int:
        return 1 + max((e.table_index for e in self.entries), default=-1)

    def entry(self, table_index: int, column_index: int) -> PrintPlanEntry | None:
        return self._by_position.get((table_index, column_index))

    def table_entries(self, table_index: int) -> list[PrintPlanEntry]:
        return sorted(
            (e for e in self.entries if e.table_index == table_index),
            key=lambda e: e.column_index,
        )

    def visible_columns(self, table_index: int) -> list[int]:
        return [e.column_index for e in self.table_entries(table_index) if not e.hidden]

    def visible_count(self) -> int:
        """Total number of rendered columns across all tables."""
        return sum(1 for e in self.entries if not e.hidden)

    def visible_before(self, table_index: int) -> int:
        """Number of rendered columns belonging to tables before ``table_index``."""
        return sum(1 for e in self.entries if not e.hidden and e.table_index < table_index)

    def sort_columns(self, table_index: int) -> list[int]:
        """Column positions to sort by, most significant first."""
        ranked = sorted(
            (e for e in self.table_entries(table_index) if e.sort_order >= 0),
            key=lambda e: e.sort_order,
        )
        if len(ranked) > MAX_SORT_COLUMNS:
            logger.warning(
                f"Table {table_index} has {len(ranked)} sort columns, "
                f"only the first {MAX_SORT_COLUMNS} are used"
            )
        return [e.column_index for e in ranked[:MAX_SORT_COLUMNS]]

    def change_ignored_columns(self, table_index: int) -> set[int]:
        return {e.column_index for e in self.table_entries(table_index) if e.change_ignored}

    def validate(self, dataset) -> None:
        """Check that the plan matches the tables it is applied to.

        Args:
            dataset: Snapshot or DiffSet (anything with a ``tables`` mapping
                of objects exposing ``columns``)

        Raises:
            PrintPlanMismatchError: If a table's entry count differs from its
                column count, or an entry references a missing table/column
        """
        tables = list(dataset.tables.values())
        if self.table_count > len(tables):
            raise PrintPlanMismatchError(
                f"Print plan references table {self.table_count - 1}, "
                f"but only {len(tables)} tables exist"
            )

        for t, table in enumerate(tables):
            entries = self.table_entries(t)
            column_count = len(table.columns)
            if len(entries) != column_count:
                raise PrintPlanMismatchError(
                    f"Print plan has {len(entries)} entries for table '{table.name}' "
                    f"with {column_count} columns"
                )
            for e in entries:
                for position in (e.column_index, e.bookmark_index, e.jump_to_bookmark_index):
                    if position >= column_count or position < -1:
                        raise PrintPlanMismatchError(
                            f"Print plan entry ({e.table_index}, {e.column_index}) references "
                            f"column {position} of table '{table.name}' "
                            f"which has {column_count} columns"
                        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {"entries": [e.to_dict() for e in self.entries]}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PrintPlan":
        """Create from dictionary loaded from JSON."""
        return cls([PrintPlanEntry.from_dict(e) for e in data.get("entries", [])])


def simple_header(columns: list[tuple[str, int]], title: str | None = None) -> list[HeaderCell]:
    """Build the header of a single-table settings section.

    Args:
        columns: (column text, width percent) in display order
        title: Optional group title spanning all columns on a first row

    Returns:
        Header cells
    """
    cells = []
    row = 0
    if title:
        cells.append(HeaderCell(0, 0, title, col_span=len(columns)))
        row = 1
    for i, (text, width) in enumerate(columns):
        cells.append(HeaderCell(row, i, text, width=width))
    return cells


def simple_settings_snapshot(
    column_count: int, key_index: int = 0, name: str = "SimpleSettings"
) -> Snapshot:
    """Empty one-table snapshot with ``Column1..N`` text columns and one key column."""
    snapshot = Snapshot(name=name)
    snapshot.add_table(
        name,
        [Column(f"Column{i + 1}", primary_key=(i == key_index)) for i in range(column_count)],
    )
    return snapshot


def simple_settings_plan(column_count: int, key_index: int = 0) -> PrintPlan:
    """All columns visible, rows sorted by the key column."""
    return PrintPlan(
        [
            PrintPlanEntry(0, i, sort_order=0 if i == key_index else -1)
            for i in range(column_count)
        ]
    )


def simple_ordered_settings_snapshot(
    column_count: int,
    key_count: int = 2,
    alphabetic: bool = False,
    name: str = "SimpleOrderedSettings",
) -> Snapshot:
    """Empty one-table snapshot whose first column is a display-order number.

    ``Column1`` holds the display order (an ``int`` unless ``alphabetic``),
    and the first ``key_count`` columns form the primary key.
    """
    snapshot = Snapshot(name=name)
    columns = []
    for i in range(column_count):
        value_type = int if i == 0 and not alphabetic else str
        columns.append(Column(f"Column{i + 1}", value_type=value_type, primary_key=i < key_count))
    snapshot.add_table(name, columns)
    return snapshot


def simple_ordered_settings_plan(column_count: int) -> PrintPlan:
    """Display-order column hidden and used as the only sort key."""
    entries = [PrintPlanEntry(0, 0, hidden=True, sort_order=0)]
    entries += [PrintPlanEntry(0, i) for i in range(1, column_count)]
    return PrintPlan(entries)
