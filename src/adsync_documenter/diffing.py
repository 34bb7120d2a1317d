"""Structural diff of pilot and production snapshots.

Every row of every table is classified as Unchanged, Added, Deleted or
Modified. Tables are processed parents first so that an Added (Deleted)
parent row turns its whole subtree Added (Deleted).
"""

import logging
from dataclasses import dataclass, field
from enum import Enum

from .models import Column, Relation, Snapshot, Table
from .print_plan import PrintPlan
from .sorting import sort_rows

logger = logging.getLogger(__name__)


class ChangeKind(str, Enum):
    """Row classification; the value doubles as the CSS class."""

    UNCHANGED = "Unchanged"
    ADDED = "Added"
    DELETED = "Deleted"
    MODIFIED = "Modified"


class Visibility(str, Enum):
    """Row collapsibility as rendered into the ``<tr>`` class."""

    UNSET = ""
    CAN_HIDE = "CanHide"
    NO_HIDE = "NoHide"


@dataclass
class DiffRow:
    """A classified row.

    Attributes:
        kind: Change classification
        values: Current values; production values for Deleted rows
        old_values: Production values for Modified and Deleted rows
        visibility: Collapsibility assigned by the visibility resolver
        placeholder: Row stands in for an empty section
    """

    kind: ChangeKind
    values: tuple
    old_values: tuple | None = None
    visibility: Visibility = Visibility.UNSET
    placeholder: bool = False

    @property
    def changed(self) -> bool:
        return self.kind is not ChangeKind.UNCHANGED

    def changed_columns(self) -> list[int]:
        """Positions whose old and new values differ (Modified rows only)."""
        if self.kind is not ChangeKind.MODIFIED or self.old_values is None:
            return []
        return [i for i, (old, new) in enumerate(zip(self.old_values, self.values)) if old != new]


@dataclass
class DiffTable:
    """Classified rows of one table."""

    name: str
    columns: list[Column]
    rows: list[DiffRow] = field(default_factory=list)
    can_hide: bool = True

    @property
    def key_indices(self) -> list[int]:
        return [i for i, c in enumerate(self.columns) if c.primary_key]

    def key_of(self, row: DiffRow) -> tuple:
        return tuple(row.values[i] for i in self.key_indices)

    def find(self, key: tuple) -> DiffRow | None:
        key = tuple(key)
        for row in self.rows:
            if self.key_of(row) == key:
                return row
        return None

    def counts(self) -> dict[str, int]:
        """Number of rows per change kind."""
        result = {kind.value: 0 for kind in ChangeKind}
        for row in self.rows:
            result[row.kind.value] += 1
        return result


@dataclass
class DiffSet:
    """Classified tables of one report section, with the snapshot relations.

    Attributes:
        name: Section name
        tables: Diff tables in snapshot order
        relations: Parent -> child links copied from the snapshots
        can_hide: Whole set may be collapsed; set by the visibility resolver
        resolved: Row visibility has been assigned
        diagnostics: Data problems found while diffing
    """

    name: str
    tables: dict[str, DiffTable] = field(default_factory=dict)
    relations: list[Relation] = field(default_factory=list)
    can_hide: bool = True
    resolved: bool = False
    diagnostics: list[str] = field(default_factory=list)

    def table_at(self, index: int) -> DiffTable:
        return list(self.tables.values())[index]

    def table_index(self, name: str) -> int:
        return list(self.tables).index(name)

    def root_tables(self) -> list[DiffTable]:
        children = {r.child for r in self.relations}
        return [t for name, t in self.tables.items() if name not in children]

    def child_relations(self, table: str) -> list[Relation]:
        return [r for r in self.relations if r.parent == table]

    def children(self, relation: Relation, row: DiffRow) -> list[DiffRow]:
        """Rows of ``relation.child`` linked to ``row`` of ``relation.parent``."""
        parent = self.tables[relation.parent]
        child = self.tables[relation.child]
        parent_positions = [_position(parent.columns, c) for c in relation.parent_columns]
        child_positions = [_position(child.columns, c) for c in relation.child_columns]
        link = tuple(row.values[i] for i in parent_positions)
        return [r for r in child.rows if tuple(r.values[i] for i in child_positions) == link]

    def all_rows(self):
        for table in self.tables.values():
            yield from table.rows

    @property
    def changed(self) -> bool:
        return any(row.changed for row in self.all_rows())


def _position(columns: list[Column], name: str) -> int:
    for i, column in enumerate(columns):
        if column.name == name:
            return i
    raise KeyError(name)


def _index_rows(table: Table, side: str, diagnostics: list[str]) -> dict[tuple, tuple]:
    index: dict[tuple, tuple] = {}
    for row in table.rows:
        key = table.key_of(row)
        if key in index:
            message = f"{side} table '{table.name}': dropping duplicate row for key {key!r}"
            logger.warning(message)
            diagnostics.append(message)
            continue
        index[key] = row
    return index


def diff_snapshots(
    pilot: Snapshot, production: Snapshot, print_plan: PrintPlan | None = None
) -> DiffSet:
    """Classify every row of two same-schema snapshots.

    Args:
        pilot: Proposed configuration
        production: Configuration currently in effect
        print_plan: Optional plan supplying extra change-ignored columns and
            the row sort order

    Returns:
        DiffSet with one DiffTable per snapshot table

    Raises:
        SchemaMismatchError: If the snapshots differ in tables, columns or
            relations
    """
    pilot.check_same_schema(production)

    diffset = DiffSet(name=pilot.name or production.name, relations=list(pilot.relations))
    for name, table in pilot.tables.items():
        diffset.tables[name] = DiffTable(name, list(table.columns))
    for side in (pilot, production):
        for table in side.tables.values():
            diffset.diagnostics.extend(f"{side.name}: {message}" for message in table.diagnostics)

    for name in pilot.processing_order():
        table_index = pilot.table_index(name)
        ignored = {i for i, c in enumerate(pilot[name].columns) if c.change_ignored}
        if print_plan is not None:
            ignored |= print_plan.change_ignored_columns(table_index)

        rows = _diff_table(
            pilot[name],
            production[name],
            ignored,
            _inherited_kinds(diffset, pilot, name),
            diffset.diagnostics,
        )

        if print_plan is not None:
            rows = sort_rows(rows, print_plan.sort_columns(table_index), lambda r: r.values)

        diff_table = diffset.tables[name]
        diff_table.rows = rows
        diff_table.can_hide = not any(row.changed for row in rows)

    logger.debug(
        f"Diffed '{diffset.name}': "
        + ", ".join(f"{t.name}={t.counts()}" for t in diffset.tables.values())
    )
    return diffset


def _inherited_kinds(diffset: DiffSet, snapshot: Snapshot, table: str):
    """Map of child link values -> Added/Deleted forced by the parent row."""
    relation = snapshot.parent_relation(table)
    if relation is None:
        return None

    parent = diffset.tables[relation.parent]
    positions = [_position(parent.columns, c) for c in relation.parent_columns]
    forced = {}
    for row in parent.rows:
        if row.kind in (ChangeKind.ADDED, ChangeKind.DELETED):
            forced[tuple(row.values[i] for i in positions)] = row.kind

    child_positions = [_position(snapshot[table].columns, c) for c in relation.child_columns]
    return forced, child_positions


def _diff_table(
    pilot: Table,
    production: Table,
    ignored: set[int],
    inherited,
    diagnostics: list[str],
) -> list[DiffRow]:
    pilot_rows = _index_rows(pilot, "pilot", diagnostics)
    production_rows = _index_rows(production, "production", diagnostics)
    compared = [i for i in range(len(pilot.columns)) if i not in ignored]

    def forced_kind(values: tuple) -> ChangeKind | None:
        if inherited is None:
            return None
        forced, positions = inherited
        return forced.get(tuple(values[i] for i in positions))

    pilot_has_rows = _has_real_rows(pilot, pilot_rows)
    production_has_rows = _has_real_rows(production, production_rows)

    rows: list[DiffRow] = []
    for key, new in pilot_rows.items():
        old = production_rows.get(key)
        placeholder = pilot.is_placeholder(key)
        forced = forced_kind(new)

        if placeholder and old is None and production_has_rows:
            continue
        if forced is ChangeKind.DELETED:
            # Pilot child of a parent that only exists in production
            continue
        if forced is ChangeKind.ADDED or old is None:
            rows.append(DiffRow(ChangeKind.ADDED, new, placeholder=placeholder))
            continue

        merged = tuple(old[i] if i in ignored else new[i] for i in range(len(new)))
        if all(new[i] == old[i] for i in compared):
            rows.append(DiffRow(ChangeKind.UNCHANGED, merged, placeholder=placeholder))
        else:
            rows.append(DiffRow(ChangeKind.MODIFIED, merged, old_values=old))

    for key, old in production_rows.items():
        forced = forced_kind(old)
        if key in pilot_rows and forced is not ChangeKind.DELETED:
            continue
        if forced is ChangeKind.ADDED:
            continue
        placeholder = production.is_placeholder(key)
        if placeholder and key not in pilot_rows and pilot_has_rows:
            continue
        rows.append(DiffRow(ChangeKind.DELETED, old, old_values=old, placeholder=placeholder))

    return rows


def _has_real_rows(table: Table, rows: dict[tuple, tuple]) -> bool:
    return any(not table.is_placeholder(key) for key in rows)
