"""Row and section collapsibility for the "only show changes" view.

A root row can be hidden iff neither it nor any row of its subtree changed.
A section can be collapsed iff every table of every diff set in it can hide.
Sections may layer a policy on top of this aggregate (see
:func:`force_no_hide_when_changed` and :func:`default_rule_policy`).
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable

from .diffing import DiffRow, DiffSet, DiffTable, Visibility

logger = logging.getLogger(__name__)

CAN_HIDE = Visibility.CAN_HIDE.value

VisibilityPolicy = Callable[[list[DiffSet]], None]


@dataclass
class SectionVisibility:
    """Resolved collapsibility of a report section.

    Attributes:
        can_hide: The whole section may be collapsed
        tables: Per diff set, table name -> can_hide
    """

    can_hide: bool
    tables: list[dict[str, bool]] = field(default_factory=list)

    @property
    def css_class(self) -> str:
        return CAN_HIDE if self.can_hide else ""


def _subtree_changed(diffset: DiffSet, table: DiffTable, row: DiffRow) -> bool:
    if row.changed:
        return True
    for relation in diffset.child_relations(table.name):
        child_table = diffset.tables[relation.child]
        for child in diffset.children(relation, row):
            if _subtree_changed(diffset, child_table, child):
                return True
    return False


def _mark(diffset: DiffSet, table: DiffTable, row: DiffRow, parent_status: Visibility) -> None:
    if _subtree_changed(diffset, table, row):
        row.visibility = Visibility.NO_HIDE
    else:
        row.visibility = parent_status

    for relation in diffset.child_relations(table.name):
        child_table = diffset.tables[relation.child]
        for child in diffset.children(relation, row):
            _mark(diffset, child_table, child, row.visibility)


def mark_rows(diffset: DiffSet) -> None:
    """Assign row visibility and the set-level ``can_hide`` flag."""
    for table in diffset.root_tables():
        for row in table.rows:
            status = Visibility.CAN_HIDE
            _mark(diffset, table, row, status)

    diffset.can_hide = all(t.can_hide for t in diffset.tables.values())
    diffset.resolved = True


def resolve(
    diffsets: DiffSet | Iterable[DiffSet], policies: Iterable[VisibilityPolicy] = ()
) -> SectionVisibility:
    """Resolve row and section visibility for one report section.

    Args:
        diffsets: The section's diff set(s)
        policies: Section-specific overrides applied in order after the
            generic aggregate

    Returns:
        SectionVisibility; a section with no diff sets never collapses
    """
    if isinstance(diffsets, DiffSet):
        diffsets = [diffsets]
    diffsets = list(diffsets)

    for diffset in diffsets:
        if not diffset.resolved:
            mark_rows(diffset)

    for policy in policies:
        policy(diffsets)

    return SectionVisibility(
        can_hide=section_can_hide(diffsets),
        tables=[{name: t.can_hide for name, t in d.tables.items()} for d in diffsets],
    )


def section_can_hide(diffsets: list[DiffSet]) -> bool:
    return bool(diffsets) and all(d.can_hide for d in diffsets)


def css_visibility_class(diffsets: list[DiffSet]) -> str:
    """``"CanHide"`` if the section may be collapsed, else ``""``."""
    return CAN_HIDE if section_can_hide(diffsets) else ""


def force_no_hide_when_changed(diffsets: list[DiffSet]) -> None:
    """Show everything in the section as soon as anything in it changed."""
    if section_can_hide(diffsets):
        return
    for diffset in diffsets:
        diffset.can_hide = False
        for table in diffset.tables.values():
            table.can_hide = False
            for row in table.rows:
                row.visibility = Visibility.NO_HIDE


def default_rule_policy(
    disregarded: Iterable[str],
    protected: Iterable[str] = (),
    setting_column: int = 1,
) -> VisibilityPolicy:
    """Build the policy for out-of-box entities.

    Changes confined to settings rows named in ``disregarded`` (for example
    the absolute precedence of a default sync rule) keep the section
    collapsible, unless one of the ``protected`` settings also changed.

    Args:
        disregarded: Setting names whose changes do not prevent collapsing
        protected: Setting names that always count as a change
        setting_column: Position of the setting-name column in the settings
            table
    """
    disregarded = set(disregarded)
    protected = set(protected)

    def policy(diffsets: list[DiffSet]) -> None:
        ignorable: list[tuple[DiffTable, DiffRow]] = []
        for diffset in diffsets:
            for table in diffset.tables.values():
                for row in table.rows:
                    if not row.changed:
                        continue
                    setting = (
                        row.values[setting_column] if len(row.values) > setting_column else None
                    )
                    if setting in protected or setting not in disregarded:
                        return
                    ignorable.append((table, row))

        if not ignorable:
            return

        changed = sorted({row.values[setting_column] for _, row in ignorable})
        logger.debug(f"Only disregarded settings changed ({changed}), section stays collapsible")
        for diffset in diffsets:
            for table in diffset.tables.values():
                table.can_hide = True
                for row in table.rows:
                    row.visibility = Visibility.CAN_HIDE
            diffset.can_hide = True

    return policy
