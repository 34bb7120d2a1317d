"""Tests for the structural snapshot diff."""

import pytest

from adsync_documenter.diffing import ChangeKind, diff_snapshots
from adsync_documenter.errors import SchemaMismatchError
from adsync_documenter.models import Column, Snapshot
from adsync_documenter.print_plan import PrintPlan, PrintPlanEntry


@pytest.fixture
def schema():
    """Empty rules/flows schema with a parent -> child relation."""
    snapshot = Snapshot(name="rules")
    snapshot.add_table(
        "Rules",
        [
            Column("Name", primary_key=True),
            Column("Precedence", int),
            Column("Id", change_ignored=True),
        ],
    )
    snapshot.add_table(
        "Flows",
        [
            Column("Rule", primary_key=True),
            Column("Target", primary_key=True),
            Column("Source"),
        ],
    )
    snapshot.declare_relation("Rules", ["Name"], "Flows", ["Rule"])
    return snapshot


def _kinds(diff_table):
    return {diff_table.key_of(row): row.kind for row in diff_table.rows}


def test_identical_snapshots_are_unchanged(schema):
    """Test that equal rows classify as Unchanged and the set reports no change."""
    pilot = schema.clone_schema("pilot")
    production = schema.clone_schema("production")
    for side in (pilot, production):
        side["Rules"].add_row(["In from AD", 100, "{1}"])
        side["Flows"].add_row(["In from AD", "displayName", "displayName"])

    diffset = diff_snapshots(pilot, production)

    assert not diffset.changed
    assert diffset.tables["Rules"].can_hide
    assert diffset.tables["Flows"].counts()["Unchanged"] == 1


def test_added_deleted_and_modified_rows(schema):
    """Test the four classifications across both tables."""
    pilot = schema.clone_schema("pilot")
    production = schema.clone_schema("production")
    pilot["Rules"].add_row(["A", 100, "{P-A}"])
    pilot["Rules"].add_row(["B", 5, "{P-B}"])
    pilot["Flows"].add_row(["A", "mail", "mail"])
    pilot["Flows"].add_row(["B", "cn", "sAMAccountName"])
    production["Rules"].add_row(["A", 200, "{R-A}"])
    production["Rules"].add_row(["C", 1, "{R-C}"])
    production["Flows"].add_row(["A", "mail", "mail"])
    production["Flows"].add_row(["C", "sn", "sn"])

    diffset = diff_snapshots(pilot, production)

    assert _kinds(diffset.tables["Rules"]) == {
        ("A",): ChangeKind.MODIFIED,
        ("B",): ChangeKind.ADDED,
        ("C",): ChangeKind.DELETED,
    }
    assert _kinds(diffset.tables["Flows"]) == {
        ("A", "mail"): ChangeKind.UNCHANGED,
        ("B", "cn"): ChangeKind.ADDED,
        ("C", "sn"): ChangeKind.DELETED,
    }
    assert not diffset.tables["Rules"].can_hide


def test_modified_row_keeps_production_values(schema):
    """Test that Modified rows carry both sides and report the changed columns."""
    pilot = schema.clone_schema("pilot")
    production = schema.clone_schema("production")
    pilot["Rules"].add_row(["A", 101, "{P}"])
    production["Rules"].add_row(["A", 100, "{R}"])

    row = diff_snapshots(pilot, production).tables["Rules"].find(("A",))

    assert row.kind is ChangeKind.MODIFIED
    assert row.old_values == ("A", 100, "{R}")
    assert row.changed_columns() == [1]


def test_change_ignored_column_keeps_production_value(schema):
    """Test that differences in change-ignored columns do not modify a row."""
    pilot = schema.clone_schema("pilot")
    production = schema.clone_schema("production")
    pilot["Rules"].add_row(["A", 100, "{pilot-id}"])
    production["Rules"].add_row(["A", 100, "{production-id}"])

    row = diff_snapshots(pilot, production).tables["Rules"].find(("A",))

    assert row.kind is ChangeKind.UNCHANGED
    assert row.values[2] == "{production-id}"


def test_plan_change_ignored_column(schema):
    """Test that a print plan can mark extra columns as change-ignored."""
    pilot = schema.clone_schema("pilot")
    production = schema.clone_schema("production")
    pilot["Rules"].add_row(["A", 1, "{1}"])
    production["Rules"].add_row(["A", 2, "{1}"])
    plan = PrintPlan.default_for(schema)
    entries = [
        PrintPlanEntry(0, 1, change_ignored=True) if (e.table_index, e.column_index) == (0, 1)
        else e
        for e in plan.entries
    ]

    diffset = diff_snapshots(pilot, production, PrintPlan(entries))

    assert diffset.tables["Rules"].find(("A",)).kind is ChangeKind.UNCHANGED


def test_added_parent_forces_children_added(schema):
    """Test that children of a pilot-only parent are Added even if production has them."""
    pilot = schema.clone_schema("pilot")
    production = schema.clone_schema("production")
    pilot["Rules"].add_row(["New", 1, "{1}"])
    pilot["Flows"].add_row(["New", "mail", "mail"])
    production["Flows"].add_row(["New", "mail", "mail"])

    diffset = diff_snapshots(pilot, production)

    assert _kinds(diffset.tables["Flows"]) == {("New", "mail"): ChangeKind.ADDED}


def test_deleted_parent_forces_children_deleted(schema):
    """Test that children of a production-only parent are Deleted even if pilot has them."""
    pilot = schema.clone_schema("pilot")
    production = schema.clone_schema("production")
    pilot["Flows"].add_row(["Old", "mail", "mail"])
    production["Rules"].add_row(["Old", 1, "{1}"])
    production["Flows"].add_row(["Old", "mail", "mail"])

    diffset = diff_snapshots(pilot, production)

    assert _kinds(diffset.tables["Flows"]) == {("Old", "mail"): ChangeKind.DELETED}


def test_placeholder_dropped_when_other_side_has_rows(schema):
    """Test that a production placeholder is dropped when pilot has real rows."""
    pilot = schema.clone_schema("pilot")
    production = schema.clone_schema("production")
    pilot["Rules"].add_row(["A", 1, "{1}"])
    production["Rules"].add_placeholder_row()

    rules = diff_snapshots(pilot, production).tables["Rules"]

    assert _kinds(rules) == {("A",): ChangeKind.ADDED}


def test_placeholder_on_both_sides_is_unchanged(schema):
    """Test that matching placeholders stay Unchanged and remain flagged."""
    pilot = schema.clone_schema("pilot")
    production = schema.clone_schema("production")
    pilot["Rules"].add_placeholder_row()
    production["Rules"].add_placeholder_row()

    row = diff_snapshots(pilot, production).tables["Rules"].rows[0]

    assert row.kind is ChangeKind.UNCHANGED
    assert row.placeholder


def test_one_sided_placeholder_is_symmetric(schema):
    """Test that swapping sides keeps the key set when one side is only a placeholder."""
    empty = schema.clone_schema("empty")
    filled = schema.clone_schema("filled")
    empty["Rules"].add_placeholder_row()
    filled["Rules"].add_row(["X", 1, "{1}"])

    forward = _kinds(diff_snapshots(empty, filled).tables["Rules"])
    backward = _kinds(diff_snapshots(filled, empty).tables["Rules"])

    assert forward == {("X",): ChangeKind.DELETED}
    assert backward == {("X",): ChangeKind.ADDED}


def test_placeholder_against_empty_table_is_kept(schema):
    """Test that a placeholder facing an empty table is Added or Deleted by side."""
    placeholder = schema.clone_schema("placeholder")
    empty = schema.clone_schema("empty")
    placeholder["Rules"].add_placeholder_row()

    added = diff_snapshots(placeholder, empty).tables["Rules"].rows
    deleted = diff_snapshots(empty, placeholder).tables["Rules"].rows

    assert [(r.kind, r.placeholder) for r in added] == [(ChangeKind.ADDED, True)]
    assert [(r.kind, r.placeholder) for r in deleted] == [(ChangeKind.DELETED, True)]


def test_rows_sorted_by_plan(schema):
    """Test that the plan's sort columns order the classified rows."""
    pilot = schema.clone_schema("pilot")
    production = schema.clone_schema("production")
    for name in ("b", "C", "a"):
        pilot["Rules"].add_row([name, 1, "{1}"])

    rules = diff_snapshots(pilot, production, PrintPlan.default_for(schema)).tables["Rules"]

    assert [row.values[0] for row in rules.rows] == ["a", "b", "C"]


def test_schema_mismatch(schema):
    """Test that snapshots with different schemas cannot be diffed."""
    other = Snapshot(name="production")
    other.add_table("Rules", [Column("Name", primary_key=True)])

    with pytest.raises(SchemaMismatchError):
        diff_snapshots(schema.clone_schema("pilot"), other)


def test_swapping_sides_exchanges_classifications(schema):
    """Test that a reversed diff has the same keys with Added/Deleted and old/new swapped."""
    pilot = schema.clone_schema("pilot")
    production = schema.clone_schema("production")
    pilot["Rules"].add_row(["Same", 1, "{1}"])
    pilot["Rules"].add_row(["Changed", 10, "{2}"])
    pilot["Rules"].add_row(["New", 3, "{3}"])
    production["Rules"].add_row(["Same", 1, "{1}"])
    production["Rules"].add_row(["Changed", 20, "{2}"])
    production["Rules"].add_row(["Old", 4, "{4}"])
    swapped = {
        ChangeKind.ADDED: ChangeKind.DELETED,
        ChangeKind.DELETED: ChangeKind.ADDED,
        ChangeKind.MODIFIED: ChangeKind.MODIFIED,
        ChangeKind.UNCHANGED: ChangeKind.UNCHANGED,
    }

    forward = diff_snapshots(pilot, production).tables["Rules"]
    backward = diff_snapshots(production, pilot).tables["Rules"]

    assert {k: swapped[v] for k, v in _kinds(forward).items()} == _kinds(backward)
    changed_forward = forward.find(("Changed",))
    changed_backward = backward.find(("Changed",))
    assert changed_forward.values == changed_backward.old_values == ("Changed", 10, "{2}")
    assert changed_forward.old_values == changed_backward.values == ("Changed", 20, "{2}")


@pytest.fixture
def three_level_schema(schema):
    """Rules -> Flows -> Sources."""
    snapshot = Snapshot(name="rules")
    for table in schema.tables.values():
        snapshot.add_table(table.name, table.columns)
    snapshot.relations = list(schema.relations)
    snapshot.add_table(
        "Sources",
        [
            Column("Rule", primary_key=True),
            Column("Target", primary_key=True),
            Column("Attribute", primary_key=True),
        ],
    )
    snapshot.declare_relation("Flows", ["Rule", "Target"], "Sources", ["Rule", "Target"])
    return snapshot


@pytest.mark.parametrize(
    "pilot_has_rule,expected",
    [(True, ChangeKind.ADDED), (False, ChangeKind.DELETED)],
)
def test_root_change_propagates_to_grandchildren(three_level_schema, pilot_has_rule, expected):
    """Test that a one-sided root row forces its grandchildren to the same classification."""
    pilot = three_level_schema.clone_schema("pilot")
    production = three_level_schema.clone_schema("production")
    for side in (pilot, production):
        side["Flows"].add_row(["Join", "mail", "mail"])
        side["Sources"].add_row(["Join", "mail", "userPrincipalName"])
    (pilot if pilot_has_rule else production)["Rules"].add_row(["Join", 1, "{1}"])

    diffset = diff_snapshots(pilot, production)

    assert _kinds(diffset.tables["Flows"]) == {("Join", "mail"): expected}
    assert _kinds(diffset.tables["Sources"]) == {("Join", "mail", "userPrincipalName"): expected}
