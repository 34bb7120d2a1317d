"""Tests for print plans and the simple settings layouts."""

import pytest

from adsync_documenter.errors import PrintPlanMismatchError
from adsync_documenter.models import Column, Snapshot
from adsync_documenter.print_plan import (
    MAX_SORT_COLUMNS,
    PrintPlan,
    PrintPlanEntry,
    simple_header,
    simple_ordered_settings_plan,
    simple_ordered_settings_snapshot,
    simple_settings_plan,
    simple_settings_snapshot,
)


@pytest.fixture
def snapshot():
    """Two tables: three columns (two keys) and two columns (one key)."""
    snapshot = Snapshot()
    snapshot.add_table(
        "Parent",
        [Column("A", primary_key=True), Column("B", primary_key=True), Column("C")],
    )
    snapshot.add_table("Child", [Column("A", primary_key=True), Column("D")])
    return snapshot


def test_default_plan_sorts_by_primary_key(snapshot):
    """Test that the default plan shows everything and sorts by key columns."""
    plan = PrintPlan.default_for(snapshot)

    assert len(plan) == 5
    assert plan.table_count == 2
    assert plan.sort_columns(0) == [0, 1]
    assert plan.sort_columns(1) == [0]
    assert plan.visible_count() == 5
    assert plan.visible_before(1) == 3


def test_hidden_columns_not_visible():
    """Test that hidden entries are excluded from the visible column lists."""
    plan = simple_ordered_settings_plan(3)

    assert plan.visible_columns(0) == [1, 2]
    assert plan.sort_columns(0) == [0]
    assert plan.visible_count() == 2


def test_sort_columns_capped(caplog):
    """Test that only the first MAX_SORT_COLUMNS sort ranks are used."""
    count = MAX_SORT_COLUMNS + 2
    plan = PrintPlan([PrintPlanEntry(0, i, sort_order=count - i) for i in range(count)])

    columns = plan.sort_columns(0)

    assert len(columns) == MAX_SORT_COLUMNS
    assert columns[0] == count - 1
    assert "sort columns" in caplog.text


def test_duplicate_entries_rejected():
    """Test that two entries for one (table, column) are rejected."""
    with pytest.raises(PrintPlanMismatchError):
        PrintPlan([PrintPlanEntry(0, 0), PrintPlanEntry(0, 0, hidden=True)])


def test_validate_accepts_matching_plan(snapshot):
    """Test that the default plan validates against its own snapshot."""
    PrintPlan.default_for(snapshot).validate(snapshot)


def test_validate_entry_count_mismatch(snapshot):
    """Test that a plan with too few entries for a table is rejected."""
    plan = PrintPlan([PrintPlanEntry(0, 0), PrintPlanEntry(0, 1), PrintPlanEntry(1, 0)])

    with pytest.raises(PrintPlanMismatchError, match="entries for table 'Parent'"):
        plan.validate(snapshot)


def test_validate_bookmark_out_of_range():
    """Test that an anchor column beyond the table width is rejected."""
    snapshot = simple_settings_snapshot(2)
    plan = PrintPlan([PrintPlanEntry(0, 0, bookmark_index=5), PrintPlanEntry(0, 1)])

    with pytest.raises(PrintPlanMismatchError, match="references column 5"):
        plan.validate(snapshot)


def test_validate_too_many_tables():
    """Test that a plan referencing more tables than exist is rejected."""
    snapshot = simple_settings_snapshot(1)
    plan = PrintPlan([PrintPlanEntry(0, 0), PrintPlanEntry(1, 0)])

    with pytest.raises(PrintPlanMismatchError, match="only 1 tables exist"):
        plan.validate(snapshot)


def test_plan_serialization():
    """Test that a plan survives a dictionary round trip."""
    plan = simple_ordered_settings_plan(4)

    restored = PrintPlan.from_dict(plan.to_dict())

    assert restored.entries == plan.entries


def test_simple_settings_layout():
    """Test the single-key settings snapshot and its plan."""
    snapshot = simple_settings_snapshot(3, key_index=1)
    plan = simple_settings_plan(3, key_index=1)

    table = snapshot["SimpleSettings"]
    assert table.column_names == ["Column1", "Column2", "Column3"]
    assert table.key_indices == [1]
    assert plan.sort_columns(0) == [1]
    plan.validate(snapshot)


def test_ordered_settings_layout():
    """Test that the ordered layout uses an int display-order column."""
    snapshot = simple_ordered_settings_snapshot(3)
    alphabetic = simple_ordered_settings_snapshot(3, alphabetic=True)

    assert snapshot["SimpleOrderedSettings"].columns[0].value_type is int
    assert alphabetic["SimpleOrderedSettings"].columns[0].value_type is str
    assert snapshot["SimpleOrderedSettings"].key_indices == [0, 1]


def test_simple_header_with_title():
    """Test that a title becomes a spanning first header row."""
    header = simple_header([("Setting", 40), ("Value", 60)], title="Connection")

    assert header[0].text == "Connection"
    assert header[0].col_span == 2
    assert [(h.row_index, h.text, h.width) for h in header[1:]] == [
        (1, "Setting", 40),
        (1, "Value", 60),
    ]
