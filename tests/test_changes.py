"""Tests for the changes command."""

import json

from conftest import ad_connector_xml, sync_rule_xml, write_export

from adsync_documenter.commands.changes import changes_document, list_changes
from adsync_documenter.sections import ChangeType, SyncRuleChange


def test_list_changes_to_stdout(data_root, capsys):
    """Test that changed rules are printed as JSON with exit code 1."""
    exit_code = list_changes("Pilot", "Production", str(data_root))

    assert exit_code == 1
    result = json.loads(capsys.readouterr().out)
    assert result["pilot"] == "Pilot"
    assert result["summary"] == {"new": 1, "remove": 1, "update": 0, "warning": 0}
    assert [c["name"] for c in result["changes"]] == [
        "In from AD - User Custom",
        "In from AD - User Legacy",
    ]


def test_list_changes_to_file(data_root, tmp_path):
    """Test writing the changes document to a file in a new directory."""
    output_file = tmp_path / "out" / "changes.json"

    exit_code = list_changes("Pilot", "Production", str(data_root), str(output_file))

    assert exit_code == 1
    with open(output_file, "r", encoding="utf-8") as f:
        result = json.load(f)
    assert result["changes"][0]["kind"] == "new"
    assert result["changes"][0]["connector"] == "contoso.com"


def test_list_changes_identical_returns_zero(tmp_path, capsys):
    """Test that identical exports report no changes."""
    root = tmp_path / "Data"
    for name in ("Pilot", "Production"):
        write_export(
            root, name, connectors=[ad_connector_xml()], rules=[sync_rule_xml("In from AD")]
        )

    exit_code = list_changes("Pilot", "Production", str(root))

    assert exit_code == 0
    assert json.loads(capsys.readouterr().out)["changes"] == []


def test_list_changes_missing_config(tmp_path):
    """Test that a missing export directory fails."""
    assert list_changes("Pilot", "Production", str(tmp_path)) == 1


def test_changes_document_summary():
    """Test the summary counts and serialized change list."""
    changes = [
        SyncRuleChange(ChangeType.WARNING, "In from AD - User Join", default_rule=True),
        SyncRuleChange(ChangeType.WARNING, "Out to AAD - User Join", default_rule=True),
        SyncRuleChange(ChangeType.UPDATE, "In from AD - User Common", fields={"disabled": True}),
    ]

    document = changes_document("A", "B", changes)

    assert document["summary"] == {"new": 0, "remove": 0, "update": 1, "warning": 2}
    assert document["changes"][2]["fields"] == {"disabled": True}
    assert "unchanged" not in document["summary"]
