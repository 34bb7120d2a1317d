"""Tests for locating, loading and merging configuration exports."""

from pathlib import Path

import pytest

from adsync_documenter.config import (
    load_configuration,
    report_file_path,
    resolve_config_dirs,
)
from adsync_documenter.errors import ConfigDirectoryNotFoundError, ConfigLoadError


def test_resolve_config_dirs(data_root):
    """Test that both export directories resolve beneath the data root."""
    paths = resolve_config_dirs("Pilot", "Production", data_root)

    assert paths.pilot == data_root / "Pilot"
    assert paths.production == data_root / "Production"


def test_resolve_missing_directory(data_root):
    """Test that a missing export directory raises a FileNotFoundError subtype."""
    with pytest.raises(ConfigDirectoryNotFoundError, match="Production configuration"):
        resolve_config_dirs("Pilot", "Missing", data_root)

    with pytest.raises(FileNotFoundError):
        resolve_config_dirs("Missing", "Production", data_root)


def test_load_configuration_merges_categories(data_root):
    """Test that every export file lands under its category element."""
    root = load_configuration(data_root / "Pilot", pilot=True)

    assert root.tag == "Pilot"
    assert [child.tag for child in root] == [
        "GlobalSettings",
        "Connectors",
        "SynchronizationRules",
    ]
    assert len(root.xpath("Connectors/ma-data")) == 2
    assert len(root.xpath("SynchronizationRules/synchronizationRule")) == 2
    assert root.xpath("string(GlobalSettings/mv-data/parameter-values/parameter[1])") == (
        "1.6.4.0"
    )


def test_load_production_root(data_root):
    """Test that the production side is rooted at <Production>."""
    assert load_configuration(data_root / "Production", pilot=False).tag == "Production"


def test_load_configuration_missing_category(tmp_path, caplog):
    """Test that a missing category directory yields an empty container."""
    (tmp_path / "Connectors").mkdir()

    root = load_configuration(tmp_path, pilot=True)

    assert len(root.find("SynchronizationRules")) == 0
    assert "No GlobalSettings exports" in caplog.text


def test_load_configuration_malformed(tmp_path):
    """Test that a malformed export file raises ConfigLoadError."""
    (tmp_path / "Connectors").mkdir()
    (tmp_path / "Connectors" / "Broken.xml").write_text("<ma-data><name>", encoding="utf-8")

    with pytest.raises(ConfigLoadError, match="Broken.xml"):
        load_configuration(tmp_path, pilot=True)


def test_report_file_path():
    """Test the report name built from the two config paths."""
    path = report_file_path("Contoso/Pilot", "Contoso/Production", "Report")

    assert path == Path("Report") / "Contoso_Pilot_To_Contoso_Production_AADSync_report.html"
