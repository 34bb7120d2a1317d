"""Locating, loading and merging configuration exports.

A configuration export directory holds three sub-directories of XML files::

    <data_root>/<name>/GlobalSettings/*.xml        metaverse schema and settings
    <data_root>/<name>/Connectors/*.xml            one <ma-data> per connector
    <data_root>/<name>/SynchronizationRules/*.xml  one <synchronizationRule> per rule

Each side is merged into one document rooted at ``<Pilot>`` or
``<Production>`` so every section builder queries a single tree.
"""

import logging
from dataclasses import dataclass
from pathlib import Path

from lxml import etree

from .errors import ConfigDirectoryNotFoundError, ConfigLoadError
from .ids import report_file_stem

logger = logging.getLogger(__name__)

NAMESPACES = {
    "dsml": "http://www.dsml.org/DSML",
    "ms-dsml": "http://www.microsoft.com/MMS/DSML",
}

CATEGORIES = ("GlobalSettings", "Connectors", "SynchronizationRules")

DEFAULT_DATA_ROOT = "Data"
DEFAULT_REPORT_DIR = "Report"
REPORT_SUFFIX = "_AADSync_report.html"


@dataclass(frozen=True)
class ConfigPaths:
    """Resolved pilot and production export directories."""

    pilot: Path
    production: Path


def resolve_config_dirs(pilot: str, production: str, data_root: str | Path) -> ConfigPaths:
    """Resolve both export directories beneath ``data_root``.

    Raises:
        ConfigDirectoryNotFoundError: If either directory does not exist
    """
    root = Path(data_root)
    paths = ConfigPaths(pilot=root / pilot, production=root / production)

    for label, path in (("Pilot", paths.pilot), ("Production", paths.production)):
        if not path.is_dir():
            raise ConfigDirectoryNotFoundError(
                f"{label} configuration directory not found: {path}"
            )

    return paths


def load_configuration(directory: str | Path, pilot: bool) -> etree._Element:
    """Merge one side's export files into a single document.

    Args:
        directory: Export directory holding the category sub-directories
        pilot: Root the document at ``<Pilot>`` (else ``<Production>``)

    Returns:
        Root element of the merged document

    Raises:
        ConfigLoadError: If an export file is not well-formed XML
    """
    directory = Path(directory)
    root = etree.Element("Pilot" if pilot else "Production")
    parser = etree.XMLParser(remove_blank_text=True, resolve_entities=False)

    for category in CATEGORIES:
        container = etree.SubElement(root, category)
        category_dir = directory / category
        if not category_dir.is_dir():
            logger.warning(f"No {category} exports in {directory}")
            continue

        files = sorted(category_dir.glob("*.xml"))
        logger.info(f"Loading {len(files)} {category} file(s) from {category_dir}")
        for xml_file in files:
            try:
                document = etree.parse(str(xml_file), parser)
            except (etree.XMLSyntaxError, OSError) as e:
                raise ConfigLoadError(f"Failed to parse {xml_file}: {e}") from e
            container.append(document.getroot())

    return root


def report_file_path(pilot: str, production: str, report_dir: str | Path) -> Path:
    """Path of the HTML report for a pilot/production pair."""
    return Path(report_dir) / (report_file_stem(pilot, production) + REPORT_SUFFIX)
