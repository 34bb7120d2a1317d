"""Global settings of the synchronization service."""

import logging

from ..context import LogContext, trace_span
from ..models import Snapshot
from ..print_plan import simple_header, simple_settings_plan, simple_settings_snapshot
from ..render import TableRenderer
from .base import Configs, build_diffset, text, write_table_section, xpath

logger = logging.getLogger(__name__)

SECTION_TITLE = "Global Settings"
SERVER_CONFIGURATION_VERSION = "Microsoft.Synchronize.ServerConfigurationVersion"


def fill_global_settings(snapshot: Snapshot, root, pilot: bool) -> None:
    table = snapshot.table_at(0)
    for parameter in xpath(root, "GlobalSettings//mv-data//parameter-values/parameter"):
        table.add_row_if_absent([parameter.get("name", ""), "".join(parameter.itertext())])


def server_configuration_version(root) -> str:
    """Value of the ServerConfigurationVersion global parameter, if any."""
    return text(
        root,
        "GlobalSettings//mv-data//parameter-values/parameter[@name = $name]",
        name=SERVER_CONFIGURATION_VERSION,
    )


def document_global_settings(
    renderer: TableRenderer, configs: Configs, context: LogContext = LogContext()
) -> None:
    """Write the Global Settings section."""
    log = context.adapter(logger)
    with trace_span(log, "global settings"):
        log.info(f"Processing {SECTION_TITLE}.")
        diffset = build_diffset(
            simple_settings_snapshot(2, name="GlobalSettings"),
            fill_global_settings,
            configs,
            simple_settings_plan(2),
        )
        write_table_section(
            renderer,
            SECTION_TITLE,
            2,
            diffset,
            simple_settings_plan(2),
            simple_header([("Setting", 50), ("Configuration", 50)]),
        )
