"""Generate the HTML configuration diff report between pilot and production."""

import logging
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Callable, TextIO

from rich.console import Console

from .. import __version__
from ..config import (
    DEFAULT_DATA_ROOT,
    DEFAULT_REPORT_DIR,
    ConfigPaths,
    load_configuration,
    report_file_path,
    resolve_config_dirs,
)
from ..context import LogContext, section_guard, trace_span
from ..errors import DocumenterError
from ..render import TableRenderer, escape_html
from ..sections import (
    Configs,
    document_connectors,
    document_global_settings,
    document_metaverse,
    server_configuration_version,
)

logger = logging.getLogger(__name__)

console = Console(stderr=True)

REPORT_TITLE = "AADSync Service Configuration"
TOC_PLACEHOLDER = "##TOC##"
STATIC_DIR = Path(__file__).parent.parent / "static"

SectionBuilder = Callable[[TableRenderer, Configs, LogContext], None]

SECTIONS: tuple[tuple[str, SectionBuilder], ...] = (
    ("Global Settings", document_global_settings),
    ("Metaverse Configuration", document_metaverse),
    ("Connector Configurations", document_connectors),
)


def generate_report(
    pilot: str,
    production: str,
    data_root: str = DEFAULT_DATA_ROOT,
    report_dir: str = DEFAULT_REPORT_DIR,
) -> int:
    """Generate the HTML diff report between two configuration exports.

    Args:
        pilot: Pilot export directory, relative to ``data_root``
        production: Production export directory, relative to ``data_root``
        data_root: Directory holding the configuration exports
        report_dir: Output directory for the report

    Returns:
        0 on success, 1 on error
    """
    try:
        paths = resolve_config_dirs(pilot, production, data_root)
        configs = Configs(
            pilot=load_configuration(paths.pilot, pilot=True),
            production=load_configuration(paths.production, pilot=False),
        )
    except DocumenterError as e:
        console.print(f"[red]Error:[/red] {e}")
        return 1

    report_path = report_file_path(pilot, production, report_dir)
    try:
        html = build_report(configs, paths)
        report_path.parent.mkdir(parents=True, exist_ok=True)
        with open(report_path, "w", encoding="utf-8") as f:
            f.write(html)
    except OSError as e:
        console.print(f"[red]Error:[/red] Failed to write report {report_path}: {e}")
        return 1

    console.print(f"[green]✓[/green] Generated report: {report_path}")
    return 0


def build_report(configs: Configs, paths: ConfigPaths) -> str:
    """Render the full report.

    The body and table of contents are streamed into two temporary files,
    section by section, and joined at the ``##TOC##`` placeholder.

    Returns:
        The report HTML
    """
    with tempfile.TemporaryDirectory(prefix="adsync-documenter-") as work_dir:
        body_path = Path(work_dir) / "report.html"
        toc_path = Path(work_dir) / "toc.html"

        with open(body_path, "w", encoding="utf-8") as body, open(
            toc_path, "w", encoding="utf-8"
        ) as toc:
            write_report(body, toc, configs, paths)

        report = body_path.read_text(encoding="utf-8")
        contents = toc_path.read_text(encoding="utf-8")

    return report.replace(TOC_PLACEHOLDER, contents, 1)


def write_report(body: TextIO, toc: TextIO, configs: Configs, paths: ConfigPaths) -> None:
    """Write the report skeleton and every section into ``body`` and ``toc``."""
    context = LogContext()
    log = context.adapter(logger)

    body.write("<html>\n")
    body.write(report_head())
    body.write("<body>\n")
    body.write(f"<h1>{REPORT_TITLE}</h1>\n")
    body.write(documenter_info(configs, paths))
    body.write("<h1>Table of Contents</h1>\n")
    body.write(f"{TOC_PLACEHOLDER}\n")

    heading = TableRenderer()
    heading.write_section_header(REPORT_TITLE, 1)
    _flush(heading, body, toc)

    with trace_span(log, "report"):
        for name, builder in SECTIONS:
            renderer = TableRenderer()
            with section_guard(log, name):
                builder(renderer, configs, context)
                _flush(renderer, body, toc)

    body.write("</body>\n</html>\n")


def _flush(renderer: TableRenderer, body: TextIO, toc: TextIO) -> None:
    html, contents = renderer.fragments()
    body.write(html)
    toc.write(contents)


def _static(name: str) -> str:
    path = STATIC_DIR / name
    if not path.exists():
        logger.warning(f"{name} not found at {path}. Report will not be interactive.")
        return ""
    return path.read_text(encoding="utf-8")


def report_head() -> str:
    """``<head>`` with the inlined stylesheet and script."""
    return (
        "<head>\n"
        '<meta http-equiv="Content-Type" content="text/html; charset=UTF-8"/>\n'
        f'<style type="text/css">\n{_static("documenter.css")}</style>\n'
        f"<script>\n{_static('documenter.js')}</script>\n"
        "<title>AAD Connect Config Documenter Report</title>\n"
        "</head>\n"
    )


def documenter_info(configs: Configs, paths: ConfigPaths, now: datetime | None = None) -> str:
    """Toggle, legend and provenance block written under the report title."""
    now = now or datetime.now()
    html_parts = [
        "<strong>Only Show Changes:</strong>",
        '<input type="checkbox" id="OnlyShowChanges" disabled onclick="ToggleVisibility();"/>\n',
        '<a style="display: none;" href="#" id="DownloadLink" '
        'onclick="return DownloadChanges();">Download Sync Rule Changes</a>',
        "<br/>",
        "<strong>Legend:</strong>",
        '<span class="Added">Create </span>',
        '<span class="Modified">Update </span>',
        '<span class="Deleted">Delete </span>',
        "<br/>",
        "<strong>Documenter Version:</strong>",
        f'<span class="Unchanged">{escape_html(__version__)}</span>',
        "<br/>",
        "<strong>Report Date:</strong>",
        f'<span class="Unchanged">{now.strftime("%Y-%m-%d %H:%M:%S")}</span>',
        "<br/>",
    ]
    for label, path, root in (
        ("Pilot Config", paths.pilot, configs.pilot),
        ("Production Config", paths.production, configs.production),
    ):
        version = server_configuration_version(root)
        suffix = f" (Server Configuration Version: {version})" if version else ""
        html_parts.append(f"<strong>{label}:</strong>")
        html_parts.append(f'<span class="Unchanged">{escape_html(str(path) + suffix)}</span>')
        html_parts.append("<br/>")
    html_parts.append("<br/>\n")
    return "\n".join(html_parts)
