"""Command-line interface for adsync-documenter."""

import argparse
import logging
import sys

from rich.console import Console
from rich.logging import RichHandler
from rich_argparse import RichHelpFormatter

from . import __version__
from .config import DEFAULT_DATA_ROOT, DEFAULT_REPORT_DIR

console = Console(stderr=True)


def _add_config_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("pilot", help="Pilot configuration export, relative to the data root")
    parser.add_argument(
        "production", help="Production configuration export, relative to the data root"
    )
    parser.add_argument(
        "--data-root",
        default=DEFAULT_DATA_ROOT,
        help=f"Directory holding the configuration exports (default: {DEFAULT_DATA_ROOT})",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging (shows per-section progress)",
    )


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="adsync-documenter",
        description=(
            "Document Azure AD Connect sync configuration as an HTML report "
            "highlighting pilot vs production differences"
        ),
        epilog="Export configurations with Get-ADSyncServerConfiguration into <data-root>/<name>.",
        formatter_class=RichHelpFormatter,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # report command
    report_parser = subparsers.add_parser(
        "report",
        help="Generate HTML configuration diff report",
        description="Generate a self-contained HTML report comparing two configuration exports.",
        epilog="""
Examples:
  # Compare Data/Contoso/Pilot against Data/Contoso/Production
  adsync-documenter report Contoso/Pilot Contoso/Production

  # Read exports from another directory, write the report elsewhere
  adsync-documenter report Pilot Production --data-root=/exports --report-dir=out

  # Show per-section progress
  adsync-documenter report Contoso/Pilot Contoso/Production -v

Output:
  <report-dir>/<pilot>_To_<production>_AADSync_report.html
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    _add_config_arguments(report_parser)
    report_parser.add_argument(
        "--report-dir",
        default=DEFAULT_REPORT_DIR,
        help=f"Output directory for the report (default: {DEFAULT_REPORT_DIR})",
    )

    # changes command
    changes_parser = subparsers.add_parser(
        "changes",
        help="List sync rule changes as JSON",
        description="Classify changed sync rules (new, remove, update, warning) as JSON.",
        epilog="""
Examples:
  # Changes to stdout
  adsync-documenter changes Contoso/Pilot Contoso/Production

  # Save changes to file
  adsync-documenter changes Contoso/Pilot Contoso/Production --output changes.json

Exit codes:
  - 0: No sync rule changes found
  - 1: Changes found or errors occurred
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    _add_config_arguments(changes_parser)
    changes_parser.add_argument("--output", help="Output file for changes JSON (default: stdout)")

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return 0

    # Configure logging
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_time=False, show_path=False)],
    )

    try:
        if args.command == "report":
            from adsync_documenter.commands.report import generate_report

            return generate_report(args.pilot, args.production, args.data_root, args.report_dir)
        elif args.command == "changes":
            from adsync_documenter.commands.changes import list_changes

            return list_changes(args.pilot, args.production, args.data_root, args.output)
    except Exception as e:
        console.print(f"[red]Error:[/red] {e}")
        if args.verbose:
            import traceback

            traceback.print_exc()
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
