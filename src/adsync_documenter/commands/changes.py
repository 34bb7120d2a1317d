"""List sync rule changes between pilot and production as JSON."""

import json
import logging
import sys
from collections import Counter
from pathlib import Path
from typing import Any

from rich.console import Console

from ..config import DEFAULT_DATA_ROOT, load_configuration, resolve_config_dirs
from ..errors import DocumenterError
from ..sections import ChangeType, Configs, SyncRuleChange, collect_sync_rule_changes

logger = logging.getLogger(__name__)

console = Console(stderr=True)


def list_changes(
    pilot: str,
    production: str,
    data_root: str = DEFAULT_DATA_ROOT,
    output: str | None = None,
) -> int:
    """Classify every changed sync rule and write the result as JSON.

    Args:
        pilot: Pilot export directory, relative to ``data_root``
        production: Production export directory, relative to ``data_root``
        data_root: Directory holding the configuration exports
        output: Output file for the JSON (default: stdout)

    Returns:
        0 if no sync rule changed, 1 if changes were found or errors occurred
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

    changes = collect_sync_rule_changes(configs)
    result = changes_document(pilot, production, changes)

    if output:
        try:
            output_path = Path(output)
            output_path.parent.mkdir(parents=True, exist_ok=True)
            with open(output_path, "w", encoding="utf-8") as f:
                json.dump(result, f, indent=2, ensure_ascii=False)
                f.write("\n")
            console.print(f"[green]✓[/green] Changes written to {output}")
        except OSError as e:
            console.print(f"[red]Error:[/red] Failed to write output: {e}")
            return 1
    else:
        json.dump(result, sys.stdout, indent=2, ensure_ascii=False)
        sys.stdout.write("\n")

    return 1 if changes else 0


def changes_document(
    pilot: str, production: str, changes: list[SyncRuleChange]
) -> dict[str, Any]:
    """Build the JSON document: summary counts per kind plus every change."""
    counts = Counter(change.kind for change in changes)
    return {
        "pilot": pilot,
        "production": production,
        "summary": {
            kind.value: counts.get(kind, 0)
            for kind in ChangeType
            if kind is not ChangeType.UNCHANGED
        },
        "changes": [change.to_dict() for change in changes],
    }
