"""Shared plumbing for report section builders.

Every section follows the same pipeline: fill two snapshots of one schema
from the pilot and production documents, diff them, resolve visibility and
render the result into a :class:`~adsync_documenter.render.TableRenderer`.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Iterable

from lxml import etree

from ..config import NAMESPACES
from ..diffing import DiffSet, diff_snapshots
from ..models import Snapshot
from ..print_plan import HeaderCell, PrintPlan
from ..render import TableRenderer, TableSize
from ..sorting import sort_values
from ..visibility import SectionVisibility, VisibilityPolicy, resolve

logger = logging.getLogger(__name__)

UPPERCASE_XPATH = "translate({}, 'abcdefghijklmnopqrstuvwxyz', 'ABCDEFGHIJKLMNOPQRSTUVWXYZ')"

ENABLED_RULE = (
    "(count(disabled) = 0 or "
    "(disabled != 'True' and disabled != 'true' and disabled != '1'))"
)

SYNTAX_TYPES = {
    "1.3.6.1.4.1.1466.115.121.1.27": "Number",
    "1.2.840.113556.1.4.906": "Number",
    "1.3.6.1.4.1.1466.115.121.1.7": "Boolean",
    "1.3.6.1.4.1.1466.115.121.1.5": "Binary",
    "1.3.6.1.4.1.1466.115.121.1.40": "Binary",
    "1.3.6.1.4.1.1466.115.121.1.15": "String",
    "1.2.840.113556.1.4.1221": "String",
    "1.2.840.113556.1.4.905": "String",
    "1.3.6.1.4.1.1466.115.121.1.44": "String",
    "1.2.840.113556.1.4.1362": "String",
    "1.3.6.1.4.1.1466.115.121.1.12": "Reference (DN)",
    "1.3.6.1.4.1.1466.115.121.1.24": "DateTime",
    "1.3.6.1.4.1.1466.115.121.1.53": "DateTime",
}

Fill = Callable[[Snapshot, etree._Element, bool], None]


@dataclass(frozen=True)
class Configs:
    """The merged pilot and production documents."""

    pilot: etree._Element
    production: etree._Element

    def side(self, pilot: bool) -> etree._Element:
        return self.pilot if pilot else self.production


def xpath(node: etree._Element, path: str, **variables) -> list:
    """Evaluate ``path`` with the DSML namespaces and XPath ``$variables``."""
    return node.xpath(path, namespaces=NAMESPACES, **variables)


def first(node: etree._Element | None, path: str, **variables) -> etree._Element | None:
    if node is None:
        return None
    found = xpath(node, path, **variables)
    return found[0] if found else None


def text(node: etree._Element | None, path: str, default: str = "", **variables) -> str:
    """String value of the first node ``path`` selects, or ``default``.

    Works for element, attribute and ``text()`` results alike.
    """
    if node is None:
        return default
    found = xpath(node, path, **variables)
    if isinstance(found, str):
        return str(found) or default
    if not found:
        return default
    value = found[0]
    if isinstance(value, str):
        return str(value)
    return "".join(value.itertext())


def texts(node: etree._Element | None, path: str, **variables) -> list[str]:
    if node is None:
        return []
    values = []
    for value in xpath(node, path, **variables):
        values.append(str(value) if isinstance(value, str) else "".join(value.itertext()))
    return values


def yes_no(value: str | None) -> str:
    """``"Yes"`` for true-ish configuration flags, else ``"No"``."""
    return "Yes" if (value or "").strip().lower() in ("true", "1", "yes") else "No"


def attribute_type(syntax: str | None, indexable: str | None = None) -> str:
    """Friendly attribute type for a DSML syntax OID.

    Examples:
        >>> attribute_type("1.3.6.1.4.1.1466.115.121.1.15", "true")
        'String (indexable)'
    """
    friendly = SYNTAX_TYPES.get(syntax or "", syntax or "")
    if indexable is None:
        return friendly
    suffix = " (indexable)" if indexable.lower() == "true" else " (non-indexable)"
    return friendly + suffix


def connector_element(root: etree._Element, name: str) -> etree._Element | None:
    return first(root, "Connectors/ma-data[name = $name]", name=name)


def connector_by_guid(root: etree._Element, guid: str) -> etree._Element | None:
    return first(
        root, f"Connectors/ma-data[{UPPERCASE_XPATH.format('id')} = $guid]", guid=guid.upper()
    )


def sync_rules(root: etree._Element, condition: str = "", **variables) -> list[etree._Element]:
    """``<synchronizationRule>`` elements matching an optional XPath predicate."""
    predicate = f"[{condition}]" if condition else ""
    return xpath(root, f"SynchronizationRules/synchronizationRule{predicate}", **variables)


def connector_rules_condition(direction: str | None = None) -> str:
    """Predicate for rules of the connector bound to ``$guid``."""
    condition = f"{UPPERCASE_XPATH.format('connector')} = $guid"
    if direction:
        condition += f" and direction = '{direction}'"
    return condition


def scoping_condition_text(rule: etree._Element) -> str:
    """One-line rendition of a rule's scoping filter (AND within, OR across groups)."""
    groups = []
    for conditions in xpath(rule, "synchronizationCriteria/conditions"):
        scopes = [
            f"{text(scope, 'csAttribute')} {text(scope, 'csOperator')} {text(scope, 'csValue')}"
            for scope in xpath(conditions, "scope")
        ]
        if scopes:
            groups.append(" AND ".join(scopes))
    return " OR ".join(groups)


def mapping_source(mapping: etree._Element, default: str = "") -> str:
    """Expression, source attribute or constant of an attribute mapping."""
    return (
        text(mapping, "expression")
        or text(mapping, "src/attr")
        or text(mapping, "src")
        or default
    )


def pilot_then_production(pilot_names: Iterable[str], production_names: Iterable[str]) -> list[str]:
    """Pilot names sorted, followed by the sorted production-only names."""
    pilot_sorted = sort_values(set(pilot_names))
    seen = set(pilot_sorted)
    return pilot_sorted + [n for n in sort_values(set(production_names)) if n not in seen]


def build_diffset(
    schema: Snapshot, fill: Fill, configs: Configs, plan: PrintPlan | None = None
) -> DiffSet:
    """Fill both sides of ``schema`` and diff them.

    Args:
        schema: Empty snapshot defining tables and relations
        fill: Called as ``fill(snapshot, document_root, pilot)`` once per side
        configs: Pilot and production documents
        plan: Print plan supplying sort order and change-ignored columns
    """
    pilot = schema.clone_schema("pilot")
    production = schema.clone_schema("production")
    fill(pilot, configs.pilot, True)
    fill(production, configs.production, False)
    return diff_snapshots(pilot, production, plan)


def write_table_section(
    renderer: TableRenderer,
    title: str | None,
    level: int,
    diffsets: DiffSet | list[DiffSet],
    plan: PrintPlan,
    header: list[HeaderCell] | None = None,
    bookmark: str | None = None,
    section_guid: str | None = None,
    size: TableSize = TableSize.STANDARD,
    policies: Iterable[VisibilityPolicy] = (),
) -> SectionVisibility:
    """Resolve visibility, then write an optional header and the table.

    Returns:
        The resolved section visibility
    """
    if isinstance(diffsets, DiffSet):
        diffsets = [diffsets]
    visibility = resolve(diffsets, policies)
    if title:
        renderer.write_section_header(title, level, bookmark, section_guid, visibility.css_class)
    renderer.write_table(diffsets, plan, header, size, visibility.css_class)
    return visibility
