"""Synchronization rule sections and change classification.

A sync rule is documented as four tables (Description, Scoping Filter, Join
Rules, Transformations) under one ``<h5>``. Rules are matched across pilot
and production by name within their connector. As soon as anything in a
rule changed, every row of the rule is shown.

Changed rules are also classified (new, remove, update, warning) for the
downstream script generator; see :func:`classify_sync_rule`.
"""

import json
import logging
from dataclasses import asdict, dataclass, field
from enum import Enum
from functools import partial
from typing import Any

from lxml import etree

from ..context import LogContext, section_guard, trace_span
from ..diffing import DiffSet
from ..models import Snapshot
from ..print_plan import (
    simple_header,
    simple_ordered_settings_plan,
    simple_ordered_settings_snapshot,
    simple_settings_plan,
    simple_settings_snapshot,
)
from ..render import TableRenderer, escape_html
from ..visibility import default_rule_policy, force_no_hide_when_changed, resolve
from .base import (
    Configs,
    UPPERCASE_XPATH,
    build_diffset,
    connector_element,
    first,
    pilot_then_production,
    text,
    texts,
    xpath,
    yes_no,
)

logger = logging.getLogger(__name__)

DEFAULT_RULE_TAG_PREFIX = "microsoft."
MISSING = " "

DESCRIPTION_COLUMNS = 3
SCOPING_COLUMNS = 5
JOIN_COLUMNS = 5
TRANSFORMATION_COLUMNS = 5

DIRECTIONS = ("Inbound", "Outbound")


class ChangeType(str, Enum):
    """Classification of a changed sync rule for script generation."""

    NEW = "new"
    REMOVE = "remove"
    UPDATE = "update"
    WARNING = "warning"
    UNCHANGED = "unchanged"


@dataclass
class SyncRuleChange:
    """What a script generator needs to reproduce a sync rule change.

    Attributes:
        kind: Change classification
        name: Sync rule name
        connector: Connector the rule belongs to
        rule_id: Id of the rule (pilot id unless production-only)
        default_rule: Rule is part of the out-of-box configuration
        fields: For updates, changed field -> new value
            (``disabled``, ``enable_password_sync``)
    """

    kind: ChangeType
    name: str
    connector: str = ""
    rule_id: str = ""
    default_rule: bool = False
    fields: dict[str, bool] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        data = asdict(self)
        data["kind"] = self.kind.value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SyncRuleChange":
        """Create from dictionary loaded from JSON."""
        return cls(
            kind=ChangeType(data["kind"]),
            name=data["name"],
            connector=data.get("connector", ""),
            rule_id=data.get("rule_id", ""),
            default_rule=data.get("default_rule", False),
            fields=dict(data.get("fields", {})),
        )


def is_default_rule(rule: etree._Element | None) -> bool:
    """Out-of-box rules carry an immutable tag starting with ``Microsoft.``."""
    return text(rule, "immutable-tag").lower().startswith(DEFAULT_RULE_TAG_PREFIX)


def _flag(value: str) -> bool:
    return value.strip().lower() in ("true", "1")


def classify_sync_rule(
    pilot_rule: etree._Element | None,
    production_rule: etree._Element | None,
    changed: bool = True,
    connector: str = "",
) -> SyncRuleChange:
    """Classify a sync rule present in pilot, production or both.

    Out-of-box rules only support toggling ``disabled`` and
    ``EnablePasswordSync``; any other change to them, their removal or
    their appearance in pilot only is a warning. Custom rules are new
    (present in pilot) or removed (production only).

    Args:
        pilot_rule: ``<synchronizationRule>`` from pilot, or None
        production_rule: ``<synchronizationRule>`` from production, or None
        changed: Whether any documented table of the rule changed
        connector: Connector name, carried into the result

    Raises:
        ValueError: If both rules are None
    """
    if pilot_rule is None and production_rule is None:
        raise ValueError("At least one of pilot_rule and production_rule is required")

    rule = pilot_rule if pilot_rule is not None else production_rule
    change = SyncRuleChange(
        kind=ChangeType.UNCHANGED,
        name=text(rule, "name"),
        connector=connector,
        rule_id=text(rule, "id"),
        default_rule=is_default_rule(rule),
    )
    if not changed:
        return change

    if not change.default_rule:
        change.kind = ChangeType.NEW if pilot_rule is not None else ChangeType.REMOVE
        return change

    if pilot_rule is None or production_rule is None:
        change.kind = ChangeType.WARNING
        return change

    toggles = (("disabled", "disabled"), ("enable_password_sync", "EnablePasswordSync"))
    for name, element in toggles:
        pilot_value = text(pilot_rule, element, default=None)
        production_value = text(production_rule, element, default=None)
        if pilot_value != production_value:
            change.fields[name] = _flag(pilot_value or "")

    change.kind = ChangeType.UPDATE if change.fields else ChangeType.WARNING
    return change


@dataclass(frozen=True)
class RuleRef:
    """A sync rule to document, identified by connector and rule name."""

    connector: str
    name: str
    direction: str


def find_rule(root, connector: str, name: str) -> etree._Element | None:
    """The rule named ``name`` bound to the connector named ``connector``."""
    connector_node = connector_element(root, connector)
    if connector_node is None:
        return None
    return first(
        root,
        f"SynchronizationRules/synchronizationRule"
        f"[{UPPERCASE_XPATH.format('connector')} = $guid and name = $name]",
        guid=text(connector_node, "id").upper(),
        name=name,
    )


def fill_description(snapshot: Snapshot, root, pilot: bool, ref: RuleRef) -> None:
    rule = find_rule(root, ref.connector, ref.name)
    if rule is None:
        return
    table = snapshot.table_at(0)
    inbound = text(rule, "direction").lower() == "inbound"

    table.add_row([0, "Name", text(rule, "name")])
    table.add_row([1, "Description", text(rule, "description")])
    table.add_row([2, "Direction", text(rule, "direction")])
    table.add_row([3, "Connected System", ref.connector])
    table.add_row(
        [4, "Connected System Object Type",
         text(rule, "sourceObjectType" if inbound else "targetObjectType")]
    )
    table.add_row(
        [5, "Metaverse Object Type",
         text(rule, "targetObjectType" if inbound else "sourceObjectType")]
    )
    table.add_row([6, "Link Type", text(rule, "linkType")])
    table.add_row([7, "Precedence", text(rule, "precedence")])
    table.add_row([8, "Soft Delete Expiry Interval", text(rule, "softDeleteExpiryInterval")])
    table.add_row([9, "Tag", text(rule, "immutable-tag")])

    enable_password_sync = text(rule, "EnablePasswordSync")
    if enable_password_sync:
        table.add_row([10, "Enable Password Sync", yes_no(enable_password_sync)])
    disabled = text(rule, "disabled")
    if disabled:
        table.add_row([11, "Disabled", yes_no(disabled)])


def _fill_conditions(table, groups: list, fields: tuple[str, str, str]) -> None:
    added = False
    for group, conditions in enumerate(groups, start=1):
        for condition in conditions:
            values = [text(condition, f, MISSING) for f in fields]
            table.add_row_if_absent([group, str(group)] + values)
            added = True
    if not added:
        table.add_placeholder_row()


def fill_scoping_filter(snapshot: Snapshot, root, pilot: bool, ref: RuleRef) -> None:
    rule = find_rule(root, ref.connector, ref.name)
    if rule is None:
        return
    groups = [
        xpath(conditions, "scope")
        for conditions in xpath(rule, "synchronizationCriteria/conditions")
    ]
    _fill_conditions(snapshot.table_at(0), groups, ("csAttribute", "csOperator", "csValue"))


def fill_join_rules(snapshot: Snapshot, root, pilot: bool, ref: RuleRef) -> None:
    rule = find_rule(root, ref.connector, ref.name)
    if rule is None:
        return
    inbound = text(rule, "direction").lower() == "inbound"
    fields = ("csAttribute", "ilmAttribute") if inbound else ("ilmAttribute", "csAttribute")
    groups = [
        xpath(conditions, "condition")
        for conditions in xpath(rule, "relationshipCriteria/conditions")
    ]
    _fill_conditions(snapshot.table_at(0), groups, fields + ("caseSensitive",))


def fill_transformations(snapshot: Snapshot, root, pilot: bool, ref: RuleRef) -> None:
    rule = find_rule(root, ref.connector, ref.name)
    if rule is None:
        return
    table = snapshot.table_at(0)
    mappings = sorted(
        xpath(rule, "attribute-mappings/mapping"), key=lambda m: text(m, "dest").lower()
    )
    for mapping in mappings:
        expression = text(mapping, "expression")
        if expression:
            source, flow_type = expression, "Expression"
        elif text(mapping, "src/attr"):
            source, flow_type = text(mapping, "src/attr"), "Direct"
        else:
            source, flow_type = text(mapping, "src"), "Constant"
        table.add_row_if_absent(
            [
                text(mapping, "dest"),
                source,
                flow_type,
                mapping.get("execute-once", ""),
                text(mapping, "valueMergeType"),
            ]
        )
    if not mappings:
        table.add_placeholder_row()


def rule_diffsets(configs: Configs, ref: RuleRef) -> list[DiffSet]:
    """Diff the four tables of one sync rule."""
    schemas = [
        simple_ordered_settings_snapshot(DESCRIPTION_COLUMNS, name="Description"),
        simple_ordered_settings_snapshot(
            SCOPING_COLUMNS, key_count=SCOPING_COLUMNS, name="ScopingFilter"
        ),
        simple_ordered_settings_snapshot(JOIN_COLUMNS, key_count=JOIN_COLUMNS, name="JoinRules"),
        simple_settings_snapshot(TRANSFORMATION_COLUMNS, name="Transformations"),
    ]
    fills = [fill_description, fill_scoping_filter, fill_join_rules, fill_transformations]
    return [
        build_diffset(schema, partial(fill, ref=ref), configs, plan)
        for schema, fill, plan in zip(schemas, fills, rule_plans())
    ]


def rule_policies(default_rule: bool) -> list:
    """Visibility policies of a sync rule section.

    Out-of-box rules stay collapsible when only their absolute precedence
    changed; ``Disabled`` and ``Enable Password Sync`` changes always show.
    """
    policies = []
    if default_rule:
        policies.append(
            default_rule_policy(
                disregarded={"Precedence"}, protected={"Disabled", "Enable Password Sync"}
            )
        )
    policies.append(force_no_hide_when_changed)
    return policies


def rule_headers():
    return [
        simple_header([("Setting", 35), ("Configuration", 65)], title="Description"),
        simple_header(
            [("Group#", 10), ("Attribute", 30), ("Operator", 20), ("Value", 40)],
            title="Scoping Filter",
        ),
        simple_header(
            [("Group#", 10), ("Source Attribute", 35), ("Target Attribute", 35),
             ("Case Sensitive", 20)],
            title="Join Rules",
        ),
        simple_header(
            [("Target Attribute", 20), ("Source", 45), ("Flow Type", 10), ("Apply Once", 10),
             ("Merge Type", 15)],
            title="Transformations",
        ),
    ]


def rule_plans():
    return [
        simple_ordered_settings_plan(DESCRIPTION_COLUMNS),
        simple_ordered_settings_plan(SCOPING_COLUMNS),
        simple_ordered_settings_plan(JOIN_COLUMNS),
        simple_settings_plan(TRANSFORMATION_COLUMNS),
    ]


def analyze_rule(configs: Configs, ref: RuleRef) -> tuple[list[DiffSet], SyncRuleChange, bool]:
    """Diff, resolve and classify one sync rule.

    Returns:
        (diff sets, classification, section can hide)
    """
    pilot_rule = find_rule(configs.pilot, ref.connector, ref.name)
    production_rule = find_rule(configs.production, ref.connector, ref.name)
    default_rule = is_default_rule(pilot_rule if pilot_rule is not None else production_rule)

    diffsets = rule_diffsets(configs, ref)
    visibility = resolve(diffsets, rule_policies(default_rule))
    change = classify_sync_rule(
        pilot_rule, production_rule, changed=not visibility.can_hide, connector=ref.connector
    )
    return diffsets, change, visibility.can_hide


def rule_guid(configs: Configs, ref: RuleRef) -> str:
    """Section guid of a rule; the production id wins so jump links agree."""
    for root in (configs.production, configs.pilot):
        rule = find_rule(root, ref.connector, ref.name)
        if rule is not None:
            return text(rule, "id")
    return ""


def document_sync_rule(
    renderer: TableRenderer, configs: Configs, ref: RuleRef, context: LogContext
) -> SyncRuleChange:
    """Write one sync rule section and return its classification."""
    guid = rule_guid(configs, ref)
    context = context.bind(sync_rule=ref.name, sync_rule_guid=guid)
    log = context.adapter(logger)

    with trace_span(log, f"sync rule {ref.name}"):
        log.info("Processing Sync Rule.")
        diffsets, change, can_hide = analyze_rule(configs, ref)
        css_class = "CanHide" if can_hide else ""

        renderer.write_section_header(ref.name, 5, ref.name, guid, css_class)
        for diffset, plan, header in zip(diffsets, rule_plans(), rule_headers()):
            renderer.write_table(diffset, plan, header, css_class=css_class)

        if change.kind is not ChangeType.UNCHANGED:
            log.info(f"Sync rule classified as '{change.kind.value}'")
            renderer.write(
                f'<div class="SyncRuleChange" data-change="{change.kind.value}">'
                f"{escape_html(json.dumps(change.to_dict(), ensure_ascii=False))}</div>\n"
            )
        return change


def connector_rule_names(root, connector: str, direction: str) -> list[str]:
    connector_node = connector_element(root, connector)
    if connector_node is None:
        return []
    return [
        text(rule, "name")
        for rule in xpath(
            root,
            "SynchronizationRules/synchronizationRule"
            f"[{UPPERCASE_XPATH.format('connector')} = $guid and direction = $direction]",
            guid=text(connector_node, "id").upper(),
            direction=direction,
        )
    ]


def document_connector_sync_rules(
    renderer: TableRenderer, configs: Configs, connector: str, context: LogContext
) -> list[SyncRuleChange]:
    """Write the Synchronization Rules section of one connector.

    Rules are listed per direction: pilot rules sorted by name, followed by
    the production-only rules.

    Returns:
        Classification of every rule written
    """
    log = context.adapter(logger)
    changes = []
    connector_guid = context.get("connector_guid")
    renderer.write_section_header(
        "Synchronization Rules", 3, "Synchronization Rules", connector_guid
    )

    for direction in DIRECTIONS:
        title = f"{direction} Synchronization Rules"
        renderer.write_section_header(direction, 4, title, connector_guid)
        names = pilot_then_production(
            connector_rule_names(configs.pilot, connector, direction),
            connector_rule_names(configs.production, connector, direction),
        )
        if not names:
            renderer.write_paragraph(
                f"There are no <b>{title}</b> configured.", css_class="CanHide"
            )
            continue

        for name in names:
            ref = RuleRef(connector=connector, name=name, direction=direction)
            rule_renderer = renderer.child()
            with section_guard(log, f"sync rule {name}"):
                changes.append(document_sync_rule(rule_renderer, configs, ref, context))
                renderer.extend(rule_renderer)

    return changes


def collect_sync_rule_changes(configs: Configs) -> list[SyncRuleChange]:
    """Classify every sync rule of every connector without rendering.

    Returns:
        The changed rules, ordered by connector, direction and rule name
    """
    connectors = pilot_then_production(
        texts(configs.pilot, "Connectors/ma-data/name"),
        texts(configs.production, "Connectors/ma-data/name"),
    )
    changes = []
    for connector in connectors:
        for direction in DIRECTIONS:
            names = pilot_then_production(
                connector_rule_names(configs.pilot, connector, direction),
                connector_rule_names(configs.production, connector, direction),
            )
            for name in names:
                _, change, _ = analyze_rule(configs, RuleRef(connector, name, direction))
                if change.kind is not ChangeType.UNCHANGED:
                    changes.append(change)
    return changes
