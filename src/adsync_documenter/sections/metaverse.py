"""Metaverse configuration: object types and the deletion rules summary.

Each metaverse object type is documented as a three-level table::

    Attribute -> inbound precedence (one row per inbound sync rule
                 flowing into the attribute) -> scoping conditions

The precedence is stored as the relative rank of the rule among the rules
contributing to the attribute, so only a change of order is reported, not a
renumbering of absolute precedence values.
"""

import logging
from functools import partial

from ..config import NAMESPACES
from ..context import LogContext, section_guard, trace_span
from ..models import Column, Snapshot
from ..print_plan import HeaderCell, PrintPlan, PrintPlanEntry
from ..render import TableRenderer, TableSize
from .base import (
    Configs,
    attribute_type,
    build_diffset,
    connector_by_guid,
    mapping_source,
    pilot_then_production,
    sync_rules,
    text,
    texts,
    write_table_section,
    xpath,
)

logger = logging.getLogger(__name__)

SECTION_TITLE = "Metaverse Configuration"
OBJECT_TYPES_TITLE = "Metaverse Object Types"
DELETION_RULES_TITLE = "Metaverse Object Deletion Rules Summary"

CLASS_XPATH = "GlobalSettings//mv-data//dsml:class"
MS_DSML = NAMESPACES["ms-dsml"]


def object_type_names(root) -> list[str]:
    return texts(root, f"{CLASS_XPATH}/dsml:name")


def object_type_snapshot() -> Snapshot:
    """Empty Attribute -> Precedence -> Scoping Condition snapshot."""
    snapshot = Snapshot(name="MetaverseObjectType")
    snapshot.add_table(
        "Attributes",
        [
            Column("Attribute", primary_key=True),
            Column("Type"),
            Column("Multi-valued"),
            Column("Indexed"),
        ],
    )
    snapshot.add_table(
        "Precedence",
        [
            Column("Attribute", primary_key=True),
            Column("Precedence", value_type=int),
            Column("Connector", primary_key=True),
            Column("Inbound Sync Rule", primary_key=True),
            Column("Source"),
            Column("ConnectorGuid", change_ignored=True),
            Column("SyncRuleGuid", change_ignored=True),
        ],
    )
    snapshot.add_table(
        "ScopingConditions",
        [
            Column("Attribute", primary_key=True),
            Column("Connector", primary_key=True),
            Column("Inbound Sync Rule", primary_key=True),
            Column("Group#", value_type=int, primary_key=True),
            Column("Scope#", value_type=int, primary_key=True),
            Column("CS Attribute", primary_key=True),
            Column("Operator", primary_key=True),
            Column("Value"),
            Column("ConnectorGuid", change_ignored=True),
            Column("SyncRuleGuid", change_ignored=True),
        ],
    )
    snapshot.declare_relation("Attributes", ["Attribute"], "Precedence", ["Attribute"])
    snapshot.declare_relation(
        "Precedence",
        ["Attribute", "Connector", "Inbound Sync Rule"],
        "ScopingConditions",
        ["Attribute", "Connector", "Inbound Sync Rule"],
    )
    return snapshot


def object_type_plan() -> PrintPlan:
    entries = [PrintPlanEntry(0, 0, sort_order=0)]
    entries += [PrintPlanEntry(0, c) for c in (1, 2, 3)]
    entries += [
        PrintPlanEntry(1, 0, hidden=True, sort_order=0),
        PrintPlanEntry(1, 1, sort_order=1),
        PrintPlanEntry(1, 2, jump_to_bookmark_index=5),
        PrintPlanEntry(1, 3, jump_to_bookmark_index=6),
        PrintPlanEntry(1, 4),
        PrintPlanEntry(1, 5, hidden=True, change_ignored=True),
        PrintPlanEntry(1, 6, hidden=True, change_ignored=True),
    ]
    entries += [PrintPlanEntry(2, c, hidden=True, sort_order=c) for c in range(5)]
    entries += [PrintPlanEntry(2, c) for c in (5, 6, 7)]
    entries += [
        PrintPlanEntry(2, 8, hidden=True, change_ignored=True),
        PrintPlanEntry(2, 9, hidden=True, change_ignored=True),
    ]
    return PrintPlan(entries)


def object_type_header() -> list[HeaderCell]:
    return [
        HeaderCell(0, 0, "Attribute", row_span=3, width=15),
        HeaderCell(0, 1, "Type", row_span=3, width=10),
        HeaderCell(0, 2, "Multi-valued", row_span=3, width=5),
        HeaderCell(0, 3, "Indexed", row_span=3, width=5),
        HeaderCell(0, 4, "Precedence", col_span=7),
        HeaderCell(1, 0, "Rank", row_span=2, width=5),
        HeaderCell(1, 1, "Connector", row_span=2, width=10),
        HeaderCell(1, 2, "Inbound Sync Rule", row_span=2, width=15),
        HeaderCell(1, 3, "Source", row_span=2, width=15),
        HeaderCell(1, 4, "Scoping Condition", col_span=3),
        HeaderCell(2, 0, "CS Attribute", width=7),
        HeaderCell(2, 1, "Operator", width=6),
        HeaderCell(2, 2, "Value", width=7),
    ]


def fill_object_type(snapshot: Snapshot, root, pilot: bool, object_type: str, log) -> None:
    """Shred one metaverse object type's attributes and inbound flows."""
    attributes = snapshot["Attributes"]
    precedence = snapshot["Precedence"]
    scoping = snapshot["ScopingConditions"]

    refs = texts(root, f"{CLASS_XPATH}[dsml:name = $name]/dsml:attribute/@ref", name=object_type)
    for attribute in sorted(ref.strip("#") for ref in refs):
        info = xpath(
            root, "GlobalSettings//mv-data//dsml:attribute-type[dsml:name = $name]", name=attribute
        )
        if not info:
            log.warning(f"No attribute-type definition for metaverse attribute '{attribute}'")
            continue
        definition = info[0]
        attributes.add_row_if_absent(
            [
                attribute,
                attribute_type(
                    text(definition, "dsml:syntax"),
                    definition.get(f"{{{MS_DSML}}}indexable"),
                ),
                "No" if definition.get("single-value", "").lower() == "true" else "Yes",
                "Yes" if definition.get(f"{{{MS_DSML}}}indexed", "").lower() == "true" else "No",
            ],
            log=log,
        )

        rules = sync_rules(
            root,
            "targetObjectType = $object_type and direction = 'Inbound' "
            "and attribute-mappings/mapping/dest = $attribute",
            object_type=object_type,
            attribute=attribute,
        )
        rules.sort(key=lambda rule: int(text(rule, "precedence", "0") or 0))

        for rank, rule in enumerate(rules, start=1):
            rule_name = text(rule, "name")
            connector_guid = text(rule, "connector").upper()
            connector = connector_by_guid(root, connector_guid)
            if connector is None:
                log.warning(
                    f"Unable to resolve connector '{connector_guid}' of sync rule '{rule_name}', "
                    f"skipping its flow into '{attribute}'"
                )
                continue
            connector_name = text(connector, "name")
            rule_guid = text(rule, "id")
            mapping = xpath(
                rule, "attribute-mappings/mapping[dest = $attribute]", attribute=attribute
            )[0]

            precedence.add_row_if_absent(
                [
                    attribute,
                    rank,
                    connector_name,
                    rule_name,
                    mapping_source(mapping, "??"),
                    connector_guid,
                    rule_guid,
                ],
                log=log,
            )

            for group, conditions in enumerate(xpath(rule, "synchronizationCriteria/conditions")):
                for index, scope in enumerate(xpath(conditions, "scope")):
                    scoping.add_row_if_absent(
                        [
                            attribute,
                            connector_name,
                            rule_name,
                            group,
                            index,
                            text(scope, "csAttribute"),
                            text(scope, "csOperator"),
                            text(scope, "csValue"),
                            connector_guid,
                            rule_guid,
                        ],
                        log=log,
                    )


def document_object_type(
    renderer: TableRenderer, configs: Configs, object_type: str, context: LogContext
) -> None:
    """Write the section of one metaverse object type."""
    context = context.bind(object_type=object_type)
    log = context.adapter(logger)
    with trace_span(log, f"metaverse object type {object_type}"):
        log.info("Processing Metaverse Object Type.")
        plan = object_type_plan()
        diffset = build_diffset(
            object_type_snapshot(),
            partial(fill_object_type, object_type=object_type, log=log),
            configs,
            plan,
        )
        write_table_section(
            renderer, object_type, 4, diffset, plan, object_type_header(), size=TableSize.HUGE
        )


def deletion_rules_snapshot() -> Snapshot:
    """Empty Object Type -> Connector -> Deletion Rule snapshot."""
    snapshot = Snapshot(name="MetaverseObjectDeletionRules")
    snapshot.add_table("MetaverseObjectTypes", [Column("Object Type", primary_key=True)])
    snapshot.add_table(
        "Connectors",
        [
            Column("Object Type", primary_key=True),
            Column("Connector", primary_key=True),
            Column("ConnectorGuid", change_ignored=True),
        ],
    )
    snapshot.add_table(
        "DeletionRules",
        [
            Column("Object Type", primary_key=True),
            Column("Connector", primary_key=True),
            Column("Inbound Sync Rule", primary_key=True),
            Column("Sync Rule Link Type"),
            Column("ConnectorGuid", change_ignored=True),
            Column("SyncRuleGuid", change_ignored=True),
        ],
    )
    snapshot.declare_relation(
        "MetaverseObjectTypes", ["Object Type"], "Connectors", ["Object Type"]
    )
    snapshot.declare_relation(
        "Connectors", ["Object Type", "Connector"], "DeletionRules", ["Object Type", "Connector"]
    )
    return snapshot


def deletion_rules_plan() -> PrintPlan:
    return PrintPlan(
        [
            PrintPlanEntry(0, 0, sort_order=0),
            PrintPlanEntry(1, 0, hidden=True, sort_order=0),
            PrintPlanEntry(1, 1, sort_order=1, jump_to_bookmark_index=2),
            PrintPlanEntry(1, 2, hidden=True, change_ignored=True),
            PrintPlanEntry(2, 0, hidden=True, sort_order=0),
            PrintPlanEntry(2, 1, hidden=True, sort_order=1),
            PrintPlanEntry(2, 2, sort_order=2, jump_to_bookmark_index=5),
            PrintPlanEntry(2, 3),
            PrintPlanEntry(2, 4, hidden=True, change_ignored=True),
            PrintPlanEntry(2, 5, hidden=True, change_ignored=True),
        ]
    )


def deletion_rules_header() -> list[HeaderCell]:
    return [
        HeaderCell(0, 0, "Object Type", row_span=2, width=20),
        HeaderCell(0, 1, "Deletion Rules", col_span=3),
        HeaderCell(1, 0, "Connector", width=25),
        HeaderCell(1, 1, "Synchronization Rule", width=40),
        HeaderCell(1, 2, "Link Type", width=15),
    ]


def fill_deletion_rules(snapshot: Snapshot, root, pilot: bool, object_type: str, log) -> None:
    if object_type not in object_type_names(root):
        return
    snapshot["MetaverseObjectTypes"].add_row([object_type])
    connectors = snapshot["Connectors"]
    deletion_rules = snapshot["DeletionRules"]

    rules = sync_rules(
        root,
        "direction = 'Inbound' and (linkType = 'Provision' or linkType = 'StickyJoin') "
        "and targetObjectType = $object_type",
        object_type=object_type,
    )
    for rule in rules:
        rule_name = text(rule, "name")
        connector_guid = text(rule, "connector").upper()
        connector = connector_by_guid(root, connector_guid)
        if connector is None:
            log.warning(
                f"Unable to resolve connector '{connector_guid}' of deletion rule '{rule_name}'"
            )
            continue
        connector_name = text(connector, "name")

        connectors.add_row_if_absent([object_type, connector_name, connector_guid], log=log)
        deletion_rules.add_row_if_absent(
            [
                object_type,
                connector_name,
                rule_name,
                text(rule, "linkType"),
                connector_guid,
                text(rule, "id"),
            ],
            log=log,
        )


def document_deletion_rules(
    renderer: TableRenderer, configs: Configs, object_types: list[str], context: LogContext
) -> None:
    """Write the deletion rules summary, one table across all object types."""
    log = context.adapter(logger)
    with trace_span(log, "metaverse deletion rules"):
        log.info(f"Processing {DELETION_RULES_TITLE}.")
        plan = deletion_rules_plan()
        diffsets = []
        for object_type in object_types:
            type_log = context.bind(object_type=object_type).adapter(logger)
            diffsets.append(
                build_diffset(
                    deletion_rules_snapshot(),
                    partial(fill_deletion_rules, object_type=object_type, log=type_log),
                    configs,
                    plan,
                )
            )
        if not diffsets:
            renderer.write_section_header(DELETION_RULES_TITLE, 3)
            renderer.write_paragraph("There are no metaverse object types configured.")
            return
        write_table_section(
            renderer, DELETION_RULES_TITLE, 3, diffsets, plan, deletion_rules_header()
        )


def document_metaverse(
    renderer: TableRenderer, configs: Configs, context: LogContext = LogContext()
) -> None:
    """Write the Metaverse Configuration section.

    Every object type is rendered into its own child renderer inside a
    section guard, so one broken object type does not lose the others.
    """
    log = context.adapter(logger)
    with trace_span(log, "metaverse configuration"):
        log.info(f"Processing {SECTION_TITLE}.")
        renderer.write_section_header(SECTION_TITLE, 2)

        object_types = pilot_then_production(
            object_type_names(configs.pilot), object_type_names(configs.production)
        )

        types_renderer = renderer.child()
        types_renderer.write_section_header(OBJECT_TYPES_TITLE, 3)
        for object_type in object_types:
            section = types_renderer.child()
            with section_guard(context.bind(object_type=object_type).adapter(logger), object_type):
                document_object_type(section, configs, object_type, context)
                types_renderer.extend(section)
        renderer.extend(types_renderer)

        section = renderer.child()
        with section_guard(log, DELETION_RULES_TITLE):
            document_deletion_rules(section, configs, object_types, context)
            renderer.extend(section)
