"""Connector sections.

Every connector gets a level-2 section followed by the sub-sections of its
variant. The variant is looked up in :data:`CONNECTOR_VARIANTS` by
``(category, subtype)``, then by ``(category, None)``, falling back to the
Extensible2 layout which fits any ECMA2 based connector.
"""

import base64
import binascii
import logging
from functools import partial
from typing import Callable

from ..config import NAMESPACES
from ..context import LogContext, section_guard, trace_span
from ..diffing import DiffSet
from ..models import Column, Snapshot
from ..print_plan import (
    HeaderCell,
    PrintPlan,
    PrintPlanEntry,
    simple_header,
    simple_ordered_settings_plan,
    simple_ordered_settings_snapshot,
    simple_settings_plan,
    simple_settings_snapshot,
)
from ..render import TableRenderer
from ..sorting import path_sort_segments
from ..visibility import css_visibility_class, resolve
from .base import (
    ENABLED_RULE,
    Configs,
    attribute_type,
    build_diffset,
    connector_element,
    connector_rules_condition,
    first,
    mapping_source,
    pilot_then_production,
    scoping_condition_text,
    sync_rules,
    text,
    texts,
    write_table_section,
    xpath,
)
from .sync_rules import RuleRef, document_connector_sync_rules, rule_guid

logger = logging.getLogger(__name__)

ConnectorBuilder = Callable[[TableRenderer, Configs, str, LogContext], None]

MASKED_VALUE = "******"
FLOW_DIRECTION_IMPORT = "←"
FLOW_DIRECTION_EXPORT = "→"
MAX_CONTAINER_SEGMENTS = 10
MS_DSML = NAMESPACES["ms-dsml"]

SETTINGS_HEADER = [("Setting", 50), ("Configuration", 50)]


def connector_names(root) -> list[str]:
    return texts(root, "Connectors/ma-data/name")


def connector_guid(configs: Configs, connector: str) -> str:
    """Section guid of a connector; the production id wins so jump links agree."""
    for root in (configs.production, configs.pilot):
        node = connector_element(root, connector)
        if node is not None:
            return text(node, "id")
    return ""


def _connector_node(configs: Configs, connector: str):
    node = connector_element(configs.pilot, connector)
    return node if node is not None else connector_element(configs.production, connector)


def anchor_class(configs: Configs, connector: str) -> str:
    """``toc-Added`` for pilot-only, ``toc-Deleted`` for production-only connectors."""
    in_pilot = connector_element(configs.pilot, connector) is not None
    in_production = connector_element(configs.production, connector) is not None
    if in_pilot and not in_production:
        return "toc-Added"
    if in_production and not in_pilot:
        return "toc-Deleted"
    return "toc"


def write_tables_section(
    renderer: TableRenderer,
    title: str,
    guid: str | None,
    tables: list[tuple[DiffSet, PrintPlan, list[HeaderCell]]],
) -> None:
    """Write one header above several independent tables.

    The header collapses only when every table can hide.
    """
    section = resolve([diffset for diffset, _, _ in tables])
    renderer.write_section_header(title, 3, title, guid, section.css_class)
    for diffset, plan, header in tables:
        renderer.write_table(diffset, plan, header, css_class=css_visibility_class([diffset]))


# Properties


def fill_properties(snapshot: Snapshot, root, pilot: bool, connector: str) -> None:
    node = connector_element(root, connector)
    if node is None:
        return
    table = snapshot.table_at(0)
    table.add_row([0, "Connector Name", text(node, "name")])
    table.add_row([1, "Connector Type", text(node, "category")])
    table.add_row([2, "Description", text(node, "description")])
    optional = ((3, "Sub Type", "subtype"), (4, "List Name", "ma-listname"),
                (5, "Company", "ma-companyname"))
    for order, setting, path in optional:
        value = text(node, path)
        if value:
            table.add_row([order, setting, value])
    table.add_row([6, "Creation Time", text(node, "creation-time")])
    table.add_row([7, "Last Modification Time", text(node, "last-modification-time")])


def document_properties(
    renderer: TableRenderer, configs: Configs, connector: str, context: LogContext
) -> None:
    """Connector Properties."""
    plan = simple_ordered_settings_plan(3)
    diffset = build_diffset(
        simple_ordered_settings_snapshot(3, name="ConnectorProperties"),
        partial(fill_properties, connector=connector),
        configs,
        plan,
    )
    title = "Connector Properties"
    write_table_section(
        renderer, title, 3, diffset, plan, simple_header(SETTINGS_HEADER), title,
        context.get("connector_guid"),
    )


# Active Directory


def fill_forest_connection(snapshot: Snapshot, root, pilot: bool, connector: str) -> None:
    node = connector_element(root, connector)
    if node is None:
        return
    table = snapshot.table_at(0)
    config = "private-configuration/adma-configuration/"
    table.add_row([1, "Forest Name", text(node, config + "forest-name")])
    table.add_row([2, "User Name", text(node, config + "forest-login-user")])
    table.add_row([3, "Domain", text(node, config + "forest-login-domain")])


def fill_connection_options(snapshot: Snapshot, root, pilot: bool, connector: str) -> None:
    config = first(
        connector_element(root, connector), "private-configuration/adma-configuration"
    )
    if config is None:
        return
    table = snapshot.table_at(0)
    if text(config, "sign-and-seal") == "1":
        table.add_row([1, "Sign and Encrypt LDAP traffic", "Yes"])
    elif text(config, "ssl-bind") == "1":
        table.add_row([2, "Enable SSL for the connection", "Yes"])
        crl_check = "Yes" if text(config, "ssl-bind/@crl-check") == "1" else "No"
        table.add_row([3, "Enable CRL Checking", crl_check])


def document_forest_connection(
    renderer: TableRenderer, configs: Configs, connector: str, context: LogContext
) -> None:
    """Forest Connection Information: forest credentials and LDAP options."""
    plan = simple_ordered_settings_plan(3)
    connection = build_diffset(
        simple_ordered_settings_snapshot(3, name="ForestConnection"),
        partial(fill_forest_connection, connector=connector),
        configs,
        plan,
    )
    options = build_diffset(
        simple_ordered_settings_snapshot(3, name="ConnectionOptions"),
        partial(fill_connection_options, connector=connector),
        configs,
        plan,
    )
    write_tables_section(
        renderer,
        "Forest Connection Information",
        context.get("connector_guid"),
        [
            (connection, plan, simple_header(SETTINGS_HEADER)),
            (options, plan, simple_header(SETTINGS_HEADER, title="Connection Options")),
        ],
    )


def partition_names(root, connector: str) -> list[str]:
    return texts(
        connector_element(root, connector), "ma-partition-data/partition[selected = 1]/name"
    )


def containers_snapshot() -> Snapshot:
    snapshot = Snapshot(name="Containers")
    columns = [Column("Container", primary_key=True), Column("Setting", primary_key=True)]
    columns += [
        Column(f"DNPart{i + 1}", change_ignored=True) for i in range(MAX_CONTAINER_SEGMENTS)
    ]
    snapshot.add_table("Containers", columns)
    return snapshot


def containers_plan() -> PrintPlan:
    entries = [PrintPlanEntry(0, 0), PrintPlanEntry(0, 1)]
    entries += [
        PrintPlanEntry(0, i + 2, hidden=True, sort_order=i, change_ignored=True)
        for i in range(MAX_CONTAINER_SEGMENTS)
    ]
    return PrintPlan(entries)


def fill_containers(
    snapshot: Snapshot, root, pilot: bool, connector: str, partition: str
) -> None:
    node = first(
        connector_element(root, connector),
        "ma-partition-data/partition[selected = 1 and name = $name]",
        name=partition,
    )
    if node is None:
        return
    table = snapshot.table_at(0)
    for setting, path in (("Include", "inclusions/inclusion"), ("Exclude", "exclusions/exclusion")):
        for container in texts(node, f"filter/containers/{path}"):
            segments = path_sort_segments(container, max_segments=MAX_CONTAINER_SEGMENTS)
            table.add_row_if_absent([container, setting] + segments)


def document_partitions(
    renderer: TableRenderer, configs: Configs, connector: str, context: LogContext
) -> None:
    """Partitions Information: included and excluded containers per partition."""
    guid = context.get("connector_guid")
    renderer.write_section_header("Partitions Information", 3, "Partitions Information", guid)
    partitions = pilot_then_production(
        partition_names(configs.pilot, connector), partition_names(configs.production, connector)
    )
    if not partitions:
        renderer.write_paragraph("There are no partitions selected.", css_class="CanHide")
        return

    plan = containers_plan()
    for partition in partitions:
        diffset = build_diffset(
            containers_snapshot(),
            partial(fill_containers, connector=connector, partition=partition),
            configs,
            plan,
        )
        section = resolve(diffset)
        renderer.write_section_header(
            f"Partition: {partition}", 4, partition, guid, section.css_class
        )
        renderer.write_table(
            diffset,
            plan,
            simple_header([("Container", 70), ("Setting", 30)], title="Containers"),
            css_class=section.css_class,
        )


def fill_provisioning_hierarchy(snapshot: Snapshot, root, pilot: bool, connector: str) -> None:
    node = connector_element(root, connector)
    if node is None:
        return
    table = snapshot.table_at(0)
    for mapping in xpath(node, "component_mappings/mapping"):
        table.add_row_if_absent([text(mapping, "dn_component"), text(mapping, "object_class")])


def document_provisioning_hierarchy(
    renderer: TableRenderer, configs: Configs, connector: str, context: LogContext
) -> None:
    """Provisioning Hierarchy: DN component to object class mappings."""
    plan = simple_settings_plan(2)
    diffset = build_diffset(
        simple_settings_snapshot(2, name="ProvisioningHierarchy"),
        partial(fill_provisioning_hierarchy, connector=connector),
        configs,
        plan,
    )
    title = "Provisioning Hierarchy"
    guid = context.get("connector_guid")
    if not diffset.table_at(0).rows:
        renderer.write_section_header(title, 3, title, guid)
        renderer.write_paragraph("The provisioning hierarchy is not enabled.", css_class="CanHide")
        return
    write_table_section(
        renderer, title, 3, diffset, plan,
        simple_header([("DN Component", 50), ("Object Class Mapping", 50)]), title, guid,
    )


# Extensible2


def fill_extension_information(snapshot: Snapshot, root, pilot: bool, connector: str) -> None:
    node = connector_element(root, connector)
    if node is None:
        return
    table = snapshot.table_at(0)
    extension = "private-configuration/MAConfig/extension-config/"
    table.add_row([1, "Connector Assembly Name", text(node, extension + "filename")])
    table.add_row([2, "Connector Assembly Version", text(node, extension + "assembly-version")])
    table.add_row([3, "Connector Capability Bits", text(node, extension + "capability-bits")])


def document_extension_information(
    renderer: TableRenderer, configs: Configs, connector: str, context: LogContext
) -> None:
    plan = simple_ordered_settings_plan(3)
    diffset = build_diffset(
        simple_ordered_settings_snapshot(3, name="ExtensionInformation"),
        partial(fill_extension_information, connector=connector),
        configs,
        plan,
    )
    title = "Extension Information"
    write_table_section(
        renderer, title, 3, diffset, plan,
        simple_header([("Setting", 30), ("Configuration", 70)]), title,
        context.get("connector_guid"),
    )


def parameter_value(definition, value, log) -> tuple[str, str]:
    """Display value and ``Encrypted?`` flag of a connector parameter.

    Args:
        definition: ``<parameter>`` from ``parameter-definitions``
        value: Raw value from ``parameter-values``
        log: Logger for undecodable file parameters

    Returns:
        (configuration, encrypted)
    """
    parameter_type = text(definition, "type").lower()
    if parameter_type.startswith("encrypted"):
        return MASKED_VALUE, "Yes"
    if parameter_type == "checkbox":
        return ("Yes" if value.strip().lower() in ("1", "true") else "No"), "No"
    if parameter_type == "file" and value:
        try:
            return base64.b64decode(value, validate=True).decode("utf-8"), "No"
        except (binascii.Error, UnicodeDecodeError) as e:
            log.error(f"Unable to decode file parameter '{text(definition, 'name')}': {e}")
    return value, "No"


def fill_parameters(
    snapshot: Snapshot, root, pilot: bool, connector: str, use: str, log
) -> None:
    node = connector_element(root, connector)
    if node is None:
        return
    table = snapshot.table_at(0)
    definitions = xpath(
        node,
        "private-configuration/MAConfig/parameter-definitions/parameter"
        "[use = $use and type != 'label' and type != 'divider']",
        use=use,
    )
    for order, definition in enumerate(definitions):
        name = text(definition, "name")
        value = text(
            node,
            "private-configuration/MAConfig/parameter-values/parameter"
            "[@use = $use and @name = $name]",
            use=use,
            name=name,
        )
        configuration, encrypted = parameter_value(definition, value, log)
        table.add_row_if_absent([order, name, configuration, encrypted])


def document_parameters(
    renderer: TableRenderer,
    configs: Configs,
    connector: str,
    context: LogContext,
    use: str,
    title: str,
) -> None:
    """Connector parameters of one ``use`` (``connectivity`` or ``global``)."""
    plan = simple_ordered_settings_plan(4)
    diffset = build_diffset(
        simple_ordered_settings_snapshot(4, name=title.replace(" ", "")),
        partial(fill_parameters, connector=connector, use=use, log=context.adapter(logger)),
        configs,
        plan,
    )
    write_table_section(
        renderer, title, 3, diffset, plan,
        simple_header([("Setting", 25), ("Configuration", 65), ("Encrypted?", 10)]), title,
        context.get("connector_guid"),
    )


document_connectivity = partial(
    document_parameters, use="connectivity", title="Connectivity Information"
)
document_global_parameters = partial(document_parameters, use="global", title="Global Parameters")


# Generic SQL

GENERIC_SQL_SCHEMA_PAGES = 5


def fill_schema_page(snapshot: Snapshot, root, pilot: bool, connector: str, page: int) -> None:
    node = connector_element(root, connector)
    if node is None:
        return
    table = snapshot.table_at(0)
    definitions = xpath(
        node,
        "private-configuration/MAConfig/parameter-definitions/parameter"
        "[use = 'schema' and type != 'label' and type != 'divider' and page-number = $page]",
        page=page,
    )
    for order, definition in enumerate(definitions):
        name = text(definition, "name")
        value = first(
            node,
            "private-configuration/MAConfig/parameter-values/parameter"
            "[@use = 'schema' and @name = $name and @page-number = $page]",
            name=name,
            page=page,
        )
        if value is None:
            configuration = ""
        elif value.get("encrypted") == "1":
            configuration = MASKED_VALUE
        else:
            configuration = value.text or ""
        table.add_row_if_absent([order, name, configuration])


def document_generic_sql_schema(
    renderer: TableRenderer, configs: Configs, connector: str, context: LogContext
) -> None:
    """Schema Information of a Generic SQL connector, one table per wizard page."""
    guid = context.get("connector_guid")
    title = "Schema Information"
    renderer.write_section_header(title, 3, title, guid)
    plan = simple_ordered_settings_plan(3)
    for page in range(1, GENERIC_SQL_SCHEMA_PAGES + 1):
        diffset = build_diffset(
            simple_ordered_settings_snapshot(3, name=f"Schema{page}"),
            partial(fill_schema_page, connector=connector, page=page),
            configs,
            plan,
        )
        if not diffset.table_at(0).rows:
            continue
        page_title = f"Schema {page}"
        write_table_section(
            renderer, page_title, 4, diffset, plan,
            simple_header([("Setting", 30), ("Configuration", 70)]), page_title, guid,
        )


def anchor_snapshot() -> Snapshot:
    snapshot = Snapshot(name="AnchorConfiguration")
    snapshot.add_table("ObjectTypes", [Column("Object Type", primary_key=True)])
    snapshot.add_table(
        "Anchors",
        [
            Column("Object Type", primary_key=True),
            Column("Anchor Attribute", primary_key=True),
            Column("Anchor Order", value_type=int, primary_key=True),
        ],
    )
    snapshot.declare_relation("ObjectTypes", ["Object Type"], "Anchors", ["Object Type"])
    return snapshot


def anchor_plan() -> PrintPlan:
    return PrintPlan(
        [
            PrintPlanEntry(0, 0, sort_order=0),
            PrintPlanEntry(1, 0, hidden=True, sort_order=0),
            PrintPlanEntry(1, 1),
            PrintPlanEntry(1, 2, hidden=True, sort_order=1),
        ]
    )


def fill_anchors(snapshot: Snapshot, root, pilot: bool, connector: str) -> None:
    node = connector_element(root, connector)
    if node is None:
        return
    object_types = snapshot["ObjectTypes"]
    anchors = snapshot["Anchors"]
    classes = xpath(node, "private-configuration/MAConfig/importing/per-class-settings/class")
    for object_class in classes:
        object_type = text(object_class, "name")
        object_types.add_row_if_absent([object_type])
        for order, attribute in enumerate(texts(object_class, "anchor/attribute")):
            anchors.add_row_if_absent([object_type, attribute, order])


def document_anchors(
    renderer: TableRenderer, configs: Configs, connector: str, context: LogContext
) -> None:
    """Anchor Configuration: anchor attributes per object type."""
    plan = anchor_plan()
    diffset = build_diffset(
        anchor_snapshot(), partial(fill_anchors, connector=connector), configs, plan
    )
    title = "Anchor Configuration"
    write_table_section(
        renderer, title, 3, diffset, plan,
        simple_header([("Object Type", 30), ("Anchor Attribute", 70)]), title,
        context.get("connector_guid"),
    )


# Common


def selected_object_types(root, connector: str) -> list[str]:
    return texts(
        connector_element(root, connector),
        "ma-partition-data/partition[position() = 1]/filter/object-classes/object-class",
    )


def fill_object_types(snapshot: Snapshot, root, pilot: bool, connector: str) -> None:
    table = snapshot.table_at(0)
    for object_type in selected_object_types(root, connector):
        table.add_row_if_absent([object_type])


def document_selected_object_types(
    renderer: TableRenderer, configs: Configs, connector: str, context: LogContext
) -> None:
    plan = simple_settings_plan(1)
    diffset = build_diffset(
        simple_settings_snapshot(1, name="SelectedObjectTypes"),
        partial(fill_object_types, connector=connector),
        configs,
        plan,
    )
    title = "Selected Object Types"
    write_table_section(
        renderer, title, 3, diffset, plan, simple_header([("Object Types", 100)]), title,
        context.get("connector_guid"),
    )


def flows_configured(root, guid: str, attribute: str) -> str:
    """Whether enabled rules of the connector import and/or export ``attribute``."""
    inbound = f"{connector_rules_condition('Inbound')} and {ENABLED_RULE}"
    outbound = f"{connector_rules_condition('Outbound')} and {ENABLED_RULE}"
    has_import = any(
        xpath(rule, "attribute-mappings/mapping/src[attr = $attribute]", attribute=attribute)
        for rule in sync_rules(root, inbound, guid=guid)
    )
    has_export = any(
        xpath(rule, "attribute-mappings/mapping[dest = $attribute]", attribute=attribute)
        for rule in sync_rules(root, outbound, guid=guid)
    )
    if has_import and has_export:
        return "Import / Export"
    if has_import:
        return "Import"
    if has_export:
        return "Export"
    return "No"


def fill_attributes(snapshot: Snapshot, root, pilot: bool, connector: str) -> None:
    node = connector_element(root, connector)
    if node is None:
        return
    table = snapshot.table_at(0)
    guid = text(node, "id").upper()
    for attribute in texts(node, "attribute-inclusion/attribute"):
        definition = first(node, ".//dsml:attribute-type[dsml:name = $name]", name=attribute)
        syntax = text(definition, "dsml:syntax")
        indexable = definition.get(f"{{{MS_DSML}}}indexable") if definition is not None else None
        multi_valued = "No" if text(definition, "@single-value").lower() == "true" else "Yes"
        table.add_row_if_absent(
            [attribute, attribute_type(syntax, indexable), multi_valued,
             flows_configured(root, guid, attribute)]
        )


def document_selected_attributes(
    renderer: TableRenderer, configs: Configs, connector: str, context: LogContext
) -> None:
    plan = simple_settings_plan(4)
    diffset = build_diffset(
        simple_settings_snapshot(4, name="SelectedAttributes"),
        partial(fill_attributes, connector=connector),
        configs,
        plan,
    )
    title = "Selected Attributes"
    header = simple_header(
        [("Attribute Name", 40), ("Type", 35), ("Multi-valued", 10), ("Flows Configured?", 15)]
    )
    write_table_section(
        renderer, title, 3, diffset, plan, header, title, context.get("connector_guid")
    )


def document_sync_rules(
    renderer: TableRenderer, configs: Configs, connector: str, context: LogContext
) -> None:
    document_connector_sync_rules(renderer, configs, connector, context)


def import_flows_snapshot() -> Snapshot:
    """Metaverse attribute -> inbound rules flowing into it."""
    snapshot = Snapshot(name="ImportAttributeFlows")
    snapshot.add_table(
        "MetaverseAttributes",
        [
            Column("Metaverse Attribute", primary_key=True),
            Column("Flow Direction", change_ignored=True),
        ],
    )
    snapshot.add_table(
        "InboundSyncRules",
        [
            Column("Metaverse Attribute", primary_key=True),
            Column("Source"),
            Column("Inbound Sync Rule", primary_key=True),
            Column("Precedence", value_type=int),
            Column("Scoping Condition"),
            Column("SyncRuleGuid", change_ignored=True),
        ],
    )
    snapshot.declare_relation(
        "MetaverseAttributes", ["Metaverse Attribute"], "InboundSyncRules", ["Metaverse Attribute"]
    )
    return snapshot


def import_flows_plan() -> PrintPlan:
    return PrintPlan(
        [
            PrintPlanEntry(0, 0, sort_order=0),
            PrintPlanEntry(0, 1, change_ignored=True),
            PrintPlanEntry(1, 0, hidden=True),
            PrintPlanEntry(1, 1),
            PrintPlanEntry(1, 2, jump_to_bookmark_index=5),
            PrintPlanEntry(1, 3, hidden=True, sort_order=0),
            PrintPlanEntry(1, 4),
            PrintPlanEntry(1, 5, hidden=True, change_ignored=True),
        ]
    )


def import_flows_header() -> list[HeaderCell]:
    return [
        HeaderCell(0, 0, "Import Flows", col_span=5),
        HeaderCell(1, 0, "Metaverse Attribute", width=20),
        HeaderCell(1, 1, FLOW_DIRECTION_IMPORT, width=5),
        HeaderCell(1, 2, "Connector Source", width=25),
        HeaderCell(1, 3, "Inbound Sync Rule", width=25),
        HeaderCell(1, 4, "Inbound Sync Rule Scoping Condition", width=25),
    ]


def _precedence(rule) -> int:
    try:
        return int(text(rule, "precedence", "0"))
    except ValueError:
        return 0


def fill_import_flows(
    snapshot: Snapshot, root, pilot: bool, configs: Configs, connector: str, object_type: str
) -> None:
    node = connector_element(root, connector)
    if node is None:
        return
    attributes = snapshot["MetaverseAttributes"]
    inbound = snapshot["InboundSyncRules"]
    rules = sync_rules(
        root,
        f"{connector_rules_condition('Inbound')} and {ENABLED_RULE} "
        "and sourceObjectType = $object_type",
        guid=text(node, "id").upper(),
        object_type=object_type,
    )
    rules = sorted(rules, key=_precedence)
    destinations = sorted(
        {dest for rule in rules for dest in texts(rule, "attribute-mappings/mapping/dest")}
    )

    for attribute in destinations:
        attributes.add_row_if_absent([attribute, FLOW_DIRECTION_IMPORT])
        rank = 0
        for rule in rules:
            mapping = first(rule, "attribute-mappings/mapping[dest = $dest]", dest=attribute)
            if mapping is None:
                continue
            rank += 1
            name = text(rule, "name")
            inbound.add_row_if_absent(
                [
                    attribute,
                    mapping_source(mapping),
                    name,
                    rank,
                    scoping_condition_text(rule),
                    rule_guid(configs, RuleRef(connector, name, "Inbound")),
                ]
            )


def document_import_flows(
    renderer: TableRenderer, configs: Configs, connector: str, context: LogContext
) -> None:
    """Import Attribute Flows Summary: per object type, which rules feed each attribute."""
    guid = context.get("connector_guid")
    title = "Import Attribute Flows Summary"
    renderer.write_section_header(title, 3, title, guid)

    object_types = pilot_then_production(
        selected_object_types(configs.pilot, connector),
        selected_object_types(configs.production, connector),
    )
    plan = import_flows_plan()
    for object_type in object_types:
        diffset = build_diffset(
            import_flows_snapshot(),
            partial(fill_import_flows, configs=configs, connector=connector,
                    object_type=object_type),
            configs,
            plan,
        )
        if not diffset.table_at(0).rows:
            continue
        section = resolve(diffset)
        renderer.write_section_header(
            object_type, 4, object_type, f"{guid}{object_type}", section.css_class
        )
        renderer.write_table(diffset, plan, import_flows_header(), css_class=section.css_class)


def export_flows_snapshot() -> Snapshot:
    """Data source attribute -> outbound rules flowing into it."""
    snapshot = Snapshot(name="ExportAttributeFlows")
    snapshot.add_table(
        "DataSourceAttributes",
        [
            Column("Data Source Attribute", primary_key=True),
            Column("Flow Direction", change_ignored=True),
        ],
    )
    snapshot.add_table(
        "OutboundSyncRules",
        [
            Column("Data Source Attribute", primary_key=True),
            Column("Source"),
            Column("Outbound Sync Rule", primary_key=True),
            Column("Precedence", value_type=int),
            Column("Scoping Condition"),
            Column("SyncRuleGuid", change_ignored=True),
        ],
    )
    snapshot.declare_relation(
        "DataSourceAttributes",
        ["Data Source Attribute"],
        "OutboundSyncRules",
        ["Data Source Attribute"],
    )
    return snapshot


def export_flows_header() -> list[HeaderCell]:
    return [
        HeaderCell(0, 0, "Export Flows", col_span=5),
        HeaderCell(1, 0, "Data Source Attribute", width=20),
        HeaderCell(1, 1, FLOW_DIRECTION_EXPORT, width=5),
        HeaderCell(1, 2, "Metaverse Source", width=25),
        HeaderCell(1, 3, "Outbound Sync Rule", width=25),
        HeaderCell(1, 4, "Outbound Sync Rule Scoping Condition", width=25),
    ]


def fill_export_flows(
    snapshot: Snapshot, root, pilot: bool, configs: Configs, connector: str, object_type: str
) -> None:
    node = connector_element(root, connector)
    if node is None:
        return
    attributes = snapshot["DataSourceAttributes"]
    outbound = snapshot["OutboundSyncRules"]
    rules = sync_rules(
        root,
        f"{connector_rules_condition('Outbound')} and {ENABLED_RULE} "
        "and targetObjectType = $object_type",
        guid=text(node, "id").upper(),
        object_type=object_type,
    )
    rules = sorted(rules, key=_precedence)
    destinations = sorted(
        {dest for rule in rules for dest in texts(rule, "attribute-mappings/mapping/dest")}
    )

    for attribute in destinations:
        attributes.add_row_if_absent([attribute, FLOW_DIRECTION_EXPORT])
        rank = 0
        for rule in rules:
            mapping = first(rule, "attribute-mappings/mapping[dest = $dest]", dest=attribute)
            if mapping is None:
                continue
            rank += 1
            name = text(rule, "name")
            outbound.add_row_if_absent(
                [
                    attribute,
                    mapping_source(mapping),
                    name,
                    rank,
                    scoping_condition_text(rule),
                    rule_guid(configs, RuleRef(connector, name, "Outbound")),
                ]
            )


def document_export_flows(
    renderer: TableRenderer, configs: Configs, connector: str, context: LogContext
) -> None:
    """Export Attribute Flows Summary: per object type, which rules write each attribute."""
    guid = context.get("connector_guid")
    title = "Export Attribute Flows Summary"
    renderer.write_section_header(title, 3, title, guid)

    object_types = pilot_then_production(
        selected_object_types(configs.pilot, connector),
        selected_object_types(configs.production, connector),
    )
    # same column layout as the import summary
    plan = import_flows_plan()
    for object_type in object_types:
        diffset = build_diffset(
            export_flows_snapshot(),
            partial(fill_export_flows, configs=configs, connector=connector,
                    object_type=object_type),
            configs,
            plan,
        )
        if not diffset.table_at(0).rows:
            continue
        section = resolve(diffset)
        renderer.write_section_header(
            object_type, 4, object_type, f"{guid}{object_type}Export", section.css_class
        )
        renderer.write_table(diffset, plan, export_flows_header(), css_class=section.css_class)


# Run profiles


def run_profile_names(root, connector: str) -> list[str]:
    return texts(connector_element(root, connector), "ma-run-data/run-configuration/name")


def run_profile_snapshot() -> Snapshot:
    snapshot = Snapshot(name="RunProfile")
    snapshot.add_table(
        "Steps",
        [Column("Step Number", value_type=int, primary_key=True), Column("Step Name")],
    )
    snapshot.add_table(
        "StepSettings",
        [
            Column("Step Number", value_type=int, primary_key=True),
            Column("Setting", primary_key=True),
            Column("Configuration"),
            Column("Setting Number", value_type=int),
        ],
    )
    snapshot.declare_relation("Steps", ["Step Number"], "StepSettings", ["Step Number"])
    return snapshot


def run_profile_plan() -> PrintPlan:
    return PrintPlan(
        [
            PrintPlanEntry(0, 0, sort_order=0),
            PrintPlanEntry(0, 1),
            PrintPlanEntry(1, 0, hidden=True, sort_order=0),
            PrintPlanEntry(1, 1),
            PrintPlanEntry(1, 2),
            PrintPlanEntry(1, 3, hidden=True, sort_order=1),
        ]
    )


def run_step_type(step_type) -> str:
    """Friendly name of a run profile step from its ``<step-type>`` element."""
    if step_type is None:
        return ""
    kind = (step_type.get("type") or "").upper()
    if kind == "DELTA-IMPORT":
        if text(step_type, "import-subtype").upper() == "TO-CS":
            return "Delta Import (Stage Only)"
        return "Delta Import and Delta Synchronization"
    if kind == "FULL-IMPORT":
        if text(step_type, "import-subtype").upper() == "TO-CS":
            return "Full Import (Stage Only)"
        return "Full Import and Delta Synchronization"
    if kind == "EXPORT":
        return "Export"
    if kind == "FULL-IMPORT-REEVALUATE-RULES":
        return "Full Import and Full Synchronization"
    if kind == "APPLY-RULES":
        subtype = text(step_type, "apply-rules-subtype")
        return {
            "APPLY-PENDING": "Delta Synchronization",
            "REEVALUATE-FLOW-CONNECTORS": "Full Synchronization",
        }.get(subtype.upper(), subtype)
    return step_type.get("type") or ""


def fill_run_profile(
    snapshot: Snapshot, root, pilot: bool, connector: str, profile: str, ad: bool = False
) -> None:
    node = connector_element(root, connector)
    if node is None:
        return
    steps = snapshot["Steps"]
    settings = snapshot["StepSettings"]
    profile_steps = xpath(
        node, "ma-run-data/run-configuration[name = $name]/configuration/step", name=profile
    )
    for number, step in enumerate(profile_steps, start=1):
        steps.add_row([number, run_step_type(first(step, "step-type"))])

        partition = text(
            node,
            "ma-partition-data/partition[translate(id, 'abcdef', 'ABCDEF') = $id]/name",
            id=text(step, "partition").upper(),
        )
        values = [
            ("Log file", text(step, "dropfile-name"), 1),
            ("Number of objects", text(step, "threshold/object"), 2),
            ("Number of deletions", text(step, "threshold/delete"), 3),
            ("Partition", partition, 4),
            ("Input file name", text(step, "custom-data/run-config/input-file"), 5),
            ("Output file name", text(step, "custom-data/run-config/output-file"), 6),
        ]
        if ad:
            step_data = "custom-data/adma-step-data/"
            values += [
                ("Batch Size", text(step, step_data + "batch-size"), 7),
                ("Page Size", text(step, step_data + "page-size"), 8),
                ("Timeout", text(step, step_data + "time-limit"), 9),
            ]
        for setting, value, order in values:
            if value:
                settings.add_row_if_absent([number, setting, value, order])


def document_run_profiles(
    renderer: TableRenderer,
    configs: Configs,
    connector: str,
    context: LogContext,
    ad: bool = False,
) -> None:
    """Run Profiles: one step table per profile."""
    guid = context.get("connector_guid")
    renderer.write_section_header("Run Profiles", 3, "Run Profiles", guid)
    profiles = pilot_then_production(
        run_profile_names(configs.pilot, connector),
        run_profile_names(configs.production, connector),
    )
    if not profiles:
        renderer.write_paragraph("There are no run profiles configured.", css_class="CanHide")
        return

    plan = run_profile_plan()
    header = simple_header(
        [("Step#", 5), ("Step Name", 35), ("Setting", 35), ("Configuration", 25)]
    )
    for profile in profiles:
        diffset = build_diffset(
            run_profile_snapshot(),
            partial(fill_run_profile, connector=connector, profile=profile, ad=ad),
            configs,
            plan,
        )
        section = resolve(diffset)
        renderer.write_section_header(
            f"Run Profile: {profile}", 4, profile, guid, section.css_class
        )
        renderer.write_table(diffset, plan, header, css_class=section.css_class)


# Variants

AD_SECTIONS: tuple[ConnectorBuilder, ...] = (
    document_properties,
    document_forest_connection,
    document_partitions,
    document_provisioning_hierarchy,
    document_selected_object_types,
    document_selected_attributes,
    document_sync_rules,
    document_import_flows,
    document_export_flows,
    partial(document_run_profiles, ad=True),
)

EXTENSIBLE2_SECTIONS: tuple[ConnectorBuilder, ...] = (
    document_properties,
    document_extension_information,
    document_connectivity,
    document_global_parameters,
    document_provisioning_hierarchy,
    document_selected_object_types,
    document_selected_attributes,
    document_anchors,
    document_sync_rules,
    document_import_flows,
    document_export_flows,
    document_run_profiles,
)

GENERIC_SQL_SECTIONS: tuple[ConnectorBuilder, ...] = (
    document_properties,
    document_extension_information,
    document_connectivity,
    document_generic_sql_schema,
    document_global_parameters,
    document_selected_object_types,
    document_selected_attributes,
    document_anchors,
    document_sync_rules,
    document_import_flows,
    document_export_flows,
    document_run_profiles,
)

CONNECTOR_VARIANTS: dict[tuple[str, str | None], tuple[ConnectorBuilder, ...]] = {
    ("AD", None): AD_SECTIONS,
    ("Extensible2", None): EXTENSIBLE2_SECTIONS,
    ("Extensible2", "Generic SQL (Microsoft)"): GENERIC_SQL_SECTIONS,
}

DEFAULT_SECTIONS = EXTENSIBLE2_SECTIONS


def connector_sections(category: str, subtype: str = "") -> tuple[ConnectorBuilder, ...]:
    """Ordered section builders for a connector category and subtype."""
    for key in ((category, subtype or None), (category, None)):
        if key in CONNECTOR_VARIANTS:
            return CONNECTOR_VARIANTS[key]
    return DEFAULT_SECTIONS


def _builder_name(builder) -> str:
    function = builder.func if isinstance(builder, partial) else builder
    return function.__name__.removeprefix("document_").replace("_", " ")


def document_connector(
    renderer: TableRenderer, configs: Configs, connector: str, context: LogContext = LogContext()
) -> None:
    """Write one connector's section and all sub-sections of its variant.

    Each sub-section renders into a child renderer inside a section guard
    and is kept only if it completes.
    """
    node = _connector_node(configs, connector)
    category = text(node, "category")
    subtype = text(node, "subtype")
    guid = connector_guid(configs, connector)
    context = context.bind(
        connector=connector,
        connector_guid=guid,
        connector_category=category,
        connector_subtype=subtype or None,
    )
    log = context.adapter(logger)

    with trace_span(log, f"connector {connector}"):
        log.info("Processing Connector Configuration.")
        section = renderer.child(anchor_class(configs, connector))
        section.write_section_header(f"{connector} Connector Configuration", 2, connector, guid)
        for builder in connector_sections(category, subtype):
            part = section.child()
            with section_guard(log, _builder_name(builder)):
                builder(part, configs, connector, context)
                section.extend(part)
        renderer.extend(section)


def document_connectors(
    renderer: TableRenderer, configs: Configs, context: LogContext = LogContext()
) -> None:
    """Write every connector: pilot connectors sorted by name, then production-only ones."""
    connectors = pilot_then_production(
        connector_names(configs.pilot), connector_names(configs.production)
    )
    log = context.adapter(logger)
    for connector in connectors:
        section = renderer.child()
        with section_guard(log, connector):
            document_connector(section, configs, connector, context)
            renderer.extend(section)
