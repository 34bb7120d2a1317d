"""Shared fixtures: small Azure AD Connect configuration exports on disk."""

from pathlib import Path

import pytest

from adsync_documenter.config import load_configuration
from adsync_documenter.sections import Configs

DSML_OPEN = (
    '<dsml:dsml xmlns:dsml="http://www.dsml.org/DSML" '
    'xmlns:ms-dsml="http://www.microsoft.com/MMS/DSML">'
)

AD_GUID = "{11111111-AAAA-4AAA-8AAA-111111111111}"
AAD_GUID = "{22222222-BBBB-4BBB-8BBB-222222222222}"


def mv_xml(
    version: str = "1.1.0.0",
    attributes: tuple[str, ...] = ("displayName",),
    object_types: tuple[str, ...] = ("person",),
) -> str:
    """Global settings export; every object type holds all ``attributes``."""
    refs = "".join(f'<dsml:attribute ref="#{a}" required="false"/>' for a in attributes)
    classes = "".join(
        f'<dsml:class id="{t}" type="structural"><dsml:name>{t}</dsml:name>{refs}</dsml:class>'
        for t in object_types
    )
    types = "".join(
        f'<dsml:attribute-type id="{a}" single-value="true" ms-dsml:indexable="true">'
        f"<dsml:name>{a}</dsml:name>"
        "<dsml:syntax>1.3.6.1.4.1.1466.115.121.1.15</dsml:syntax>"
        "</dsml:attribute-type>"
        for a in attributes
    )
    return (
        "<mv-data>"
        "<parameter-values>"
        f'<parameter name="Microsoft.Synchronize.ServerConfigurationVersion">{version}</parameter>'
        '<parameter name="Microsoft.OptionalFeature.FilterAAD">false</parameter>'
        "</parameter-values>"
        "<schema>"
        f"{DSML_OPEN}<dsml:directory-schema>"
        f"{classes}"
        f"{types}"
        "</dsml:directory-schema></dsml:dsml>"
        "</schema>"
        "</mv-data>"
    )


def ad_connector_xml(
    name: str = "contoso.com",
    guid: str = AD_GUID,
    forest_user: str = "svc-sync",
    inclusions: tuple[str, ...] = ("DC=contoso,DC=com",),
    exclusions: tuple[str, ...] = (),
    run_profiles: tuple[str, ...] = ("Full Import",),
    component_mappings: tuple[tuple[str, str], ...] = (),
) -> str:
    """Active Directory connector export; ``component_mappings`` are (DN component, class)."""
    mappings = "".join(
        f"<mapping><dn_component>{component}</dn_component>"
        f"<object_class>{object_class}</object_class></mapping>"
        for component, object_class in component_mappings
    )
    include = "".join(f"<inclusion>{c}</inclusion>" for c in inclusions)
    exclude = "".join(f"<exclusion>{c}</exclusion>" for c in exclusions)
    profiles = "".join(
        "<run-configuration>"
        f"<name>{profile}</name>"
        "<configuration><step>"
        '<step-type type="full-import"><import-subtype>to-cs</import-subtype></step-type>'
        "<threshold><object>500</object></threshold>"
        "<partition>{33333333-CCCC-4CCC-8CCC-333333333333}</partition>"
        "<custom-data><adma-step-data><batch-size>50</batch-size></adma-step-data></custom-data>"
        "</step></configuration>"
        "</run-configuration>"
        for profile in run_profiles
    )
    return (
        "<ma-data>"
        f"<id>{guid}</id>"
        f"<name>{name}</name>"
        "<category>AD</category>"
        "<description></description>"
        "<creation-time>2024-01-01 10:00:00.000</creation-time>"
        "<last-modification-time>2024-01-01 10:00:00.000</last-modification-time>"
        "<private-configuration><adma-configuration>"
        "<forest-name>contoso.com</forest-name>"
        f"<forest-login-user>{forest_user}</forest-login-user>"
        "<forest-login-domain>CONTOSO</forest-login-domain>"
        "<sign-and-seal>1</sign-and-seal>"
        "</adma-configuration></private-configuration>"
        "<ma-partition-data><partition>"
        "<id>{33333333-cccc-4ccc-8ccc-333333333333}</id>"
        "<name>DC=contoso,DC=com</name>"
        "<selected>1</selected>"
        "<filter>"
        "<object-classes><object-class>user</object-class><object-class>group</object-class>"
        "</object-classes>"
        f"<containers><inclusions>{include}</inclusions><exclusions>{exclude}</exclusions>"
        "</containers>"
        "</filter>"
        "</partition></ma-partition-data>"
        "<attribute-inclusion><attribute>displayName</attribute><attribute>mail</attribute>"
        "</attribute-inclusion>"
        f"<ma-run-data>{profiles}</ma-run-data>"
        + (f"<component_mappings>{mappings}</component_mappings>" if mappings else "")
        + "<schema>"
        f"{DSML_OPEN}<dsml:directory-schema>"
        '<dsml:attribute-type id="displayName" single-value="true" ms-dsml:indexable="true">'
        "<dsml:name>displayName</dsml:name>"
        "<dsml:syntax>1.3.6.1.4.1.1466.115.121.1.15</dsml:syntax></dsml:attribute-type>"
        '<dsml:attribute-type id="mail" ms-dsml:indexable="false">'
        "<dsml:name>mail</dsml:name>"
        "<dsml:syntax>1.3.6.1.4.1.1466.115.121.1.15</dsml:syntax></dsml:attribute-type>"
        "</dsml:directory-schema></dsml:dsml>"
        "</schema>"
        "</ma-data>"
    )


def extensible_connector_xml(
    name: str = "contoso.onmicrosoft.com - AAD",
    guid: str = AAD_GUID,
    user_name: str = "sync@contoso.onmicrosoft.com",
    subtype: str = "Windows Azure Active Directory (Microsoft)",
    schema_parameters: tuple[tuple[str, int, str], ...] = (),
) -> str:
    """Extensible2 (ECMA2) connector export with connectivity parameters.

    ``schema_parameters`` are (name, page, value) wizard settings of a Generic SQL connector.
    """
    schema_definitions = "".join(
        f"<parameter><name>{parameter}</name><use>schema</use><type>string</type>"
        f"<page-number>{page}</page-number></parameter>"
        for parameter, page, _ in schema_parameters
    )
    schema_values = "".join(
        f'<parameter name="{parameter}" use="schema" page-number="{page}">{value}</parameter>'
        for parameter, page, value in schema_parameters
    )
    return (
        "<ma-data>"
        f"<id>{guid}</id>"
        f"<name>{name}</name>"
        "<category>Extensible2</category>"
        f"<subtype>{subtype}</subtype>"
        "<creation-time>2024-01-01 10:00:00.000</creation-time>"
        "<last-modification-time>2024-01-01 10:00:00.000</last-modification-time>"
        "<private-configuration><MAConfig>"
        "<extension-config><filename>Microsoft.Azure.ActiveDirectory.Connector.dll</filename>"
        "<assembly-version>1.0.0.0</assembly-version></extension-config>"
        "<parameter-definitions>"
        "<parameter><name>UserName</name><use>connectivity</use><type>string</type></parameter>"
        "<parameter><name>Password</name><use>connectivity</use>"
        "<type>encrypted-string</type></parameter>"
        "<parameter><name>Separator</name><use>connectivity</use><type>divider</type></parameter>"
        "<parameter><name>EnableSync</name><use>global</use><type>checkbox</type></parameter>"
        f"{schema_definitions}"
        "</parameter-definitions>"
        "<parameter-values>"
        f'<parameter name="UserName" use="connectivity">{user_name}</parameter>'
        '<parameter name="Password" use="connectivity" encrypted="1"></parameter>'
        '<parameter name="EnableSync" use="global">1</parameter>'
        f"{schema_values}"
        "</parameter-values>"
        "<importing><per-class-settings>"
        "<class><name>user</name><anchor><attribute>cloudAnchor</attribute></anchor></class>"
        "</per-class-settings></importing>"
        "</MAConfig></private-configuration>"
        "<ma-partition-data><partition><name>default</name><selected>1</selected>"
        "<filter><object-classes><object-class>user</object-class></object-classes></filter>"
        "</partition></ma-partition-data>"
        "<ma-run-data/>"
        "</ma-data>"
    )


def sync_rule_xml(
    name: str,
    connector: str = AD_GUID,
    direction: str = "Inbound",
    rule_id: str = "{44444444-DDDD-4DDD-8DDD-444444444444}",
    precedence: int = 100,
    tag: str = "",
    disabled: str | None = None,
    link_type: str = "Join",
    source: str = "user",
    target: str = "person",
    mappings: tuple[tuple[str, str], ...] = (("displayName", "displayName"),),
    scope: tuple[tuple[str, str, str], ...] = (),
) -> str:
    """``<synchronizationRule>`` export; ``mappings`` are (source attr, dest) pairs."""
    flows = "".join(
        f"<mapping><dest>{dest}</dest><src><attr>{src}</attr></src></mapping>"
        for src, dest in mappings
    )
    scopes = "".join(
        f"<scope><csAttribute>{a}</csAttribute><csOperator>{o}</csOperator>"
        f"<csValue>{v}</csValue></scope>"
        for a, o, v in scope
    )
    criteria = ""
    if scope:
        criteria = (
            f"<synchronizationCriteria><conditions>{scopes}</conditions></synchronizationCriteria>"
        )
    return (
        "<synchronizationRule>"
        f"<name>{name}</name>"
        f"<id>{rule_id}</id>"
        f"<connector>{connector}</connector>"
        f"<direction>{direction}</direction>"
        f"<sourceObjectType>{source}</sourceObjectType>"
        f"<targetObjectType>{target}</targetObjectType>"
        f"<linkType>{link_type}</linkType>"
        f"<precedence>{precedence}</precedence>"
        f"<immutable-tag>{tag}</immutable-tag>"
        + (f"<disabled>{disabled}</disabled>" if disabled is not None else "")
        + f"{criteria}"
        f"<attribute-mappings>{flows}</attribute-mappings>"
        "</synchronizationRule>"
    )


def write_export(root: Path, name: str, global_settings=None, connectors=(), rules=()) -> Path:
    """Write one configuration export beneath ``root`` and return its directory."""
    export = root / name
    for category in ("GlobalSettings", "Connectors", "SynchronizationRules"):
        (export / category).mkdir(parents=True, exist_ok=True)
    (export / "GlobalSettings" / "MV.xml").write_text(
        global_settings if global_settings is not None else mv_xml(), encoding="utf-8"
    )
    for i, connector in enumerate(connectors):
        (export / "Connectors" / f"Connector_{i}.xml").write_text(connector, encoding="utf-8")
    for i, rule in enumerate(rules):
        (export / "SynchronizationRules" / f"SynchronizationRule_{i}.xml").write_text(
            rule, encoding="utf-8"
        )
    return export


@pytest.fixture
def data_root(tmp_path):
    """Data root with a Pilot and a Production export that differ in a few places."""
    root = tmp_path / "Data"
    write_export(
        root,
        "Pilot",
        global_settings=mv_xml(version="1.6.4.0"),
        connectors=[ad_connector_xml(forest_user="svc-sync-new"), extensible_connector_xml()],
        rules=[
            sync_rule_xml("In from AD - User Join", rule_id="{P1}", precedence=101),
            sync_rule_xml(
                "In from AD - User Custom", rule_id="{P2}", precedence=50,
                mappings=(("description", "displayName"),),
            ),
        ],
    )
    write_export(
        root,
        "Production",
        global_settings=mv_xml(version="1.5.0.0"),
        connectors=[ad_connector_xml(), extensible_connector_xml()],
        rules=[
            sync_rule_xml("In from AD - User Join", rule_id="{R1}", precedence=101),
            sync_rule_xml("In from AD - User Legacy", rule_id="{R3}", precedence=60),
        ],
    )
    return root


def load_configs(root: Path) -> Configs:
    """Merged Pilot and Production documents beneath ``root``."""
    return Configs(
        pilot=load_configuration(root / "Pilot", pilot=True),
        production=load_configuration(root / "Production", pilot=False),
    )


@pytest.fixture
def configs(data_root):
    """Loaded documents of the ``data_root`` exports."""
    return load_configs(data_root)
