"""Report section builders.

Each ``document_*`` function writes one section of the report into a
:class:`~adsync_documenter.render.TableRenderer`.
"""

from .base import Configs
from .connectors import document_connector, document_connectors
from .global_settings import document_global_settings, server_configuration_version
from .metaverse import document_metaverse
from .sync_rules import (
    ChangeType,
    SyncRuleChange,
    classify_sync_rule,
    collect_sync_rule_changes,
)

__all__ = [
    "ChangeType",
    "Configs",
    "SyncRuleChange",
    "classify_sync_rule",
    "collect_sync_rule_changes",
    "document_connector",
    "document_connectors",
    "document_global_settings",
    "document_metaverse",
    "server_configuration_version",
]
