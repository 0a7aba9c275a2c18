"""Layered configuration: base documents, platform fragments, CLI-derived overrides."""

from sitewrap.compose.composer import ComposedConfig, cli_overrides, compose_config, icon_slot_relpath
from sitewrap.compose.documents import ConfigDocuments, TemplateDocuments, load_template_documents
from sitewrap.compose.merge import ADDITIVE_KEYS, merge_documents

__all__ = [
    "ADDITIVE_KEYS",
    "ComposedConfig",
    "ConfigDocuments",
    "TemplateDocuments",
    "cli_overrides",
    "compose_config",
    "icon_slot_relpath",
    "load_template_documents",
    "merge_documents",
]
