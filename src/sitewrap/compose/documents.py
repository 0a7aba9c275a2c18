"""Load base and platform-override configuration documents from a template tree."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from sitewrap.errors import ConfigError
from sitewrap.platforms import PLATFORMS, PlatformDescriptor

LOGGER = logging.getLogger(__name__)

CONFIG_DIR = "src-tauri"
RUNTIME_CONFIG_NAME = "sitewrap.json"
BUILD_CONFIG_NAME = "tauri.conf.json"


@dataclass(frozen=True, slots=True)
class ConfigDocuments:
    """A runtime document and a build document at the same precedence level."""

    runtime: dict[str, Any]
    build: dict[str, Any]


@dataclass(frozen=True, slots=True)
class TemplateDocuments:
    """Base documents plus the fragments for one platform."""

    base: ConfigDocuments
    platform_override: ConfigDocuments


def platform_fragment_names() -> frozenset[str]:
    """File names of every platform fragment, for excluding them from staged copies."""

    names: set[str] = set()
    for descriptor in PLATFORMS.values():
        names.add(descriptor.runtime_override_name)
        names.add(descriptor.build_override_name)
    return frozenset(names)


def read_document(path: Path, *, required: bool) -> dict[str, Any]:
    """Read a JSON object document; a missing optional document is empty."""

    if not path.exists():
        if required:
            raise ConfigError(f"required configuration document is missing: {path}")
        return {}
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigError(f"cannot read configuration document {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigError(f"invalid JSON in {path} (line {exc.lineno}, column {exc.colno}): {exc.msg}") from exc
    if not isinstance(payload, dict):
        raise ConfigError(f"configuration document {path} must contain a JSON object")
    return payload


def load_template_documents(
    template_root: Path,
    descriptor: PlatformDescriptor,
    logger: logging.Logger | None = None,
) -> TemplateDocuments:
    """Read the base documents and the platform's override fragments, fresh per call."""

    effective_logger = logger or LOGGER
    if not template_root.is_dir():
        raise ConfigError(f"template directory does not exist: {template_root}")
    config_dir = template_root / CONFIG_DIR
    documents = TemplateDocuments(
        base=ConfigDocuments(
            runtime=read_document(config_dir / RUNTIME_CONFIG_NAME, required=True),
            build=read_document(config_dir / BUILD_CONFIG_NAME, required=True),
        ),
        platform_override=ConfigDocuments(
            runtime=read_document(config_dir / descriptor.runtime_override_name, required=False),
            build=read_document(config_dir / descriptor.build_override_name, required=False),
        ),
    )
    effective_logger.debug(
        "compose.documents_loaded template_root=%s platform=%s runtime_override_keys=%s build_override_keys=%s",
        template_root,
        descriptor.name,
        sorted(documents.platform_override.runtime),
        sorted(documents.platform_override.build),
    )
    return documents
