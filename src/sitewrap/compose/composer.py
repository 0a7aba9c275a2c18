"""Compose runtime and build documents from base, platform, and CLI layers."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from sitewrap.compose.documents import ConfigDocuments
from sitewrap.compose.merge import merge_documents
from sitewrap.errors import ConfigError
from sitewrap.options import BuildOptions
from sitewrap.platforms import PlatformDescriptor

ICON_SLOT_DIR = "icons"

# Window flags copied from options only when the user supplied them.
_OPTIONAL_WINDOW_FLAGS: tuple[str, ...] = (
    "resizable",
    "fullscreen",
    "hide_title_bar",
    "always_on_top",
    "dark_mode",
    "disabled_web_shortcuts",
    "activation_shortcut",
)


@dataclass(frozen=True, slots=True)
class ComposedConfig:
    """Final runtime and build documents for one staged build."""

    runtime: dict[str, Any]
    build: dict[str, Any]


def icon_slot_relpath(descriptor: PlatformDescriptor) -> str:
    """Icon location relative to the config directory of the staged app."""

    return f"{ICON_SLOT_DIR}/icon{descriptor.icon_suffix}"


def product_name(options: BuildOptions) -> str:
    return options.package_name if options.descriptor.slug_names else options.name


def _window_template(runtime: dict[str, Any]) -> dict[str, Any]:
    windows = runtime.get("windows")
    if isinstance(windows, list) and windows and isinstance(windows[0], dict):
        return windows[0]
    return {}


def _window_url(options: BuildOptions) -> str:
    if options.is_local:
        return Path(options.url).name
    return options.url


def cli_overrides(options: BuildOptions, window_template: dict[str, Any] | None = None) -> ConfigDocuments:
    """Derive the highest-precedence override documents from validated options.

    The single window produced here is layered over ``window_template`` (the
    first window of the lower layers) so that keys the CLI does not know
    about survive even though the ``windows`` list as a whole replaces.
    """

    descriptor = options.descriptor
    icon_path = icon_slot_relpath(descriptor)

    window: dict[str, Any] = {
        "url": _window_url(options),
        "url_type": options.url_kind,
        "title": options.name,
        "width": options.width,
        "height": options.height,
    }
    for flag in _OPTIONAL_WINDOW_FLAGS:
        value = getattr(options, flag)
        if value is not None:
            window[flag] = value

    runtime: dict[str, Any] = {
        "windows": [merge_documents(window_template or {}, window)],
        "inject": [path.name for path in options.inject],
        "system_tray_path": icon_path,
    }
    if options.user_agent is not None:
        runtime["user_agent"] = {descriptor.name: options.user_agent}
    if options.system_tray is not None:
        runtime["system_tray"] = {descriptor.name: options.system_tray}
    if options.multi_instance is not None:
        runtime["multi_instance"] = options.multi_instance
    if options.proxy_url is not None:
        runtime["proxy_url"] = options.proxy_url

    build: dict[str, Any] = {
        "productName": product_name(options),
        "version": options.app_version,
        "identifier": options.identifier,
        "app": {
            "windowDefaults": {
                "width": options.width,
                "height": options.height,
                "title": options.name,
            },
            "security": {
                "remoteDomains": [options.host] if options.host else [],
            },
        },
        "bundle": {
            "icon": [icon_path],
            "targets": list(options.targets),
        },
    }
    if options.installer_language is not None:
        build["bundle"]["windows"] = {"wix": {"language": [options.installer_language]}}

    return ConfigDocuments(runtime=runtime, build=build)


def _require(condition: bool, message: str) -> None:
    if not condition:
        raise ConfigError(message)


def validate_composed(composed: ComposedConfig) -> ComposedConfig:
    """Reject merged documents that lack keys the runtime or toolchain cannot do without."""

    windows = composed.runtime.get("windows")
    _require(isinstance(windows, list) and len(windows) > 0, "runtime config needs at least one entry in 'windows'")
    first = windows[0]
    _require(isinstance(first, dict) and bool(first.get("url")), "runtime config 'windows[0].url' is missing")
    _require(isinstance(composed.runtime.get("inject", []), list), "runtime config 'inject' must be a list")
    for key in ("productName", "version", "identifier"):
        _require(bool(composed.build.get(key)), f"build config '{key}' is missing")
    bundle = composed.build.get("bundle")
    _require(isinstance(bundle, dict), "build config 'bundle' section is missing")
    icons = bundle.get("icon")
    _require(isinstance(icons, list) and len(icons) > 0, "build config 'bundle.icon' is missing")
    return composed


def compose_config(
    base: ConfigDocuments,
    platform_override: ConfigDocuments,
    options: BuildOptions,
) -> ComposedConfig:
    """Merge base <- platform fragment <- CLI values and validate the result.

    Pure and deterministic: the inputs are never mutated and nothing is read
    from disk.
    """

    runtime = merge_documents(base.runtime, platform_override.runtime)
    build = merge_documents(base.build, platform_override.build)
    overrides = cli_overrides(options, _window_template(runtime))
    composed = ComposedConfig(
        runtime=merge_documents(runtime, overrides.runtime),
        build=merge_documents(build, overrides.build),
    )
    return validate_composed(composed)
