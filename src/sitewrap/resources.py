"""Locations of files shipped inside the package."""

from __future__ import annotations

from pathlib import Path

PACKAGE_ROOT = Path(__file__).resolve().parent


def bundled_template_root() -> Path:
    """Return the application template tree shipped with the package."""

    return PACKAGE_ROOT / "template"


def bundled_default_icon() -> Path:
    """Return the fallback icon used when no other icon source works."""

    return PACKAGE_ROOT / "assets" / "default_icon.ico"


def resolve_template_root(configured: Path | None) -> Path:
    """Prefer a configured template tree, else the bundled one."""

    return configured if configured is not None else bundled_template_root()
