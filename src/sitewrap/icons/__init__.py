"""Icon resolution: explicit files, remote URLs, favicon discovery, bundled fallback."""

from sitewrap.icons.formats import convert_icon, detect_format
from sitewrap.icons.pipeline import resolve_icon
from sitewrap.icons.strategies import IconSourceKind, ResolvedIcon

__all__ = [
    "IconSourceKind",
    "ResolvedIcon",
    "convert_icon",
    "detect_format",
    "resolve_icon",
]
