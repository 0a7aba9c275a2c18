"""Icon format detection and per-platform conversion backed by Pillow."""

from __future__ import annotations

from pathlib import Path

from PIL import Image, UnidentifiedImageError

from sitewrap.platforms import PlatformDescriptor

PLACEHOLDER_COLOR = (37, 99, 235, 255)


def detect_format(path: Path) -> str | None:
    """Return Pillow's format name for an image file, or None when unreadable."""

    try:
        with Image.open(path) as image:
            return image.format
    except (UnidentifiedImageError, OSError, ValueError):
        return None


def _square_rgba(image: Image.Image, size: int) -> Image.Image:
    """Center the image on a transparent square canvas and scale it to ``size``."""

    rgba = image.convert("RGBA")
    side = max(rgba.size)
    canvas = Image.new("RGBA", (side, side), (0, 0, 0, 0))
    canvas.paste(rgba, ((side - rgba.width) // 2, (side - rgba.height) // 2))
    if side != size:
        canvas = canvas.resize((size, size), Image.Resampling.LANCZOS)
    return canvas


def _save_for_platform(image: Image.Image, destination: Path, descriptor: PlatformDescriptor) -> Path:
    destination.parent.mkdir(parents=True, exist_ok=True)
    if descriptor.icon_format == "ICO":
        image.save(destination, format="ICO", sizes=[(size, size) for size in descriptor.icon_sizes])
    else:
        image.save(destination, format=descriptor.icon_format)
    return destination


def convert_icon(source: Path, destination: Path, descriptor: PlatformDescriptor) -> Path:
    """Convert any Pillow-readable image into the platform's icon format."""

    with Image.open(source) as image:
        image.load()
        square = _square_rgba(image, descriptor.icon_size)
    return _save_for_platform(square, destination, descriptor)


def render_placeholder_icon(destination: Path, descriptor: PlatformDescriptor) -> Path:
    """Write a plain colored square; used only when the bundled icon is unusable."""

    size = descriptor.icon_size
    image = Image.new("RGBA", (size, size), PLACEHOLDER_COLOR)
    return _save_for_platform(image, destination, descriptor)
