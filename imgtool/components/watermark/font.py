import logging
import os
from typing import Optional

from PIL import ImageFont

logger = logging.getLogger(__name__)

# Loaded fonts keyed by (path, pixel size)
_FONT_CACHE: dict[tuple[str, int], ImageFont.FreeTypeFont] = {}

FONT_CANDIDATES = [
    "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
    "/usr/share/fonts/truetype/liberation/LiberationSans-Regular.ttf",
    "/usr/share/fonts/truetype/freefont/FreeSans.ttf",
    "/usr/share/fonts/opentype/noto/NotoSansCJK-Regular.ttc",
    "/Library/Fonts/Arial.ttf",
    "C:\\Windows\\Fonts\\arial.ttf",
]


def points_to_pixels(points: float, dpi: int) -> int:
    """Convert a point size to pixels at ``dpi`` (1pt = 1/72 inch)."""
    return max(1, int(round(points * dpi / 72)))


def load_font_with_fallback(font_path: Optional[str], pixel_size: int):
    """Load a TrueType/OpenType font with sensible fallbacks.

    Tries the given path first, then common system fonts, then Pillow's
    bundled default font scaled to ``pixel_size``.
    """
    key = (font_path or "", int(pixel_size))
    if key in _FONT_CACHE:
        return _FONT_CACHE[key]

    if font_path:
        try:
            font = ImageFont.truetype(font_path, pixel_size)
            _FONT_CACHE[key] = font
            return font
        except OSError:
            logger.warning("Font %s could not be loaded; trying system fonts", font_path)

    for candidate in FONT_CANDIDATES:
        if not os.path.exists(candidate):
            continue
        try:
            font = ImageFont.truetype(candidate, pixel_size)
        except OSError:
            continue
        logger.debug("Using font %s at %dpx", candidate, pixel_size)
        _FONT_CACHE[key] = font
        return font

    logger.debug("No system font found; using Pillow default at %dpx", pixel_size)
    font = ImageFont.load_default(size=pixel_size)
    _FONT_CACHE[key] = font
    return font
