"""透かし文字のカバレッジマスク生成 (ラスタライズ・不透明度・余白・タイル)。"""

from __future__ import annotations

import math
from typing import Optional, Tuple

import numpy as np
from PIL import Image, ImageDraw

from .font import load_font_with_fallback, points_to_pixels


def rasterize_text(
    text: str,
    font_size: int = 12,
    dpi: int = 300,
    font_path: Optional[str] = None,
) -> np.ndarray:
    """Render ``text`` into a uint8 coverage mask (255 = fully covered).

    Empty text produces a blank 1x1 mask rather than an error.
    """
    font = load_font_with_fallback(font_path, points_to_pixels(font_size, dpi))
    if not text:
        return np.zeros((1, 1), dtype=np.uint8)

    probe = ImageDraw.Draw(Image.new("L", (1, 1), 0))
    x0, y0, x1, y1 = probe.multiline_textbbox((0, 0), text, font=font)
    width = max(1, int(math.ceil(x1 - x0)))
    height = max(1, int(math.ceil(y1 - y0)))

    canvas = Image.new("L", (width, height), 0)
    ImageDraw.Draw(canvas).multiline_text((-x0, -y0), text, font=font, fill=255)
    return np.asarray(canvas, dtype=np.uint8)


def scale_opacity(mask: np.ndarray, opacity: float) -> np.ndarray:
    """``out = in * opacity`` cast back to uint8."""
    scaled = mask.astype(np.float32) * float(opacity)
    return np.clip(scaled, 0, 255).astype(np.uint8)


def pad_mask(mask: np.ndarray, margin: int) -> np.ndarray:
    """Surround the mask with ``margin`` empty pixels on every side."""
    if margin <= 0:
        return mask
    return np.pad(mask, margin, mode="constant", constant_values=0)


def tile_mask(mask: np.ndarray, size: Tuple[int, int]) -> np.ndarray:
    """Repeat ``mask`` until it covers ``size`` (width, height), then crop."""
    width, height = size
    mask_h, mask_w = mask.shape
    across = math.ceil(width / mask_w) + 1
    down = math.ceil(height / mask_h) + 1
    tiled = np.tile(mask, (down, across))
    return tiled[:height, :width]


def place_mask(mask: np.ndarray, size: Tuple[int, int]) -> np.ndarray:
    """Put a single mask at the origin of an empty ``size`` canvas.

    Anything past the canvas edge is cut off.
    """
    width, height = size
    canvas = np.zeros((height, width), dtype=mask.dtype)
    h = min(height, mask.shape[0])
    w = min(width, mask.shape[1])
    canvas[:h, :w] = mask[:h, :w]
    return canvas
