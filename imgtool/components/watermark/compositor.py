from __future__ import annotations

import logging
from typing import Tuple

import numpy as np
from PIL import Image, ImageColor

from ...exceptions import CompositeError
from ...options import WatermarkSpec
from ...utils.logger import logger as package_logger
from ...utils.logger import time_log
from .mask import pad_mask, place_mask, rasterize_text, scale_opacity, tile_mask

logger = logging.getLogger(__name__)

# Modes blended directly: (colour bands, has trailing alpha band)
_NATIVE_MODES = {
    "L": (1, False),
    "LA": (1, True),
    "RGB": (3, False),
    "RGBA": (3, True),
}

# Single-band integer/float modes blended at full depth: white level per mode
_WIDE_MODES = {
    "I;16": 65535.0,
    "I;16L": 65535.0,
    "I;16B": 65535.0,
    "I;16N": 65535.0,
    "I": 65535.0,
    "F": 255.0,
}


class WatermarkCompositor:
    """Stamp semi-transparent watermark text over an image.

    The text is rendered once into a coverage mask, scaled by the opacity,
    padded, optionally tiled across the whole image, and used as the alpha
    of a solid foreground colour blended over the source::

        result = alpha * foreground + (1 - alpha) * source

    The blend runs even when opacity is 0, in which case the output equals
    the source up to rounding.
    """

    def __init__(self, spec: WatermarkSpec):
        self.spec = spec

    def build_mask(self, size: Tuple[int, int]) -> np.ndarray:
        """Coverage mask (uint8, height x width) matching ``size``."""
        spec = self.spec
        mask = rasterize_text(spec.text, spec.font_size, spec.dpi, spec.font_path)
        mask = scale_opacity(mask, spec.opacity)
        mask = pad_mask(mask, spec.margin)
        logger.debug("Watermark mask %dx%d (replicate=%s)", mask.shape[1], mask.shape[0], spec.replicate)
        if spec.replicate:
            return tile_mask(mask, size)
        return place_mask(mask, size)

    @time_log(package_logger)
    def apply(self, image: Image.Image) -> Image.Image:
        """Return a new image of the same size and mode carrying the watermark."""
        try:
            mask = self.build_mask(image.size)
            return self._blend(image, mask)
        except CompositeError:
            raise
        except (OSError, ValueError, TypeError, MemoryError) as exc:
            raise CompositeError(f"Watermark compositing failed: {exc}", stage="WATERMARKED") from exc

    def _blend(self, image: Image.Image, mask: np.ndarray) -> Image.Image:
        original_mode = image.mode
        if original_mode in _WIDE_MODES:
            return self._blend_wide(image, mask, _WIDE_MODES[original_mode])
        if original_mode in _NATIVE_MODES:
            working = image
        else:
            has_alpha = "A" in image.getbands() or "transparency" in image.info
            working = image.convert("RGBA" if has_alpha else "RGB")

        bands, has_alpha = _NATIVE_MODES[working.mode]
        pixels = np.asarray(working, dtype=np.float32)
        if pixels.ndim == 2:
            pixels = pixels[:, :, np.newaxis]

        colour = pixels[:, :, :bands]
        foreground = np.broadcast_to(self._foreground(bands), colour.shape)
        alpha = (mask.astype(np.float32) / 255.0)[:, :, np.newaxis]
        blended = alpha * foreground + (1.0 - alpha) * colour

        out = np.empty_like(pixels)
        out[:, :, :bands] = blended
        if has_alpha:
            out[:, :, bands:] = pixels[:, :, bands:]
        out = np.clip(np.rint(out), 0, 255).astype(np.uint8)
        if out.shape[2] == 1:
            out = out[:, :, 0]

        result = Image.fromarray(out)
        if working is not image:
            working.close()
            converted = result.convert(original_mode)
            result.close()
            result = converted
        return result

    def _blend_wide(self, image: Image.Image, mask: np.ndarray, white: float) -> Image.Image:
        """Blend a 16/32-bit or float single-band image without going through 8 bits."""
        source = np.asarray(image)
        pixels = source.astype(np.float64)
        foreground = self._foreground(1)[0] / 255.0 * white
        alpha = mask.astype(np.float64) / 255.0
        blended = alpha * foreground + (1.0 - alpha) * pixels
        if np.issubdtype(source.dtype, np.integer):
            info = np.iinfo(source.dtype)
            blended = np.clip(np.rint(blended), info.min, info.max)
        # dtype (including byte order) selects the same Pillow mode again
        return Image.fromarray(blended.astype(source.dtype))

    def _foreground(self, bands: int) -> np.ndarray:
        mode = "L" if bands == 1 else "RGB"
        value = ImageColor.getcolor(self.spec.color, mode)
        if isinstance(value, int):
            value = (value,)
        return np.array(value, dtype=np.float32)
