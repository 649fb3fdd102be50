"""Text watermark rendering and blending."""

from .compositor import WatermarkCompositor
from .mask import pad_mask, place_mask, rasterize_text, scale_opacity, tile_mask

__all__ = [
    "WatermarkCompositor",
    "pad_mask",
    "place_mask",
    "rasterize_text",
    "scale_opacity",
    "tile_mask",
]
