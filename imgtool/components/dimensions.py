from __future__ import annotations

import logging
import math
from typing import Tuple

from ..options import DimensionSpec

logger = logging.getLogger(__name__)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def resolve_dimensions(
    source_width: int, source_height: int, spec: DimensionSpec
) -> Tuple[int, int]:
    """Compute the target size for a source image.

    A positive ``pct_scale`` always wins over explicit width/height. Without
    it the explicit values are returned as-is; a 0 in either slot tells the
    resampler to infer that side from the other, keeping the aspect ratio.
    (0, 0) means "no resize".
    """
    pct = spec.pct_scale
    if pct < 0:
        logger.debug("Ignoring negative pct scale %.3f", pct)
        pct = 0.0
    if pct:
        if spec.width or spec.height:
            logger.info(
                "Pct scale %.1f%% overrides explicit size %dx%d",
                pct * 100,
                spec.width,
                spec.height,
            )
        return (
            max(1, _round_half_up(pct * source_width)),
            max(1, _round_half_up(pct * source_height)),
        )
    return max(0, spec.width), max(0, spec.height)


def infer_missing_dimension(
    source: Tuple[int, int], target: Tuple[int, int]
) -> Tuple[int, int]:
    """Fill a 0 in ``target`` from the other side, preserving aspect ratio."""
    source_width, source_height = source
    width, height = target
    if width and height:
        return width, height
    if width:
        return width, max(1, _round_half_up(source_height * width / source_width))
    if height:
        return max(1, _round_half_up(source_width * height / source_height)), height
    return source_width, source_height


def needs_resize(source: Tuple[int, int], target: Tuple[int, int]) -> bool:
    """True when the resize stage has something to do."""
    return infer_missing_dimension(source, target) != tuple(source)
