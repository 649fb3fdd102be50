"""パイプラインに渡す不変の設定値と、それを組み立てるビルダー。"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field, replace
from typing import Any, Optional

from .components.filename import resolve_output_path

logger = logging.getLogger(__name__)

DEFAULT_QUALITY = 85
DEFAULT_SUFFIX = "_edited"
DEFAULT_OPACITY = 0.7
DEFAULT_FONT_SIZE = 12
DEFAULT_DPI = 300
DEFAULT_MARGIN = 25


def clamp_opacity(value: float) -> float:
    return max(0.0, min(1.0, value))


def parse_opacity(raw: Any, previous: float) -> float:
    """Parse and clamp an opacity value.

    Non-numeric input (including NaN) is rejected with a warning and
    ``previous`` is returned unchanged.
    """
    try:
        value = float(raw)
    except (TypeError, ValueError):
        logger.warning("Invalid opacity %r; keeping %.2f", raw, previous)
        return previous
    if math.isnan(value):
        logger.warning("Invalid opacity %r; keeping %.2f", raw, previous)
        return previous
    clamped = clamp_opacity(value)
    if clamped != value:
        logger.info("Opacity %.2f clamped to %.2f", value, clamped)
    return clamped


@dataclass(frozen=True)
class DimensionSpec:
    """出力サイズの指定。0 は「未指定」を意味する。

    ``pct_scale`` is a fraction (0.5 means 50%).
    """

    width: int = 0
    height: int = 0
    pct_scale: float = 0.0
    quality: int = DEFAULT_QUALITY


@dataclass(frozen=True)
class WatermarkSpec:
    """Text watermark settings."""

    text: str = ""
    opacity: float = DEFAULT_OPACITY
    replicate: bool = False
    color: str = "white"
    font_path: Optional[str] = None
    font_size: int = DEFAULT_FONT_SIZE  # points
    dpi: int = DEFAULT_DPI
    margin: int = DEFAULT_MARGIN

    def __post_init__(self):
        object.__setattr__(self, "opacity", clamp_opacity(float(self.opacity)))


@dataclass(frozen=True)
class FileNameOptions:
    input_path: str
    output_path: Optional[str] = None
    suffix: str = DEFAULT_SUFFIX

    def resolve(self) -> str:
        return resolve_output_path(self.input_path, self.output_path, self.suffix)


@dataclass(frozen=True)
class PipelineOptions:
    """Everything one pipeline run needs, fixed before the run starts."""

    files: FileNameOptions
    dimensions: DimensionSpec = field(default_factory=DimensionSpec)
    watermark: Optional[WatermarkSpec] = None
    dry_run: bool = False
    show_progress: bool = False

    def describe(self) -> str:
        wm = self.watermark
        return (
            "Options:\n"
            f"Input file:        {self.files.input_path}\n"
            f"Output file:       {self.files.output_path}\n"
            f"Output suffix:     {self.files.suffix}\n"
            f"Pct scale:         {self.dimensions.pct_scale:.2f}\n"
            f"Width:             {self.dimensions.width}\n"
            f"Height:            {self.dimensions.height}\n"
            f"Quality:           {self.dimensions.quality}\n"
            f"Watermark text:    {wm.text if wm else None}\n"
            f"Opacity:           {wm.opacity if wm else None}\n"
            f"Replicate:         {wm.replicate if wm else None}\n"
            f"No-op:             {int(self.dry_run)}"
        )


class PipelineOptionsBuilder:
    """Accumulates option values and produces a frozen ``PipelineOptions``.

    Each setter returns the builder so calls can be chained::

        options = (
            PipelineOptionsBuilder("photo.jpg")
            .scale_percent(50)
            .watermark("(c) me", opacity=0.5, replicate=True)
            .build()
        )
    """

    def __init__(self, input_path: str):
        self._files = FileNameOptions(input_path=input_path)
        self._dimensions = DimensionSpec()
        self._watermark: Optional[WatermarkSpec] = None
        self._watermark_defaults = WatermarkSpec()
        self._dry_run = False
        self._show_progress = False

    def output(self, output_path: Optional[str] = None, suffix: Optional[str] = None):
        if output_path is not None:
            self._files = replace(self._files, output_path=output_path)
        if suffix is not None:
            self._files = replace(self._files, suffix=suffix)
        return self

    def size(self, width: int = 0, height: int = 0):
        self._dimensions = replace(
            self._dimensions, width=max(0, int(width)), height=max(0, int(height))
        )
        return self

    def scale_percent(self, percent: float):
        self._dimensions = replace(self._dimensions, pct_scale=float(percent) / 100)
        return self

    def quality(self, quality: int):
        self._dimensions = replace(self._dimensions, quality=int(quality))
        return self

    def watermark_style(self, **style: Any):
        """Defaults (color, font, dpi, margin) for a watermark added later."""
        self._watermark_defaults = replace(self._watermark_defaults, **style)
        if self._watermark is not None:
            self._watermark = replace(self._watermark, **style)
        return self

    def watermark(
        self, text: str, opacity: Any = None, replicate: bool = False
    ):
        base = self._watermark_defaults
        value = base.opacity if opacity is None else parse_opacity(opacity, base.opacity)
        self._watermark = replace(base, text=text, opacity=value, replicate=replicate)
        return self

    def dry_run(self, enabled: bool = True):
        self._dry_run = bool(enabled)
        return self

    def progress(self, enabled: bool = True):
        self._show_progress = bool(enabled)
        return self

    def build(self) -> PipelineOptions:
        return PipelineOptions(
            files=self._files,
            dimensions=self._dimensions,
            watermark=self._watermark,
            dry_run=self._dry_run,
            show_progress=self._show_progress,
        )
