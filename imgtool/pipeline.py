"""読み込み・リサイズ・透かし・エンコード・書き出しの各ステージを統括するパイプライン実装。"""

import os
import time
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from PIL import Image
from tqdm import tqdm

from .components.codec import ImageCodec, format_for_path
from .components.dimensions import needs_resize, resolve_dimensions
from .components.watermark import WatermarkCompositor
from .exceptions import PipelineError, ResourceError
from .options import PipelineOptions
from .reporting.summary import PipelineReport
from .utils.logger import logger, time_log


class PipelineStage(str, Enum):
    INIT = "INIT"
    LOADED = "LOADED"
    RESIZED = "RESIZED"
    WATERMARKED = "WATERMARKED"
    ENCODED = "ENCODED"
    WRITTEN = "WRITTEN"
    DRY_RUN = "DRY_RUN"
    DONE = "DONE"


class FinishingPipeline:
    """1枚の画像に対して各ステージを順に実行する。

    The pipeline holds at most one image handle at a time. Each stage that
    produces a new image releases the previous one through the codec, and
    whatever is still held is released when the run ends, successfully or
    not.
    """

    def __init__(self, options: PipelineOptions, codec: Optional[ImageCodec] = None):
        self.options = options
        self.codec = codec if codec is not None else ImageCodec()
        self.stage = PipelineStage.INIT
        self.history: List[PipelineStage] = [PipelineStage.INIT]
        self.stats: Dict[str, Any] = {"stages": {}, "skipped": [], "total_duration": 0.0}

        self._image: Optional[Image.Image] = None
        self._encoded: Optional[bytes] = None
        self._output_path = ""
        self._input_size: Tuple[int, int] = (0, 0)
        self._output_size: Tuple[int, int] = (0, 0)
        self._input_bytes = 0

    def plan(self) -> List[PipelineStage]:
        """Stages this run will go through, in order."""
        dims = self.options.dimensions
        stages = [PipelineStage.LOADED]
        if dims.pct_scale > 0 or dims.width > 0 or dims.height > 0:
            stages.append(PipelineStage.RESIZED)
        if self.options.watermark is not None:
            stages.append(PipelineStage.WATERMARKED)
        stages.append(PipelineStage.ENCODED)
        stages.append(
            PipelineStage.DRY_RUN if self.options.dry_run else PipelineStage.WRITTEN
        )
        return stages

    @time_log(logger)
    def run(self) -> PipelineReport:
        """パイプライン全体を実行し、結果のレポートを返す。"""
        start_time = time.time()
        # Derived before any pixels are touched so a bad name fails early
        self._output_path = self.options.files.resolve()

        handlers: Dict[PipelineStage, Callable[[], Optional[bool]]] = {
            PipelineStage.LOADED: self._load,
            PipelineStage.RESIZED: self._resize,
            PipelineStage.WATERMARKED: self._watermark,
            PipelineStage.ENCODED: self._encode,
            PipelineStage.WRITTEN: self._write,
            PipelineStage.DRY_RUN: self._skip_write,
        }
        plan = self.plan()
        try:
            with tqdm(
                total=len(plan),
                desc="imgtool",
                unit="stage",
                disable=not self.options.show_progress,
                leave=False,
            ) as bar:
                for stage in plan:
                    self._run_stage(stage, handlers[stage])
                    bar.update(1)
        finally:
            self._release()

        self._enter(PipelineStage.DONE)
        self.stats["total_duration"] = time.time() - start_time
        self._log_final_summary()
        return PipelineReport(
            input_path=os.path.basename(self.options.files.input_path),
            output_path=self._output_path,
            input_size=self._input_size,
            output_size=self._output_size,
            input_bytes=self._input_bytes,
            output_bytes=len(self._encoded or b""),
            dry_run=self.options.dry_run,
            written=PipelineStage.WRITTEN in self.history,
        )

    def _run_stage(self, stage: PipelineStage, func: Callable[[], Optional[bool]]) -> None:
        """Run one stage handler; a handler returning ``False`` skipped its work."""
        start_time = time.time()
        logger.kv_debug(
            f"--- Starting Stage: {stage.value} ---",
            kv_pairs={"Event": "StageStart", "Stage": stage.value},
        )
        try:
            done = func()
        except PipelineError as e:
            if e.stage is None:
                e.stage = stage.value
            logger.kv_debug(
                f"Stage {stage.value} failed: {e.message}",
                kv_pairs={"Event": "StageFailed", "Stage": stage.value},
            )
            raise
        duration = time.time() - start_time
        if done is False:
            self.stats["skipped"].append(stage.value)
            logger.kv_debug(
                f"--- Skipped Stage: {stage.value} ---",
                kv_pairs={"Event": "StageSkipped", "Stage": stage.value},
            )
            return
        self._enter(stage)
        self.stats["stages"][stage.value] = {"duration": duration}
        logger.kv_debug(
            f"--- Finished Stage: {stage.value}. Duration: {duration:.3f} seconds ---",
            kv_pairs={"Event": "StageFinish", "Stage": stage.value, "Duration": f"{duration:.3f}s"},
        )

    def _enter(self, stage: PipelineStage) -> None:
        self.stage = stage
        self.history.append(stage)

    def _hand_over(self, image: Image.Image) -> None:
        """Make ``image`` the current handle, releasing the previous one."""
        previous = self._image
        self._image = image
        if previous is not None and previous is not image:
            self.codec.release(previous)

    def _release(self) -> None:
        if self._image is not None:
            image, self._image = self._image, None
            self.codec.release(image)

    def _load(self) -> None:
        input_path = self.options.files.input_path
        self._hand_over(self.codec.load(input_path))
        try:
            self._input_bytes = os.path.getsize(input_path)
        except OSError as exc:
            raise ResourceError(f"Unable to stat {input_path}: {exc}") from exc
        self._input_size = self._image.size
        self._output_size = self._image.size
        logger.info("Input dims: %d x %d", *self._input_size)

    def _resize(self) -> bool:
        target = resolve_dimensions(*self._image.size, self.options.dimensions)
        if not needs_resize(self._image.size, target):
            logger.info("Image already %d x %d; skipping resize", *self._image.size)
            return False
        logger.info("Scaling image to %s x %s", target[0] or "auto", target[1] or "auto")
        self._hand_over(self.codec.resize(self._image, target))
        return True

    def _watermark(self) -> None:
        spec = self.options.watermark
        logger.info(
            "Stamping watermark %r (opacity=%.2f, replicate=%s)",
            spec.text,
            spec.opacity,
            spec.replicate,
        )
        self._hand_over(WatermarkCompositor(spec).apply(self._image))

    def _encode(self) -> None:
        fmt = format_for_path(self._output_path)
        quality = self.options.dimensions.quality
        self._output_size = self._image.size
        self._encoded = self.codec.encode(self._image, fmt, quality)
        logger.info("Encoded %s: %d bytes", fmt, len(self._encoded))
        self._release()

    def _write(self) -> None:
        self.codec.write(self._encoded, self._output_path)
        logger.kv_info(
            f"Output saved to {self._output_path}",
            kv_pairs={"OutputPath": self._output_path},
        )

    def _skip_write(self) -> None:
        logger.info("No-op mode; not writing %s", self._output_path)

    def _log_final_summary(self) -> None:
        summary_kv: Dict[str, Any] = {
            "Event": "PipelineSummary",
            "TotalDuration": f"{self.stats['total_duration']:.3f}s",
        }
        for stage_name, data in self.stats["stages"].items():
            summary_kv[f"Stage{stage_name}Duration"] = f"{data['duration']:.3f}s"
        if self.stats["skipped"]:
            summary_kv["Skipped"] = ",".join(self.stats["skipped"])
        logger.kv_debug("Pipeline Summary", kv_pairs=summary_kv)


def run_pipeline(
    options: PipelineOptions, codec: Optional[ImageCodec] = None
) -> PipelineReport:
    """パイプラインを生成して実行するユーティリティ関数。"""
    return FinishingPipeline(options, codec).run()
