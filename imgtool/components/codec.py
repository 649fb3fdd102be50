"""Pillow を用いた画像の読み込み・リサイズ・エンコード・書き出し。"""

from __future__ import annotations

import io
import logging
from pathlib import Path
from typing import Optional, Tuple

from PIL import Image, UnidentifiedImageError

from ..exceptions import EncodeError, ResourceError, WriteError
from ..utils.logger import logger as package_logger
from ..utils.logger import time_log
from .dimensions import infer_missing_dimension

logger = logging.getLogger(__name__)

RESAMPLE_LANCZOS = Image.Resampling.LANCZOS

# Formats whose Pillow encoder understands a ``quality`` keyword
QUALITY_FORMATS = {"JPEG", "WEBP", "AVIF"}


def format_for_path(path: str) -> str:
    """Pillow format name for a file name, based on its extension."""
    ext = Path(path).suffix.lower()
    fmt = Image.registered_extensions().get(ext)
    if not fmt:
        raise EncodeError(f"Unsupported output extension '{ext}' for {path}", stage="ENCODED")
    return fmt


class ImageCodec:
    """Capability surface wrapping everything that touches pixels on disk."""

    def __init__(self, resample: Image.Resampling = RESAMPLE_LANCZOS):
        self.resample = resample

    @time_log(package_logger)
    def load(self, path: str) -> Image.Image:
        try:
            image = Image.open(path)
        except FileNotFoundError as exc:
            raise ResourceError(f"Input file not found: {path}", stage="LOADED") from exc
        except UnidentifiedImageError as exc:
            raise ResourceError(f"Not a recognised image: {path}", stage="LOADED") from exc
        except (OSError, MemoryError, Image.DecompressionBombError) as exc:
            raise ResourceError(f"Unable to read {path}: {exc}", stage="LOADED") from exc
        try:
            image.load()
        except (OSError, SyntaxError, MemoryError, Image.DecompressionBombError) as exc:
            # opened but undecodable (e.g. truncated); the handle is ours to close
            self.release(image)
            raise ResourceError(f"Unable to decode {path}: {exc}", stage="LOADED") from exc
        logger.debug("Loaded %s (%s, %dx%d)", path, image.mode, image.width, image.height)
        return image

    @time_log(package_logger)
    def resize(self, image: Image.Image, target: Tuple[int, int]) -> Image.Image:
        """Resize to ``target``; a 0 side is inferred from the other one."""
        size = infer_missing_dimension(image.size, target)
        try:
            return image.resize(size, self.resample)
        except (OSError, MemoryError, ValueError) as exc:
            raise ResourceError(f"Resize to {size[0]}x{size[1]} failed: {exc}", stage="RESIZED") from exc

    @time_log(package_logger)
    def encode(self, image: Image.Image, fmt: str, quality: Optional[int] = None) -> bytes:
        """Serialize ``image`` fully in memory."""
        params = {}
        if quality is not None and fmt in QUALITY_FORMATS:
            params["quality"] = int(quality)
        buffer = io.BytesIO()
        try:
            image.save(buffer, format=fmt, **params)
        except (OSError, ValueError, KeyError, MemoryError) as exc:
            raise EncodeError(f"Encoding {image.mode} image as {fmt} failed: {exc}", stage="ENCODED") from exc
        return buffer.getvalue()

    @time_log(package_logger)
    def write(self, data: bytes, path: str) -> None:
        if not path:
            raise WriteError("Refusing to write to an empty output path", stage="WRITTEN")
        try:
            Path(path).parent.mkdir(parents=True, exist_ok=True)
            with open(path, "wb") as f:
                f.write(data)
        except OSError as exc:
            raise WriteError(f"Unable to write {path}: {exc}", stage="WRITTEN") from exc

    def release(self, image: Image.Image) -> None:
        image.close()
