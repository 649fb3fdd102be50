from __future__ import annotations

import logging
import os
from typing import Optional, Tuple

from ..exceptions import NoExtensionError

logger = logging.getLogger(__name__)


def split_extension(file_name: str) -> Tuple[str, str]:
    """Split a basename at its last ``.``; the extension keeps the dot.

    Unlike ``os.path.splitext`` a leading dot counts as an extension
    separator, so ``".profile"`` splits into ``("", ".profile")``.
    """
    index = file_name.rfind(".")
    if index < 0:
        raise NoExtensionError(file_name)
    return file_name[:index], file_name[index:]


def derive_output_path(input_path: str, suffix: str) -> str:
    """Build ``<basename without extension><suffix><extension>``.

    The directory part of ``input_path`` is dropped, so the derived file
    lands in the current working directory.
    """
    base_name = os.path.basename(os.fspath(input_path))
    bare_name, extension = split_extension(base_name)
    logger.debug("Filename without ext: %s", bare_name)
    logger.debug("File extension: %s", extension)
    return f"{bare_name}{suffix}{extension}"


def resolve_output_path(
    input_path: str, output_path: Optional[str], suffix: str
) -> str:
    """Return ``output_path`` when given, otherwise derive one from the input."""
    if output_path:
        return output_path
    logger.info("Output file not supplied; using suffix '%s'", suffix)
    derived = derive_output_path(input_path, suffix)
    logger.info("New filename: %s", derived)
    return derived
