from typing import Any, Dict

from PIL import ImageColor

from ...exceptions import ArgumentError


def _require_section(config: Dict[str, Any], name: str) -> Dict[str, Any]:
    section = config.get(name, {})
    if section is None:
        return {}
    if not isinstance(section, dict):
        raise ArgumentError(f"'{name}' section must be a mapping.")
    return section


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _validate_output(output: Dict[str, Any]) -> None:
    quality = output.get("quality")
    if quality is not None:
        if not isinstance(quality, int) or isinstance(quality, bool):
            raise ArgumentError("output.quality must be an integer.")
        if not 1 <= quality <= 100:
            raise ArgumentError("output.quality must be between 1 and 100.")

    suffix = output.get("suffix")
    if suffix is not None and not isinstance(suffix, str):
        raise ArgumentError("output.suffix must be a string.")


def _validate_watermark(watermark: Dict[str, Any]) -> None:
    # opacity is parsed leniently by parse_opacity (warn and keep the default)
    replicate = watermark.get("replicate")
    if replicate is not None and not isinstance(replicate, bool):
        raise ArgumentError("watermark.replicate must be true or false.")

    color = watermark.get("color")
    if color is not None:
        if not isinstance(color, str):
            raise ArgumentError("watermark.color must be a color string.")
        try:
            ImageColor.getrgb(color)
        except ValueError as e:
            raise ArgumentError(f"watermark.color '{color}' is not a valid color.") from e

    font_path = watermark.get("font_path")
    if font_path is not None and not isinstance(font_path, str):
        raise ArgumentError("watermark.font_path must be a string.")

    for key in ("font_size", "dpi"):
        value = watermark.get(key)
        if value is not None and (not _is_number(value) or value <= 0):
            raise ArgumentError(f"watermark.{key} must be a positive number.")

    margin = watermark.get("margin")
    if margin is not None:
        if not isinstance(margin, int) or isinstance(margin, bool) or margin < 0:
            raise ArgumentError("watermark.margin must be a non-negative integer.")


def validate_config(config: Dict[str, Any]) -> Dict[str, Any]:
    """Check the merged configuration and return it unchanged.

    Raises
    ------
    ArgumentError
        On the first invalid value found.
    """
    if not isinstance(config, dict):
        raise ArgumentError("Configuration must be a mapping.")
    _validate_output(_require_section(config, "output"))
    _validate_watermark(_require_section(config, "watermark"))
    system = _require_section(config, "system")
    progress = system.get("progress")
    if progress is not None and not isinstance(progress, bool):
        raise ArgumentError("system.progress must be true or false.")
    return config
