from pathlib import Path
from typing import Any, Dict

import yaml
from yaml import YAMLError

from ...exceptions import ArgumentError

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parents[2] / "templates" / "config.yaml"


def load_config(config_path: str) -> Dict[str, Any]:
    """Load a YAML configuration file with friendly validation errors.

    Parameters
    ----------
    config_path: str
        Path to a YAML file (UTF-8).

    Returns
    -------
    Dict[str, Any]
        The parsed mapping; an empty file yields ``{}``.

    Raises
    ------
    ArgumentError
        When the file is not found, the YAML syntax is invalid, or the
        document is not a mapping.
    """
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except YAMLError as e:
        mark = getattr(e, "problem_mark", None) or getattr(e, "context_mark", None)
        line = mark.line + 1 if mark else None
        column = mark.column + 1 if mark else None
        raise ArgumentError(
            f"Invalid YAML syntax in {config_path}: {e}",
            line_number=line,
            column_number=column,
        ) from e
    except FileNotFoundError as e:
        raise ArgumentError(f"Configuration file not found: {config_path}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ArgumentError(f"Configuration in {config_path} must be a mapping.")
    return data


def load_default_config() -> Dict[str, Any]:
    """The packaged ``templates/config.yaml``."""
    return load_config(str(DEFAULT_CONFIG_PATH))
