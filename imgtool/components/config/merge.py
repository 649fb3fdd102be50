from typing import Any, Dict


def merge_configs(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge two dictionaries where ``override`` has precedence.

    Nested dicts are merged key by key; any other value replaces the base one.
    ``None`` sections in ``override`` leave the base section untouched.
    """
    merged = base.copy()
    for key, value in (override or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_configs(merged[key], value)
        elif value is None and isinstance(merged.get(key), dict):
            continue
        else:
            merged[key] = value
    return merged
