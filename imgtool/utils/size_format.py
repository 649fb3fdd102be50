"""バイト数を 1024 基数の単位付き文字列へ変換するユーティリティ。"""

from __future__ import annotations

from typing import Tuple

UNITS: Tuple[str, ...] = ("", "K", "M", "G", "T", "P", "E", "Z", "Y")
_STEP = 1024


def unit_index(num_bytes: int | float) -> int:
    """Index into ``UNITS`` of the largest unit keeping the value below 1024.

    Saturates at the last unit ("Y").
    """
    value = abs(float(num_bytes))
    index = 0
    while value >= _STEP and index < len(UNITS) - 1:
        value /= _STEP
        index += 1
    return index


def humanize_bytes(num_bytes: int | float) -> str:
    """Render a byte count like ``"512"``, ``"1.5K"`` or ``"3.2M"``.

    The base unit is printed as an integer, every other unit with one
    decimal place.
    """
    index = unit_index(num_bytes)
    if index == 0:
        return f"{int(num_bytes)}"
    scaled = float(num_bytes) / (_STEP**index)
    return f"{scaled:.1f}{UNITS[index]}"


def format_size_delta(before: int, after: int) -> str:
    """Signed humanized difference between two sizes with its percentage."""
    delta = after - before
    sign = "+" if delta > 0 else ("-" if delta < 0 else "")
    text = f"{sign}{humanize_bytes(abs(delta))}"
    if before > 0:
        text += f" ({delta / before * 100:+.1f}%)"
    return text
