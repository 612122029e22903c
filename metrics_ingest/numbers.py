from __future__ import annotations

import math
import re

"""Numeric helpers shared by the workbook and CSV paths."""

__all__ = [
    "leading_float",
    "round_half_up",
]

_LEADING_FLOAT = re.compile(r"^[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")


def leading_float(text: str) -> float | None:
    """Parse the longest numeric prefix of ``text``.

    ``"12.5abc"`` -> 12.5, ``"abc"`` -> None. Leading whitespace is ignored.
    """
    match = _LEADING_FLOAT.match(text.lstrip())
    if match is None:
        return None
    return float(match.group(0))


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves toward positive infinity."""
    return int(math.floor(value + 0.5))
