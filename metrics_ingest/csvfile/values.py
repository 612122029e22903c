from __future__ import annotations

import re
from datetime import date

from ..numbers import leading_float

"""Text -> value parsers for CSV cells.

All parsers return None when the text cannot be read; the caller turns that
into a row-level validation error.

The percentage rule is lossy on purpose: a bare number above 1 is taken as a
whole percentage (``54`` -> 0.54) and anything up to 1 as an existing ratio.
A ratio written as e.g. ``1.5`` is therefore misread as 1.5%. Source exports
mix both notations and downstream reports rely on this reading.
"""

__all__ = [
    "ISO_DATE",
    "AU_DATE",
    "parse_date",
    "parse_currency",
    "parse_percentage",
    "parse_numeric",
]

ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
AU_DATE = re.compile(r"^\d{1,2}/\d{1,2}/\d{2,4}$")

_CURRENCY_NOISE = re.compile(r"[$\s,]")
_NUMERIC_NOISE = re.compile(r"[\s,]")
_PAREN_NEGATIVE = re.compile(r"^\((.*)\)$")
_PAREN_NUMBER = re.compile(r"^\(([\d.]+)\)$")


def parse_date(value: str) -> date | None:
    """Parse ISO ``YYYY-MM-DD`` or Australian ``D/M/YY[YY]`` dates.

    Two-digit years below 50 are 20xx, the rest 19xx. Impossible dates such
    as 31/02/2024 give None.
    """
    text = value.strip()
    if ISO_DATE.match(text):
        try:
            return date.fromisoformat(text)
        except ValueError:
            return None
    if AU_DATE.match(text):
        day, month, year = (int(part) for part in text.split("/"))
        if year < 100:
            year += 2000 if year < 50 else 1900
        try:
            return date(year, month, day)
        except ValueError:
            return None
    return None


def parse_currency(value: str) -> float | None:
    """``"$1,234.56"`` -> 1234.56, ``"($1,234.56)"`` -> -1234.56."""
    text = value.strip()
    match = _PAREN_NEGATIVE.match(text)
    if match:
        text = match.group(1)
    text = _CURRENCY_NOISE.sub("", text)
    if match and not text.startswith("-"):
        text = "-" + text
    return leading_float(text)


def parse_percentage(value: str) -> float | None:
    text = value.strip()
    if text.endswith("%"):
        number = leading_float(text.replace("%", "", 1))
        return None if number is None else number / 100
    number = leading_float(text)
    if number is None:
        return None
    return number / 100 if number > 1 else number


def parse_numeric(value: str) -> float | None:
    """Plain number with optional thousands separators; ``(12)`` is -12."""
    text = _NUMERIC_NOISE.sub("", value.strip())
    match = _PAREN_NUMBER.match(text)
    if match:
        text = "-" + match.group(1)
    return leading_float(text)
