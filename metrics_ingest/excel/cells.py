from __future__ import annotations

import re
from datetime import date
from typing import Any

from openpyxl.utils import get_column_letter

from ..models.cell import CellError, CellExtraction, Formula, Hyperlink, RichText
from ..numbers import leading_float

"""Cell extraction.

Turns any raw cell value (see :mod:`metrics_ingest.models.cell`) into a plain
value plus an optional warning. Extraction never raises: spreadsheet errors
and formulas saved without a cached result become ``0`` with a warning naming
the cell, so one broken cell cannot abort a whole sheet.

``extract_numeric`` keeps a deliberate distinction: a genuinely empty cell is
``None`` while an errored cell is ``0``. Downstream null-aware sums depend on it.
"""

__all__ = [
    "cell_ref",
    "extract_cell",
    "extract_numeric",
]

_NUMERIC_NOISE = re.compile(r"[$,%\s]")
_PARENTHESIZED = re.compile(r"^\((.*)\)$")


def cell_ref(row: int, col: int) -> str:
    """A1-style reference for 1-based ``row``/``col``."""
    return f"{get_column_letter(col)}{row}"


def extract_cell(value: Any, ref: str) -> CellExtraction:
    if value is None:
        return CellExtraction(None)
    # bool is an int subclass; check it first
    if isinstance(value, bool):
        return CellExtraction(1 if value else 0)
    if isinstance(value, (int, float)):
        return CellExtraction(value)
    if isinstance(value, str):
        return CellExtraction(value.strip())
    if isinstance(value, date):
        return CellExtraction(value)
    if isinstance(value, CellError):
        return CellExtraction(0, f"{ref}: formula error {value.code}, set to 0")
    if isinstance(value, Formula):
        return _extract_formula(value, ref)
    if isinstance(value, RichText):
        return CellExtraction(value.text.strip())
    if isinstance(value, Hyperlink):
        return CellExtraction(value.text.strip())
    return CellExtraction(str(value).strip())


def _extract_formula(formula: Formula, ref: str) -> CellExtraction:
    kind = "shared formula" if formula.shared else "formula"
    if not formula.has_result:
        if formula.shared:
            return CellExtraction(0, f"{ref}: uncached shared formula, set to 0")
        return CellExtraction(0, f'{ref}: uncached formula "{formula.formula}", set to 0')
    result = formula.result
    if result is None:
        return CellExtraction(None)
    if isinstance(result, CellError):
        return CellExtraction(0, f"{ref}: {kind} result error {result.code}, set to 0")
    return extract_cell(result, ref)


def extract_numeric(value: Any, ref: str) -> CellExtraction:
    """Extract a cell as a number.

    Strings lose ``$``, ``,``, ``%`` and whitespace, ``(12.50)`` reads as
    ``-12.5`` and only the leading numeric part is used. Dates and text
    without a number give ``None``.
    """
    extraction = extract_cell(value, ref)
    raw = extraction.value
    if raw is None or isinstance(raw, (int, float)):
        return extraction
    if isinstance(raw, date):
        return CellExtraction(None, extraction.warning)

    text = _NUMERIC_NOISE.sub("", raw)
    negative = False
    match = _PARENTHESIZED.match(text)
    if match:
        negative = True
        text = match.group(1)
    number = leading_float(text)
    if number is None:
        return CellExtraction(None, extraction.warning)
    return CellExtraction(-number if negative else number, extraction.warning)
