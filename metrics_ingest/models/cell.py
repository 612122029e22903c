from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Union

"""Raw spreadsheet cell representations.

A cell read from a workbook is either a plain literal (None, int, float, str,
bool, date/datetime) or one of the wrapper types below. The wrappers keep the
information the extractor needs to degrade gracefully: an error code, a
formula together with its cached result (if the file carries one), rich text
runs, or a hyperlink's display text.
"""

__all__ = [
    "NO_RESULT",
    "CellError",
    "Formula",
    "RichText",
    "Hyperlink",
    "CellValue",
    "CellExtraction",
    "ExtractedValue",
]


class _NoResult:
    """Sentinel for a formula whose cached result is absent from the file."""

    _instance: _NoResult | None = None

    def __new__(cls) -> _NoResult:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "NO_RESULT"

    def __bool__(self) -> bool:
        return False


NO_RESULT = _NoResult()


@dataclass(frozen=True)
class CellError:
    """A spreadsheet error value such as ``#DIV/0!`` or ``#REF!``."""
    code: str


@dataclass(frozen=True)
class Formula:
    """A formula cell.

    Attributes:
        formula: Formula text as stored in the file (leading ``=`` optional)
        result: Cached result, ``NO_RESULT`` when the workbook was saved without
            calculating it (typical for cross-sheet references written by tools)
        shared: True when the cell is a dependent of a shared formula
    """
    formula: str
    result: Any = NO_RESULT
    shared: bool = False

    @property
    def has_result(self) -> bool:
        return self.result is not NO_RESULT


@dataclass(frozen=True)
class RichText:
    runs: tuple[str, ...]

    @property
    def text(self) -> str:
        return "".join(self.runs)


@dataclass(frozen=True)
class Hyperlink:
    text: str
    target: str | None = None


CellValue = Union[None, int, float, str, bool, date, CellError, Formula, RichText, Hyperlink]
ExtractedValue = Union[None, int, float, str, date]


@dataclass(frozen=True)
class CellExtraction:
    """Normalized cell value plus an optional warning naming the cell."""
    value: ExtractedValue
    warning: str | None = None
