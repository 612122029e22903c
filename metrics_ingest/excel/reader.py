from __future__ import annotations

import io
import logging
import zipfile
from collections.abc import Callable, Iterable, Sequence
from pathlib import Path
from typing import IO, Any

import openpyxl
from openpyxl.cell.rich_text import CellRichText
from openpyxl.utils.exceptions import InvalidFileException

from ..models.cell import NO_RESULT, CellError, CellExtraction, CellValue, Formula, Hyperlink, RichText
from .cells import cell_ref, extract_cell, extract_numeric

"""Workbook reader.

openpyxl exposes either formulas (default) or cached results (``data_only``)
but never both, so the file is opened twice and each formula cell is paired
with its cached value. A formula whose cached value is missing becomes an
uncached :class:`Formula`; the extractor turns it into 0 plus a warning.

Sheets are converted lazily on first access: a report workbook carries many
sheets the parsers never look at.
"""

__all__ = [
    "WorkbookError",
    "Sheet",
    "Workbook",
    "load_workbook",
]

logger = logging.getLogger(__name__)


class WorkbookError(Exception):
    """Raised when a workbook cannot be opened."""


class Sheet:
    """Grid of raw cell values addressed by 1-based (row, col)."""

    def __init__(self, name: str, cells: dict[tuple[int, int], CellValue], max_row: int, max_column: int) -> None:
        self.name = name
        self._cells = cells
        self.max_row = max_row
        self.max_column = max_column

    @classmethod
    def from_rows(cls, name: str, rows: Sequence[Sequence[Any]]) -> Sheet:
        """Build a sheet from nested sequences; ``rows[0]`` is row 1."""
        cells: dict[tuple[int, int], CellValue] = {}
        for r, row in enumerate(rows, start=1):
            for c, value in enumerate(row, start=1):
                if value is not None:
                    cells[(r, c)] = value
        max_column = max((len(row) for row in rows), default=0)
        return cls(name, cells, len(rows), max_column)

    def value(self, row: int, col: int) -> CellValue:
        return self._cells.get((row, col))

    def ref(self, row: int, col: int) -> str:
        return f"{self.name}!{cell_ref(row, col)}"

    def extract(self, row: int, col: int) -> CellExtraction:
        return extract_cell(self.value(row, col), self.ref(row, col))

    def numeric(self, row: int, col: int) -> CellExtraction:
        return extract_numeric(self.value(row, col), self.ref(row, col))

    def label(self, row: int, col: int) -> str:
        """Cell text for label matching; empty string unless the cell holds text."""
        value = self.extract(row, col).value
        if not isinstance(value, str):
            return ""
        return value.strip()

    def __repr__(self) -> str:  # pragma: no cover (debug aid)
        return f"Sheet({self.name!r}, rows={self.max_row}, cols={self.max_column})"


class Workbook:
    def __init__(self, sheet_names: Iterable[str], loader: Callable[[str], Sheet]) -> None:
        self.sheet_names = list(sheet_names)
        self._loader = loader
        self._cache: dict[str, Sheet] = {}

    @classmethod
    def from_sheets(cls, sheets: Iterable[Sheet]) -> Workbook:
        by_name = {s.name: s for s in sheets}
        return cls(by_name.keys(), by_name.__getitem__)

    def sheet(self, name: str) -> Sheet | None:
        """Return the sheet called exactly ``name`` or None when absent."""
        if name not in self.sheet_names:
            return None
        if name not in self._cache:
            self._cache[name] = self._loader(name)
        return self._cache[name]


def _cached_result(cached: Any) -> Any:
    if cached.value is None:
        return NO_RESULT
    if cached.data_type == "e":
        return CellError(str(cached.value))
    return cached.value


def _convert_cell(cell: Any, values_ws: Any) -> CellValue:
    value = cell.value
    if value is None:
        return None
    if cell.data_type == "f":
        # ArrayFormula / DataTableFormula carry their text in .text
        text = value if isinstance(value, str) else getattr(value, "text", None) or str(value)
        cached = values_ws.cell(row=cell.row, column=cell.column)
        return Formula(formula=text, result=_cached_result(cached))
    if cell.data_type == "e":
        return CellError(str(value))
    if isinstance(value, CellRichText):
        runs = tuple(part if isinstance(part, str) else part.text for part in value)
        return RichText(runs=runs)
    link = getattr(cell, "hyperlink", None)
    # only text becomes a Hyperlink; dates and numbers keep their type
    if link is not None and isinstance(value, str):
        return Hyperlink(text=value, target=link.target)
    return value


def _convert_sheet(name: str, formulas_ws: Any, values_ws: Any) -> Sheet:
    cells: dict[tuple[int, int], CellValue] = {}
    for row in formulas_ws.iter_rows():
        for cell in row:
            converted = _convert_cell(cell, values_ws)
            if converted is not None:
                cells[(cell.row, cell.column)] = converted
    logger.debug(f"sheet loaded: {name} rows={formulas_ws.max_row} cols={formulas_ws.max_column}")
    return Sheet(name, cells, formulas_ws.max_row, formulas_ws.max_column)


def load_workbook(source: Path | bytes | IO[bytes]) -> Workbook:
    """Open an ``.xlsx`` workbook from a path, raw bytes or a binary stream.

    Raises:
        WorkbookError: The content is not a readable workbook
    """
    if isinstance(source, Path):
        data = source.read_bytes()
    elif isinstance(source, bytes):
        data = source
    else:
        data = source.read()
    try:
        formulas_wb = openpyxl.load_workbook(io.BytesIO(data), data_only=False, rich_text=True)
        values_wb = openpyxl.load_workbook(io.BytesIO(data), data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError, ValueError) as e:
        raise WorkbookError(f"cannot open workbook: {e}") from e

    def _load(name: str) -> Sheet:
        return _convert_sheet(name, formulas_wb[name], values_wb[name])

    return Workbook(formulas_wb.sheetnames, _load)
