from __future__ import annotations

import io
import logging
import re
import warnings
from collections import Counter

import pandas as pd

from ..models.csv_result import ColumnInfo, InferredType, ParseResult
from .values import AU_DATE, ISO_DATE

"""CSV reading and column type inference.

Files are decoded, stripped of a byte-order mark and read by pandas with every
cell kept as the raw string (no NA conversion, blank lines kept) so that row
counts and row numbers match what the user sees in the file.
"""

__all__ = [
    "CsvParseError",
    "DELIMITER_CANDIDATES",
    "strip_bom",
    "detect_delimiter",
    "classify_value",
    "infer_type",
    "parse_csv",
]

logger = logging.getLogger(__name__)

DELIMITER_CANDIDATES = (",", "\t", ";")
DELIMITER_SCAN_LINES = 5
DEFAULT_SAMPLE_SIZE = 20
DEFAULT_PREVIEW_ROWS = 10
SAMPLE_DISPLAY = 5

PERCENTAGE = re.compile(r"^-?\d+\.?\d*\s*%$")
CURRENCY = re.compile(r"^-?\$?\s*[\d,]+\.?\d*$")
CURRENCY_NO_SYMBOL = re.compile(r"^-?[\d,]+\.\d{2}$")
DECIMAL = re.compile(r"^-?\d+\.\d+$")
INTEGER = re.compile(r"^-?\d+$")


class CsvParseError(Exception):
    """Raised when the content cannot be read as delimited text."""


def strip_bom(text: str) -> str:
    return text[1:] if text.startswith("﻿") else text


def detect_delimiter(text: str) -> str:
    """Most frequent of ``,``/tab/``;`` in the first lines; comma on no hits or ties."""
    head = "\n".join(text.split("\n")[:DELIMITER_SCAN_LINES])
    counts = {candidate: head.count(candidate) for candidate in DELIMITER_CANDIDATES}
    best = max(DELIMITER_CANDIDATES, key=lambda c: counts[c])
    return best if counts[best] > 0 else ","


def classify_value(value: str) -> InferredType:
    text = value.strip()
    if AU_DATE.match(text) or ISO_DATE.match(text):
        return InferredType.DATE
    if PERCENTAGE.match(text):
        return InferredType.PERCENTAGE
    if CURRENCY.match(text) and "$" in text:
        return InferredType.CURRENCY
    if CURRENCY_NO_SYMBOL.match(text) and "," in text:
        return InferredType.CURRENCY
    if DECIMAL.match(text):
        return InferredType.DECIMAL
    if INTEGER.match(text):
        return InferredType.INTEGER
    return InferredType.TEXT


def infer_type(samples: list[str]) -> InferredType:
    """Type shared by more than half the samples; decimal if integers and decimals mix."""
    if not samples:
        return InferredType.TEXT
    counts = Counter(classify_value(v) for v in samples)
    for inferred, count in counts.items():
        if inferred is not InferredType.TEXT and count / len(samples) > 0.5:
            return inferred
    if InferredType.INTEGER in counts and InferredType.DECIMAL in counts:
        return InferredType.DECIMAL
    return InferredType.TEXT


def _is_blank(row: dict[str, str]) -> bool:
    return all(not str(v).strip() for v in row.values())


def _read(text: str, delimiter: str) -> pd.DataFrame:
    """Every cell as the literal string in the file; blank lines are kept as rows."""
    return pd.read_csv(
        io.StringIO(text),
        sep=delimiter,
        engine="python",
        dtype=str,
        keep_default_na=False,
        na_filter=False,
        skip_blank_lines=False,
        index_col=False,
    )


def parse_csv(
    content: bytes | str,
    *,
    encoding: str = "utf-8",
    sample_size: int = DEFAULT_SAMPLE_SIZE,
    preview_rows: int = DEFAULT_PREVIEW_ROWS,
) -> ParseResult:
    """Read CSV content into a :class:`ParseResult` preview.

    Args:
        content: Raw file bytes or already decoded text
        encoding: Codec for ``bytes`` content; undecodable bytes are replaced
        sample_size: Non-blank rows used for type inference
        preview_rows: Non-blank rows returned as preview

    Raises:
        CsvParseError: pandas cannot tokenize the text
    """
    text = content.decode(encoding, errors="replace") if isinstance(content, bytes) else content
    text = strip_bom(text)
    delimiter = detect_delimiter(text)
    label = "tab" if delimiter == "\t" else delimiter

    if not text.strip():
        return ParseResult(headers=[], columns=[], total_rows=0, preview_rows=[], delimiter=label, encoding=encoding)

    # index_col=False: pandas drops the extra fields of an overlong row and
    # warns instead of failing the file, so the row keeps its place
    try:
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always", pd.errors.ParserWarning)
            df = _read(text, delimiter)
    except pd.errors.ParserError as e:
        raise CsvParseError(f"cannot parse CSV: {e}") from e
    if any(issubclass(w.category, pd.errors.ParserWarning) for w in caught):
        logger.warning(f"rows with more than {len(df.columns)} fields were cut to the header width")

    headers = [str(c).strip() for c in df.columns]
    df.columns = headers
    rows: list[dict[str, str]] = df.fillna("").astype(str).to_dict(orient="records")
    non_blank = [r for r in rows if not _is_blank(r)]

    columns: list[ColumnInfo] = []
    for header in headers:
        samples = [r.get(header, "") for r in non_blank[:sample_size]]
        samples = [v for v in samples if v.strip()]
        columns.append(ColumnInfo(header=header, inferred_type=infer_type(samples), sample_values=samples[:SAMPLE_DISPLAY]))

    logger.debug(f"csv parsed: rows={len(rows)} non_blank={len(non_blank)} delimiter={label!r}")
    return ParseResult(
        headers=headers,
        columns=columns,
        total_rows=len(rows),
        preview_rows=non_blank[:preview_rows],
        delimiter=label,
        encoding=encoding,
        rows=rows,
    )
