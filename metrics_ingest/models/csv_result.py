from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any

"""CSV pipeline models: parse preview, field mappings and row validation."""

__all__ = [
    "InferredType",
    "ColumnInfo",
    "ParseResult",
    "FieldMapping",
    "RowStatus",
    "RowValidation",
    "ValidationSummary",
    "ValidationResult",
    "DuplicateInfo",
]


class InferredType(Enum):
    DATE = "date"
    CURRENCY = "currency"
    PERCENTAGE = "percentage"
    INTEGER = "integer"
    DECIMAL = "decimal"
    TEXT = "text"


@dataclass(frozen=True)
class ColumnInfo:
    header: str
    inferred_type: InferredType
    sample_values: list[str]

    def to_dict(self) -> dict[str, Any]:
        return {
            "header": self.header,
            "inferred_type": self.inferred_type.value,
            "sample_values": list(self.sample_values),
        }


@dataclass
class ParseResult:
    """Preview of an uploaded CSV file.

    ``rows`` holds every data row (blank ones included) as header -> raw string;
    it is what validation runs over and is left out of :meth:`to_dict`.
    """
    headers: list[str]
    columns: list[ColumnInfo]
    total_rows: int
    preview_rows: list[dict[str, str]]
    delimiter: str
    encoding: str
    rows: list[dict[str, str]] = field(default_factory=list, repr=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "headers": list(self.headers),
            "columns": [c.to_dict() for c in self.columns],
            "total_rows": self.total_rows,
            "preview_rows": [dict(r) for r in self.preview_rows],
            "delimiter": self.delimiter,
            "encoding": self.encoding,
        }


@dataclass(frozen=True)
class FieldMapping:
    csv_header: str
    db_field: str
    expected_type: str  # date | currency | percentage | integer | decimal | text
    required: bool


class RowStatus(Enum):
    PASS = "pass"
    WARNING = "warning"
    ERROR = "error"

    @property
    def severity(self) -> int:
        return _SEVERITY[self]

    def worst(self, other: RowStatus) -> RowStatus:
        return self if self.severity >= other.severity else other


_SEVERITY = {RowStatus.PASS: 0, RowStatus.WARNING: 1, RowStatus.ERROR: 2}


@dataclass
class RowValidation:
    row_index: int  # 1-based data row number in the source file
    status: RowStatus
    messages: list[str]
    data: dict[str, Any]
    original: dict[str, str]


@dataclass(frozen=True)
class ValidationSummary:
    total: int
    passed: int
    warnings: int
    errors: int
    blank_skipped: int


@dataclass
class ValidationResult:
    rows: list[RowValidation]
    summary: ValidationSummary


@dataclass(frozen=True)
class DuplicateInfo:
    week_ending: date
    row_index: int
    exists_in_db: bool = True
