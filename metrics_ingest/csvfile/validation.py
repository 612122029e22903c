from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import date
from typing import Any

from ..models.csv_result import (
    DuplicateInfo,
    FieldMapping,
    RowStatus,
    RowValidation,
    ValidationResult,
    ValidationSummary,
)
from ..numbers import round_half_up
from ..services.weeks import validate_week_ending
from .values import parse_currency, parse_date, parse_numeric, parse_percentage

"""Row validation against a header -> field mapping.

Every mapping of a row is checked, so one row can collect several messages;
its status is the worst one seen. Blank rows are counted and dropped, but
``row_index`` keeps counting them so it points at the line in the file.
"""

__all__ = [
    "validate_rows",
    "validate_row",
    "detect_duplicates",
]

WEEK_ENDING_FIELD = "week_ending"


def _is_blank(row: dict[str, Any]) -> bool:
    return all(not str(v if v is not None else "").strip() for v in row.values())


def _convert(mapping: FieldMapping, raw: str, week_ending_field: str) -> tuple[Any, RowStatus, str | None]:
    """Typed value for one cell plus the status and message it contributes."""
    header = mapping.csv_header
    kind = mapping.expected_type

    if kind == "date":
        parsed = parse_date(raw)
        if parsed is None:
            return None, RowStatus.ERROR, f'"{header}": cannot parse "{raw}" as a date'
        if mapping.db_field in (week_ending_field, WEEK_ENDING_FIELD):
            check = validate_week_ending(parsed)
            if not check.valid:
                return None, RowStatus.ERROR, f'"{header}": {check.error}'
            if check.corrected:
                return check.date, RowStatus.WARNING, f'"{header}": auto-corrected to Saturday {check.date.isoformat()}'
        return parsed, RowStatus.PASS, None

    if kind == "currency":
        number = parse_currency(raw)
        if number is None:
            return None, RowStatus.ERROR, f'"{header}": cannot parse "{raw}" as currency'
        return number, RowStatus.PASS, None

    if kind == "percentage":
        number = parse_percentage(raw)
        if number is None:
            return None, RowStatus.ERROR, f'"{header}": cannot parse "{raw}" as percentage'
        return number, RowStatus.PASS, None

    if kind in ("integer", "decimal"):
        number = parse_numeric(raw)
        if number is None:
            return None, RowStatus.ERROR, f'"{header}": cannot parse "{raw}" as a number'
        return (round_half_up(number) if kind == "integer" else number), RowStatus.PASS, None

    return raw, RowStatus.PASS, None


def validate_row(
    row: dict[str, Any],
    row_index: int,
    mappings: Sequence[FieldMapping],
    week_ending_field: str = WEEK_ENDING_FIELD,
) -> RowValidation:
    status = RowStatus.PASS
    messages: list[str] = []
    data: dict[str, Any] = {}

    for mapping in mappings:
        value = row.get(mapping.csv_header)
        raw = "" if value is None else str(value).strip()
        if not raw:
            if mapping.required:
                status = status.worst(RowStatus.ERROR)
                messages.append(f'Required field "{mapping.csv_header}" is empty')
            else:
                data[mapping.db_field] = None
            continue

        converted, field_status, message = _convert(mapping, raw, week_ending_field)
        status = status.worst(field_status)
        if message:
            messages.append(message)
        if field_status is not RowStatus.ERROR:
            data[mapping.db_field] = converted

    return RowValidation(
        row_index=row_index,
        status=status,
        messages=messages,
        data=data,
        original={k: "" if v is None else str(v) for k, v in row.items()},
    )


def validate_rows(
    rows: Sequence[dict[str, Any]],
    mappings: Sequence[FieldMapping],
    week_ending_field: str = WEEK_ENDING_FIELD,
) -> ValidationResult:
    """Validate raw CSV rows.

    Args:
        rows: Header -> raw string dicts, blank rows included
        mappings: Which header feeds which field, with its expected type
        week_ending_field: Field checked (and snapped) as a Saturday

    Returns:
        ValidationResult: One entry per non-blank row plus counters
    """
    results: list[RowValidation] = []
    blank_skipped = 0
    for i, row in enumerate(rows):
        if _is_blank(row):
            blank_skipped += 1
            continue
        results.append(validate_row(row, i + 1, mappings, week_ending_field))

    summary = ValidationSummary(
        total=len(results),
        passed=sum(1 for r in results if r.status is RowStatus.PASS),
        warnings=sum(1 for r in results if r.status is RowStatus.WARNING),
        errors=sum(1 for r in results if r.status is RowStatus.ERROR),
        blank_skipped=blank_skipped,
    )
    return ValidationResult(rows=results, summary=summary)


def detect_duplicates(
    rows: Iterable[RowValidation],
    week_ending_field: str,
    existing_weeks: Iterable[date],
) -> list[DuplicateInfo]:
    """Rows whose week ending already has data in the target table."""
    existing = set(existing_weeks)
    duplicates: list[DuplicateInfo] = []
    for row in rows:
        week = row.data.get(week_ending_field)
        if isinstance(week, date) and week in existing:
            duplicates.append(DuplicateInfo(week_ending=week, row_index=row.row_index))
    return duplicates
