from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date
from typing import Any, TypeVar

from ..db.store import MetricsStore
from ..excel.parsers import (
    WeeklyReport,
    parse_cash_position,
    parse_marketing,
    parse_phone,
    parse_productivity,
    parse_revenue_report,
    parse_weekly_report,
)
from ..excel.reader import Workbook
from ..models.csv_result import RowStatus, RowValidation
from ..models.records import ParsedWeek, StructuralRecord
from ..models.upload import DataSource, DuplicateStrategy, ImportRequest, ImportResult
from .import_engine import DEFAULT_TIMEOUT_SECONDS, import_rows
from .progress import ProgressTracker
from .registry import table_definition
from .weeks import current_week_ending

"""One-off migration of the historical reporting workbook.

All six sheet parsers run over the workbook; their records are grouped per
target table and either previewed (:func:`dry_run`) or written through the
import engine (:func:`import_workbook`), one audit record per table so every
table can be rolled back on its own.
"""

__all__ = [
    "TABLE_ORDER",
    "ParsedWorkbook",
    "TableSummary",
    "DryRunResult",
    "TableImport",
    "parse_workbook",
    "dry_run",
    "import_workbook",
]

logger = logging.getLogger(__name__)

TABLE_ORDER = (
    "financial_weekly",
    "projects_weekly",
    "sales_weekly",
    "leads_weekly",
    "google_reviews_weekly",
    "team_performance_weekly",
    "revenue_weekly",
    "cash_position_weekly",
    "staff_productivity_weekly",
    "phone_weekly",
    "marketing_performance_weekly",
)
SAMPLE_SIZE = 3
NUMERIC_TYPES = frozenset({"currency", "decimal", "integer", "percentage"})

Record = ParsedWeek | StructuralRecord
T = TypeVar("T")


@dataclass
class ParsedWorkbook:
    weekly: WeeklyReport = field(default_factory=WeeklyReport)
    revenue: list[StructuralRecord] = field(default_factory=list)
    cash_position: list[ParsedWeek] = field(default_factory=list)
    productivity: list[StructuralRecord] = field(default_factory=list)
    phone: list[StructuralRecord] = field(default_factory=list)
    marketing: list[StructuralRecord] = field(default_factory=list)

    def records(self) -> dict[str, list[Record]]:
        by_table: dict[str, list[Record]] = {
            "financial_weekly": list(self.weekly.financial),
            "projects_weekly": list(self.weekly.projects),
            "sales_weekly": list(self.weekly.sales),
            "leads_weekly": list(self.weekly.leads),
            "google_reviews_weekly": list(self.weekly.google_reviews),
            "team_performance_weekly": list(self.weekly.team_performance),
            "revenue_weekly": list(self.revenue),
            "cash_position_weekly": list(self.cash_position),
            "staff_productivity_weekly": list(self.productivity),
            "phone_weekly": list(self.phone),
            "marketing_performance_weekly": list(self.marketing),
        }
        return {table: by_table[table] for table in TABLE_ORDER}

    def tables(self) -> dict[str, list[dict[str, Any]]]:
        """Rows per target table, ready to write.

        Required numeric columns are NOT NULL in the database; a value the
        sheet left empty is written as 0.
        """
        result: dict[str, list[dict[str, Any]]] = {}
        for table, records in self.records().items():
            required = [
                f.db_field
                for f in table_definition(table).fields
                if f.required and f.type in NUMERIC_TYPES
            ]
            rows = []
            for record in records:
                row = record.to_row()
                for name in required:
                    if row.get(name) is None:
                        row[name] = 0
                rows.append(row)
            result[table] = rows
        return result


@dataclass
class TableSummary:
    table_name: str
    record_count: int
    sample_records: list[dict[str, Any]]
    warnings: list[str]

    def to_dict(self) -> dict[str, Any]:
        return {
            "table_name": self.table_name,
            "record_count": self.record_count,
            "sample_records": [
                {k: v.isoformat() if isinstance(v, date) else v for k, v in r.items()}
                for r in self.sample_records
            ],
            "warnings": list(self.warnings),
        }


@dataclass
class DryRunResult:
    tables: list[TableSummary]
    total_records: int
    total_warnings: int
    all_warnings: list[str]

    def to_dict(self) -> dict[str, Any]:
        return {
            "tables": [t.to_dict() for t in self.tables],
            "total_records": self.total_records,
            "total_warnings": self.total_warnings,
            "all_warnings": list(self.all_warnings),
        }


@dataclass
class TableImport:
    table_name: str
    record_count: int
    warnings: list[str] = field(default_factory=list)
    result: ImportResult | None = None
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None and (self.result is None or self.result.succeeded)


def _guarded(name: str, parse: Callable[[], T], empty: T) -> T:
    try:
        return parse()
    except Exception:
        logger.exception(f"error parsing {name}; sheet skipped")
        return empty


def parse_workbook(workbook: Workbook) -> ParsedWorkbook:
    """Run every sheet parser; a parser that fails contributes nothing."""
    weekly = _guarded("Weekly Report", lambda: parse_weekly_report(workbook), WeeklyReport())
    # the cash snapshot has no dates of its own: it belongs to the latest reported week
    week_date = weekly.financial[-1].week_date if weekly.financial else current_week_ending()
    cash = _guarded("Finance This Week", lambda: parse_cash_position(workbook, week_date), None)
    return ParsedWorkbook(
        weekly=weekly,
        revenue=_guarded("Weekly Revenue Report", lambda: parse_revenue_report(workbook), []),
        cash_position=[cash] if cash is not None else [],
        productivity=_guarded("Productivity", lambda: parse_productivity(workbook), []),
        phone=_guarded("Phone", lambda: parse_phone(workbook), []),
        marketing=_guarded("Marketing", lambda: parse_marketing(workbook), []),
    )


def dry_run(parsed: ParsedWorkbook) -> DryRunResult:
    tables: list[TableSummary] = []
    all_warnings: list[str] = []
    rows_by_table = parsed.tables()
    for table, records in parsed.records().items():
        warnings = [w for r in records for w in r.warnings]
        all_warnings.extend(warnings)
        rows = rows_by_table[table]
        tables.append(TableSummary(table, len(rows), rows[:SAMPLE_SIZE], warnings))
    return DryRunResult(
        tables=tables,
        total_records=sum(t.record_count for t in tables),
        total_warnings=len(all_warnings),
        all_warnings=all_warnings,
    )


def import_workbook(
    store: MetricsStore,
    parsed: ParsedWorkbook,
    *,
    strategy: DuplicateStrategy = DuplicateStrategy.OVERWRITE,
    file_name: str = "",
    uploaded_by: str | None = None,
    timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS,
    lock_table: bool = True,
) -> list[TableImport]:
    """Import every non-empty table; a failing table does not stop the rest."""
    records_by_table = parsed.records()
    rows_by_table = parsed.tables()
    pending = [t for t in TABLE_ORDER if rows_by_table[t]]
    outcomes: list[TableImport] = []
    started = time.perf_counter()

    with ProgressTracker(len(pending), description="Importing tables") as progress:
        for table in pending:
            progress.start(table)
            records = records_by_table[table]
            warnings = [w for r in records for w in r.warnings]
            for warning in warnings:
                logger.warning(f"{table}: {warning}")

            rows = [
                RowValidation(
                    row_index=i + 1,
                    status=RowStatus.WARNING if record.warnings else RowStatus.PASS,
                    messages=list(record.warnings),
                    data=row,
                    original={},
                )
                for i, (record, row) in enumerate(zip(records, rows_by_table[table], strict=True))
            ]
            request = ImportRequest(
                data_type=table_definition(table),
                rows=rows,
                duplicate_strategy=strategy,
                file_name=file_name,
                uploaded_by=uploaded_by,
                data_source=DataSource.BACKFILLED,
                audit_data_type=f"workbook:{table}",
            )
            outcome = TableImport(table, len(rows), warnings)
            try:
                outcome.result = import_rows(
                    store, request, timeout_seconds=timeout_seconds, lock_table=lock_table
                )
            except Exception as e:
                logger.error(f"error importing {table}: {e}")
                outcome.error = str(e)
            outcomes.append(outcome)
            progress.finish()
            if outcome.result is not None:
                progress.set_postfix(inserted=outcome.result.inserted, updated=outcome.result.updated)

    logger.debug(f"workbook import finished in {time.perf_counter() - started:.2f}s")
    return outcomes
