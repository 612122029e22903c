from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any

from ..db.store import (
    TABLE_UNIQUE_KEYS,
    MetricsStore,
    StoreUnavailableError,
    strip_managed,
    unique_key,
)
from ..models.csv_result import RowStatus, RowValidation
from ..models.upload import (
    DuplicateStrategy,
    ImportRequest,
    ImportResult,
    OverwrittenRecord,
    RollbackData,
    RowError,
    UploadStatus,
)

"""Import engine: validated rows -> target table, with an audit record.

Flow (one call = one audit record in ``csv_uploads``):
1. rows already marked ``error`` by validation are reported, never written
2. the audit record is created in its own transaction (status ``processing``)
3. one transaction writes every remaining row; each row runs in a savepoint so
   a failing row is undone on its own and the batch continues
4. the completion update (counters, rollback data, error log) commits with
   the rows, so a completed record always matches what was written
5. if the transaction itself fails nothing is written and the record is
   marked ``failed`` in a separate transaction

Rollback bookkeeping is only recorded for rows whose savepoint was released.
"""

__all__ = [
    "DEFAULT_TIMEOUT_SECONDS",
    "UnknownTableError",
    "MissingKeyError",
    "import_rows",
]

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 60


class UnknownTableError(Exception):
    """Target table has no unique-key configuration."""


class MissingKeyError(Exception):
    def __init__(self, key: str, table: str):
        super().__init__(f'Missing unique key field "{key}" for table "{table}"')
        self.key = key
        self.table = table


@dataclass
class _RowOutcome:
    action: str  # inserted | updated | skipped
    row_id: int | None = None
    previous: dict[str, Any] | None = None


@dataclass
class _Progress:
    inserted_ids: list[int] = field(default_factory=list)
    overwritten: list[OverwrittenRecord] = field(default_factory=list)
    inserted: int = 0
    updated: int = 0
    skipped: int = 0

    def record(self, outcome: _RowOutcome) -> None:
        if outcome.action == "inserted":
            self.inserted_ids.append(outcome.row_id)
            self.inserted += 1
        elif outcome.action == "updated":
            self.overwritten.append(OverwrittenRecord(outcome.row_id, outcome.previous or {}))
            self.updated += 1
        else:
            self.skipped += 1


def _merge_fields(existing: dict[str, Any], data: dict[str, Any]) -> dict[str, Any]:
    """Incoming non-null values for fields that are null on the existing row."""
    return {
        key: value
        for key, value in data.items()
        if value is not None and existing.get(key) is None
    }


def _apply_row(
    store: MetricsStore,
    request: ImportRequest,
    table: str,
    row: RowValidation,
    upload_id: int,
) -> _RowOutcome:
    data = strip_managed({**row.data, **request.data_type.fixed_fields})
    try:
        key = unique_key(table, data)
    except KeyError as e:
        raise MissingKeyError(e.args[0], table) from None

    tags = {"data_source": request.data_source.value, "upload_id": upload_id}
    existing = store.find_by_key(table, key)
    if existing is None:
        row_id = store.insert(table, {**data, **tags})
        return _RowOutcome("inserted", row_id=row_id)

    strategy = request.duplicate_strategy
    if strategy is DuplicateStrategy.SKIP:
        return _RowOutcome("skipped")

    previous = strip_managed(existing)
    if strategy is DuplicateStrategy.MERGE:
        changes = _merge_fields(existing, data)
    else:
        changes = data
    store.update(table, existing["id"], {**changes, **tags})
    return _RowOutcome("updated", row_id=existing["id"], previous=previous)


def import_rows(
    store: MetricsStore,
    request: ImportRequest,
    *,
    timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS,
    lock_table: bool = True,
) -> ImportResult:
    """Write validated rows to the data type's table.

    Args:
        store: Persistence backend
        request: Data type, rows and duplicate strategy
        timeout_seconds: Statement timeout inside the import transaction
        lock_table: Serialize concurrent imports into the same table

    Returns:
        ImportResult: Counters and row errors. ``status`` is ``failed`` only
        when the transaction itself failed.

    Raises:
        UnknownTableError: Target table not configured (nothing is written)
        StoreUnavailableError: The audit record could not be created
    """
    table = request.data_type.target_table
    if table not in TABLE_UNIQUE_KEYS:
        raise UnknownTableError(f"No unique key config for table: {table}")

    started = time.perf_counter()
    processable = [r for r in request.rows if r.status is not RowStatus.ERROR]
    errors = [
        RowError(r.row_index, list(r.messages), dict(r.original))
        for r in request.rows
        if r.status is RowStatus.ERROR
    ]

    with store.transaction():
        upload_id = store.create_upload(
            file_name=request.file_name,
            data_type=request.audit_data_type or request.data_type.id,
            status=UploadStatus.PROCESSING,
            rows_failed=len(errors),
            mapping_id=request.mapping_id,
            uploaded_by=request.uploaded_by,
        )
    logger.debug(f"upload {upload_id}: {len(processable)} rows to {table} ({len(errors)} pre-failed)")

    progress = _Progress()
    try:
        with store.transaction(timeout_seconds=timeout_seconds):
            if lock_table:
                store.lock_table(table)
            for row in processable:
                try:
                    with store.savepoint():
                        outcome = _apply_row(store, request, table, row, upload_id)
                except StoreUnavailableError:
                    raise
                except Exception as e:
                    errors.append(RowError(row.row_index, [f"Import error: {e}"], dict(row.original)))
                    continue
                progress.record(outcome)

            rollback = RollbackData(table, progress.inserted_ids, progress.overwritten)
            store.update_upload(
                upload_id,
                status=UploadStatus.COMPLETED,
                rows_processed=progress.inserted + progress.updated,
                rows_failed=len(errors),
                rows_skipped=progress.skipped,
                rollback_data=rollback,
                error_log=[e.to_dict() for e in errors] or None,
            )
    except Exception as e:
        logger.error(f"upload {upload_id}: transaction failed for {table}: {e}")
        try:
            with store.transaction():
                store.update_upload(upload_id, status=UploadStatus.FAILED, error_log=[{"message": str(e)}])
        except Exception:
            logger.exception(f"upload {upload_id}: could not mark upload as failed")
        return ImportResult(
            upload_id=upload_id,
            status=UploadStatus.FAILED,
            target_table=table,
            rows_failed=len(request.rows),
            errors=[RowError(0, [f"Transaction failed: {e}"])],
            elapsed_seconds=time.perf_counter() - started,
        )

    return ImportResult(
        upload_id=upload_id,
        status=UploadStatus.COMPLETED,
        target_table=table,
        rows_processed=progress.inserted + progress.updated,
        rows_failed=len(errors),
        rows_skipped=progress.skipped,
        inserted=progress.inserted,
        updated=progress.updated,
        errors=errors,
        elapsed_seconds=time.perf_counter() - started,
    )
