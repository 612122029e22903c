from __future__ import annotations

import itertools
import logging
import re
from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from datetime import date
from enum import Enum
from pathlib import Path
from typing import Any

import psycopg2
from psycopg2.extras import Json, RealDictCursor

from ..models.upload import RollbackData, SavedMapping, UploadRecord, UploadStatus
from .store import MetricsStore, StoreError, StoreUnavailableError

"""PostgreSQL implementation of :class:`MetricsStore` (psycopg2).

The connection runs in autocommit mode and transaction boundaries are issued
explicitly (``BEGIN`` / ``COMMIT`` / ``ROLLBACK``), with ``SAVEPOINT`` for the
per-row guards of the import engine. Table and column names cannot be bound
as parameters, so they are checked against :data:`IDENTIFIER` and quoted.
"""

__all__ = [
    "IDENTIFIER",
    "SCHEMA_SQL_PATH",
    "PostgresStore",
]

logger = logging.getLogger(__name__)

IDENTIFIER = re.compile(r"^[a-z_][a-z0-9_]*$")
SCHEMA_SQL_PATH = Path(__file__).with_name("schema.sql")

UPLOAD_COLUMNS = (
    "id",
    "file_name",
    "data_type",
    "status",
    "rows_processed",
    "rows_failed",
    "rows_skipped",
    "error_log",
    "rollback_data",
    "mapping_id",
    "uploaded_by",
    "created_at",
    "updated_at",
)
_UPLOAD_UPDATABLE = {"status", "rows_processed", "rows_failed", "rows_skipped", "error_log", "rollback_data"}


def _ident(name: str) -> str:
    if not IDENTIFIER.match(name):
        raise StoreError(f"invalid identifier: {name!r}")
    return f'"{name}"'


def _param(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    return value


def _upload_from_row(row: Mapping[str, Any]) -> UploadRecord:
    rollback_raw = row.get("rollback_data")
    return UploadRecord(
        id=row["id"],
        file_name=row["file_name"],
        data_type=row["data_type"],
        status=UploadStatus(row["status"]),
        rows_processed=row["rows_processed"],
        rows_failed=row["rows_failed"],
        rows_skipped=row["rows_skipped"],
        error_log=row.get("error_log"),
        rollback_data=RollbackData.from_dict(rollback_raw) if rollback_raw else None,
        mapping_id=row.get("mapping_id"),
        uploaded_by=row.get("uploaded_by"),
        created_at=row.get("created_at"),
        updated_at=row.get("updated_at"),
    )


class PostgresStore(MetricsStore):
    def __init__(self, conn: Any):
        self._conn = conn
        self._cur = conn.cursor(cursor_factory=RealDictCursor)
        self._in_transaction = False
        self._savepoints = itertools.count(1)

    # low level

    def _execute(self, sql: str, params: Sequence[Any] | None = None) -> None:
        try:
            self._cur.execute(sql, params)
        except psycopg2.InterfaceError as e:
            raise StoreUnavailableError(str(e)) from e
        except psycopg2.OperationalError as e:
            if self._conn.closed:
                raise StoreUnavailableError(str(e)) from e
            raise StoreError(str(e)) from e
        except psycopg2.Error as e:
            raise StoreError(str(e).strip()) from e

    def _fetchone(self) -> dict[str, Any] | None:
        row = self._cur.fetchone()
        return dict(row) if row is not None else None

    def _fetchall(self) -> list[dict[str, Any]]:
        return [dict(r) for r in self._cur.fetchall()]

    def close(self) -> None:
        self._cur.close()

    # transactions

    @contextmanager
    def transaction(self, timeout_seconds: int | None = None) -> Iterator[None]:
        if self._in_transaction:
            raise StoreError("transaction already open")
        self._execute("BEGIN")
        self._in_transaction = True
        try:
            if timeout_seconds:
                self._execute("SET LOCAL statement_timeout = %s", (int(timeout_seconds * 1000),))
            yield
        except BaseException:
            try:
                self._execute("ROLLBACK")
            except StoreError:
                logger.warning("ROLLBACK failed", exc_info=True)
            raise
        else:
            self._execute("COMMIT")
        finally:
            self._in_transaction = False

    @contextmanager
    def savepoint(self) -> Iterator[None]:
        if not self._in_transaction:
            raise StoreError("savepoint requires an open transaction")
        name = f"sp_{next(self._savepoints)}"
        self._execute(f"SAVEPOINT {name}")
        try:
            yield
        except StoreUnavailableError:
            raise
        except Exception:
            self._execute(f"ROLLBACK TO SAVEPOINT {name}")
            self._execute(f"RELEASE SAVEPOINT {name}")
            raise
        else:
            self._execute(f"RELEASE SAVEPOINT {name}")

    def lock_table(self, table: str) -> None:
        self._execute(f"LOCK TABLE {_ident(table)} IN SHARE ROW EXCLUSIVE MODE")

    # weekly tables

    def find_by_key(self, table: str, key: Mapping[str, Any]) -> dict[str, Any] | None:
        where = " AND ".join(f"{_ident(col)} = %s" for col in key)
        self._execute(
            f"SELECT * FROM {_ident(table)} WHERE {where} LIMIT 1",
            [_param(v) for v in key.values()],
        )
        return self._fetchone()

    def insert(self, table: str, data: Mapping[str, Any]) -> int:
        columns = [c for c in data if c not in ("created_at", "updated_at")]
        cols_sql = ", ".join(_ident(c) for c in columns)
        placeholders = ", ".join(["%s"] * len(columns))
        self._execute(
            f"INSERT INTO {_ident(table)} ({cols_sql}, \"updated_at\") "
            f"VALUES ({placeholders}, now()) RETURNING \"id\"",
            [_param(data[c]) for c in columns],
        )
        row = self._fetchone()
        if row is None:  # pragma: no cover - RETURNING always yields a row
            raise StoreError(f"insert into {table} returned no id")
        return row["id"]

    def update(self, table: str, row_id: int, data: Mapping[str, Any]) -> None:
        columns = [c for c in data if c not in ("id", "created_at", "updated_at")]
        if not columns:
            return
        assignments = ", ".join(f"{_ident(c)} = %s" for c in columns)
        self._execute(
            f"UPDATE {_ident(table)} SET {assignments}, \"updated_at\" = now() WHERE \"id\" = %s",
            [*(_param(data[c]) for c in columns), row_id],
        )

    def delete_many(self, table: str, ids: Sequence[int]) -> int:
        if not ids:
            return 0
        self._execute(f'DELETE FROM {_ident(table)} WHERE "id" = ANY(%s)', (list(ids),))
        return self._cur.rowcount

    def existing_weeks(self, table: str) -> list[date]:
        self._execute(f'SELECT DISTINCT "week_ending" FROM {_ident(table)} ORDER BY "week_ending"')
        return [r["week_ending"] for r in self._fetchall()]

    # audit records

    def create_upload(
        self,
        *,
        file_name: str,
        data_type: str,
        status: UploadStatus,
        rows_failed: int = 0,
        mapping_id: int | None = None,
        uploaded_by: str | None = None,
    ) -> int:
        self._execute(
            'INSERT INTO "csv_uploads" ("file_name", "data_type", "status", "rows_failed", '
            '"mapping_id", "uploaded_by", "updated_at") VALUES (%s, %s, %s, %s, %s, %s, now()) RETURNING "id"',
            (file_name, data_type, status.value, rows_failed, mapping_id, uploaded_by),
        )
        row = self._fetchone()
        if row is None:  # pragma: no cover
            raise StoreError("insert into csv_uploads returned no id")
        return row["id"]

    def update_upload(self, upload_id: int, **fields: Any) -> None:
        unknown = set(fields) - _UPLOAD_UPDATABLE
        if unknown:
            raise StoreError(f"cannot update upload columns: {sorted(unknown)}")
        values: list[Any] = []
        for name, value in fields.items():
            if name == "rollback_data" and isinstance(value, RollbackData):
                value = Json(value.to_dict())
            elif name in ("error_log", "rollback_data") and value is not None:
                value = Json(value)
            values.append(_param(value))
        assignments = ", ".join(f"{_ident(name)} = %s" for name in fields)
        self._execute(
            f'UPDATE "csv_uploads" SET {assignments}, "updated_at" = now() WHERE "id" = %s',
            [*values, upload_id],
        )

    def get_upload(self, upload_id: int, *, lock: bool = False) -> UploadRecord | None:
        cols = ", ".join(_ident(c) for c in UPLOAD_COLUMNS)
        sql = f'SELECT {cols} FROM "csv_uploads" WHERE "id" = %s'
        if lock:
            sql += " FOR UPDATE"
        self._execute(sql, (upload_id,))
        row = self._fetchone()
        return _upload_from_row(row) if row else None

    def list_uploads(
        self,
        *,
        data_type: str | None = None,
        status: UploadStatus | None = None,
        date_from: date | None = None,
        date_to: date | None = None,
    ) -> list[UploadRecord]:
        clauses: list[str] = []
        params: list[Any] = []
        if data_type is not None:
            clauses.append('"data_type" = %s')
            params.append(data_type)
        if status is not None:
            clauses.append('"status" = %s')
            params.append(status.value)
        if date_from is not None:
            clauses.append('"created_at"::date >= %s')
            params.append(date_from)
        if date_to is not None:
            clauses.append('"created_at"::date <= %s')
            params.append(date_to)
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        cols = ", ".join(_ident(c) for c in UPLOAD_COLUMNS)
        self._execute(f'SELECT {cols} FROM "csv_uploads"{where} ORDER BY "created_at" DESC, "id" DESC', params)
        return [_upload_from_row(r) for r in self._fetchall()]

    # saved column mappings

    def save_mapping(
        self, name: str, data_type: str, mapping: Mapping[str, str], created_by: str | None = None
    ) -> int:
        self._execute(
            'INSERT INTO "csv_column_mappings" ("name", "data_type", "mapping", "created_by", "updated_at") '
            'VALUES (%s, %s, %s, %s, now()) RETURNING "id"',
            (name, data_type, Json(dict(mapping)), created_by),
        )
        row = self._fetchone()
        if row is None:  # pragma: no cover
            raise StoreError("insert into csv_column_mappings returned no id")
        return row["id"]

    def get_mapping(self, mapping_id: int) -> SavedMapping | None:
        self._execute(
            'SELECT "id", "name", "data_type", "mapping", "created_by" FROM "csv_column_mappings" WHERE "id" = %s',
            (mapping_id,),
        )
        row = self._fetchone()
        return SavedMapping(**row) if row else None

    def list_mappings(self, data_type: str | None = None) -> list[SavedMapping]:
        sql = 'SELECT "id", "name", "data_type", "mapping", "created_by" FROM "csv_column_mappings"'
        params: list[Any] = []
        if data_type is not None:
            sql += ' WHERE "data_type" = %s'
            params.append(data_type)
        self._execute(sql + ' ORDER BY "updated_at" DESC, "id" DESC', params)
        return [SavedMapping(**r) for r in self._fetchall()]

    # schema

    def create_schema(self) -> None:
        """Create every table (idempotent: ``CREATE TABLE IF NOT EXISTS``)."""
        sql = SCHEMA_SQL_PATH.read_text(encoding="utf-8")
        with self.transaction():
            self._execute(sql)
        logger.info(f"schema ensured from {SCHEMA_SQL_PATH.name}")
