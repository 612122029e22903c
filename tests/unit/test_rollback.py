from __future__ import annotations

import copy
from contextlib import contextmanager
from datetime import date

import pytest

from metrics_ingest.models.csv_result import RowStatus, RowValidation
from metrics_ingest.models.upload import DuplicateStrategy, ImportRequest, RollbackData, UploadStatus
from metrics_ingest.services.import_engine import import_rows
from metrics_ingest.services.registry import get_data_type
from metrics_ingest.services.rollback import RollbackError, rollback_upload
from tests.fakes import InMemoryStore

WEEK1 = date(2024, 1, 6)
WEEK2 = date(2024, 1, 13)


def _import(store: InMemoryStore, rows: list[dict], strategy=DuplicateStrategy.OVERWRITE) -> int:
    request = ImportRequest(
        data_type=get_data_type("financial_pl"),
        rows=[RowValidation(i + 1, RowStatus.PASS, [], data, {}) for i, data in enumerate(rows)],
        duplicate_strategy=strategy,
        file_name="pl.csv",
    )
    return import_rows(store, request).upload_id


def _pl(week: date, income: float) -> dict:
    return {
        "week_ending": week,
        "total_trading_income": income,
        "total_cost_of_sales": 10.0,
        "gross_profit": income - 10.0,
        "other_income": 0.0,
        "operating_expenses": 5.0,
        "wages_and_salaries": 5.0,
        "net_profit": income - 20.0,
    }


def test_rollback_restores_previous_state(memory_store: InMemoryStore):
    memory_store.seed("financial_weekly", {**_pl(WEEK1, 100.0), "data_source": "manual_entry", "upload_id": None})
    before = copy.deepcopy(memory_store.tables["financial_weekly"])

    upload_id = _import(memory_store, [_pl(WEEK1, 500.0), _pl(WEEK2, 700.0)])
    assert len(memory_store.rows("financial_weekly")) == 2

    result = rollback_upload(memory_store, upload_id)
    assert (result.upload_id, result.rows_deleted, result.rows_restored) == (upload_id, 1, 1)

    after = memory_store.tables["financial_weekly"]
    assert set(after) == set(before)
    for row_id, row in before.items():
        assert {k: v for k, v in after[row_id].items() if k != "updated_at"} == row
    assert memory_store.get_upload(upload_id).status is UploadStatus.ROLLED_BACK


def test_rollback_after_merge_restores_nulls(memory_store: InMemoryStore):
    existing = {**_pl(WEEK1, 100.0), "net_profit": None}
    row_id = memory_store.seed("financial_weekly", existing)
    upload_id = _import(memory_store, [_pl(WEEK1, 500.0)], DuplicateStrategy.MERGE)
    assert memory_store.tables["financial_weekly"][row_id]["net_profit"] == 480.0

    rollback_upload(memory_store, upload_id)
    assert memory_store.tables["financial_weekly"][row_id]["net_profit"] is None
    assert memory_store.tables["financial_weekly"][row_id]["total_trading_income"] == 100.0


def test_rollback_twice_is_rejected(memory_store: InMemoryStore):
    upload_id = _import(memory_store, [_pl(WEEK1, 500.0)])
    rollback_upload(memory_store, upload_id)
    with pytest.raises(RollbackError, match="Upload has already been rolled back"):
        rollback_upload(memory_store, upload_id)


def test_rollback_unknown_upload(memory_store: InMemoryStore):
    with pytest.raises(RollbackError, match="Upload not found"):
        rollback_upload(memory_store, 42)


@pytest.mark.parametrize("status", [UploadStatus.PENDING, UploadStatus.PROCESSING, UploadStatus.FAILED])
def test_rollback_requires_completed_upload(memory_store: InMemoryStore, status: UploadStatus):
    upload_id = memory_store.create_upload(file_name="f.csv", data_type="financial_pl", status=status)
    with pytest.raises(RollbackError) as e:
        rollback_upload(memory_store, upload_id)
    assert str(e.value) == (
        f'Cannot rollback upload with status "{status.value}". Only completed uploads can be rolled back.'
    )


def test_rollback_without_rollback_data(memory_store: InMemoryStore):
    upload_id = memory_store.create_upload(file_name="f.csv", data_type="financial_pl", status=UploadStatus.COMPLETED)
    with pytest.raises(RollbackError, match="No rollback data available for this upload"):
        rollback_upload(memory_store, upload_id)


def test_rollback_with_nothing_to_undo(memory_store: InMemoryStore):
    upload_id = memory_store.create_upload(file_name="f.csv", data_type="financial_pl", status=UploadStatus.COMPLETED)
    memory_store.update_upload(upload_id, rollback_data=RollbackData("financial_weekly"))
    result = rollback_upload(memory_store, upload_id)
    assert (result.rows_deleted, result.rows_restored) == (0, 0)
    assert memory_store.get_upload(upload_id).status is UploadStatus.ROLLED_BACK


def test_failed_rollback_changes_nothing(memory_store: InMemoryStore):
    memory_store.seed("financial_weekly", _pl(WEEK1, 100.0))
    upload_id = _import(memory_store, [_pl(WEEK1, 500.0), _pl(WEEK2, 700.0)])
    state = copy.deepcopy(memory_store.tables)
    memory_store.fail_update = lambda table, data: table == "financial_weekly"

    with pytest.raises(Exception, match="update rejected"):
        rollback_upload(memory_store, upload_id)
    assert memory_store.tables == state
    assert memory_store.get_upload(upload_id).status is UploadStatus.COMPLETED


def test_rollback_checks_status_under_row_lock(memory_store: InMemoryStore):
    upload_id = _import(memory_store, [_pl(WEEK1, 500.0)])
    rollback_upload(memory_store, upload_id)
    assert memory_store.locked_uploads == [(upload_id, True)]


class RacingStore(InMemoryStore):
    """Runs ``competitor`` when the next transaction opens, before its first statement."""

    competitor = None

    @contextmanager
    def transaction(self, timeout_seconds=None):
        competitor, self.competitor = self.competitor, None
        if competitor is not None:
            competitor()
        with super().transaction(timeout_seconds):
            yield


def test_concurrent_rollback_does_not_revert_later_import():
    store = RacingStore()
    row_id = store.seed("financial_weekly", _pl(WEEK1, 100.0))
    upload_id = _import(store, [_pl(WEEK1, 500.0)])

    def rollback_then_reimport():
        rollback_upload(store, upload_id)
        _import(store, [_pl(WEEK1, 900.0)])

    store.competitor = rollback_then_reimport
    with pytest.raises(RollbackError, match="Upload has already been rolled back"):
        rollback_upload(store, upload_id)
    assert store.tables["financial_weekly"][row_id]["total_trading_income"] == 900.0
