from __future__ import annotations

import logging

from ..db.store import MetricsStore
from ..models.upload import RollbackResult, UploadStatus

"""Undo a completed import using the rollback data stored on its audit record.

Inserted rows are deleted and overwritten rows get their stored previous
values back, all in one transaction together with the status change. Rows
written by later imports to the same keys are restored over as well: the
stored copy is the full row at import time.
"""

__all__ = ["RollbackError", "rollback_upload"]

logger = logging.getLogger(__name__)


class RollbackError(Exception):
    """The upload cannot be rolled back; nothing was changed."""


def rollback_upload(store: MetricsStore, upload_id: int) -> RollbackResult:
    """Roll back one completed upload.

    The audit record is read with a row lock inside the rollback transaction,
    so a concurrent rollback of the same upload waits and then sees
    ``rolled_back``.
    """
    with store.transaction():
        upload = store.get_upload(upload_id, lock=True)
        if upload is None:
            raise RollbackError("Upload not found")
        if upload.status is UploadStatus.ROLLED_BACK:
            raise RollbackError("Upload has already been rolled back")
        if upload.status is not UploadStatus.COMPLETED:
            raise RollbackError(
                f'Cannot rollback upload with status "{upload.status.value}". '
                "Only completed uploads can be rolled back."
            )
        rollback = upload.rollback_data
        if rollback is None or not rollback.target_table:
            raise RollbackError("No rollback data available for this upload")

        table = rollback.target_table
        rows_deleted = store.delete_many(table, rollback.inserted_ids)
        for record in rollback.overwritten:
            restore = {k: v for k, v in record.previous_data.items() if k != "id"}
            store.update(table, record.id, restore)
        store.update_upload(upload_id, status=UploadStatus.ROLLED_BACK)

    logger.info(
        f"upload {upload_id} rolled back: table={table} deleted={rows_deleted} "
        f"restored={len(rollback.overwritten)}"
    )
    return RollbackResult(upload_id=upload_id, rows_deleted=rows_deleted, rows_restored=len(rollback.overwritten))
