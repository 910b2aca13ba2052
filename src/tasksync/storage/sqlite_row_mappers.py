"""Row-to-model conversion functions for SQLite storage."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import aiosqlite

from tasksync.core.queue_item import QueueItem, SyncOperation
from tasksync.core.task import SyncStatus, Task
from tasksync.utils.timeutils import parse_timestamp, utcnow


def row_to_task(row: aiosqlite.Row) -> Task:
    """Convert database row to Task."""
    created_at = parse_timestamp(row["created_at"]) or utcnow()
    return Task(
        id=row["id"],
        title=row["title"],
        description=row["description"] or "",
        completed=bool(row["completed"]),
        is_deleted=bool(row["is_deleted"]),
        sync_status=SyncStatus(row["sync_status"]),
        server_id=row["server_id"],
        created_at=created_at,
        updated_at=parse_timestamp(row["updated_at"]) or created_at,
        last_synced_at=parse_timestamp(row["last_synced_at"]),
    )


def row_to_queue_item(row: aiosqlite.Row) -> QueueItem:
    """Convert database row to QueueItem."""
    return QueueItem(
        id=row["id"],
        task_id=row["task_id"],
        operation=SyncOperation(row["operation"]),
        data=json.loads(row["data"]) if row["data"] else {},
        created_at=parse_timestamp(row["created_at"]) or utcnow(),
        retry_count=int(row["retry_count"] or 0),
        error_message=row["error_message"],
    )
