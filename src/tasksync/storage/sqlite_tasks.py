"""SQLite task operations mixin."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any

from tasksync.core.task import SyncStatus, Task
from tasksync.storage.sqlite_row_mappers import row_to_task
from tasksync.utils.timeutils import isoformat, parse_timestamp

if TYPE_CHECKING:
    from contextlib import AbstractAsyncContextManager

    import aiosqlite

logger = logging.getLogger(__name__)

# Columns that a sync result may overwrite with the authoritative version
_SYNCABLE_COLUMNS: tuple[str, ...] = (
    "title",
    "description",
    "completed",
    "is_deleted",
    "updated_at",
)


class SQLiteTaskMixin:
    """Mixin providing task CRUD and sync metadata updates."""

    # ------------------------------------------------------------------
    # Protocol stubs: satisfied by SQLiteStorage at runtime.
    # ------------------------------------------------------------------

    def _ensure_conn(self) -> aiosqlite.Connection:
        raise NotImplementedError

    def transaction(self) -> AbstractAsyncContextManager[None]:
        raise NotImplementedError

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def save_task(self, task: Task) -> None:
        conn = self._ensure_conn()
        async with self.transaction():
            await conn.execute(
                """INSERT INTO tasks
                   (id, title, description, completed, is_deleted, sync_status,
                    server_id, created_at, updated_at, last_synced_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                   ON CONFLICT(id) DO UPDATE SET
                     title = excluded.title,
                     description = excluded.description,
                     completed = excluded.completed,
                     is_deleted = excluded.is_deleted,
                     sync_status = excluded.sync_status,
                     server_id = excluded.server_id,
                     updated_at = excluded.updated_at,
                     last_synced_at = excluded.last_synced_at""",
                (
                    task.id,
                    task.title,
                    task.description,
                    1 if task.completed else 0,
                    1 if task.is_deleted else 0,
                    task.sync_status.value,
                    task.server_id,
                    task.created_at.isoformat(),
                    task.updated_at.isoformat(),
                    isoformat(task.last_synced_at),
                ),
            )

    async def get_task(self, task_id: str) -> Task | None:
        conn = self._ensure_conn()
        async with conn.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)) as cursor:
            row = await cursor.fetchone()
        return row_to_task(row) if row is not None else None

    async def list_tasks(self, include_deleted: bool = False) -> list[Task]:
        conn = self._ensure_conn()
        query = "SELECT * FROM tasks"
        if not include_deleted:
            query += " WHERE is_deleted = 0"
        query += " ORDER BY created_at ASC, rowid ASC"

        async with conn.execute(query) as cursor:
            rows = await cursor.fetchall()
        return [row_to_task(r) for r in rows]

    async def find_tasks_by_status(self, *statuses: SyncStatus) -> list[Task]:
        if not statuses:
            return []
        conn = self._ensure_conn()
        placeholders = ",".join("?" for _ in statuses)
        async with conn.execute(
            f"SELECT * FROM tasks WHERE sync_status IN ({placeholders}) "
            "ORDER BY created_at ASC, rowid ASC",
            tuple(s.value for s in statuses),
        ) as cursor:
            rows = await cursor.fetchall()
        return [row_to_task(r) for r in rows]

    async def update_sync_state(
        self,
        task_id: str,
        status: SyncStatus,
        *,
        synced_at: datetime | None = None,
        server_id: str | None = None,
        fields: dict[str, Any] | None = None,
    ) -> bool:
        conn = self._ensure_conn()

        assignments = ["sync_status = ?"]
        params: list[Any] = [status.value]
        if synced_at is not None:
            assignments.append("last_synced_at = ?")
            params.append(synced_at.isoformat())
        if server_id:
            assignments.append("server_id = ?")
            params.append(server_id)

        for column, value in (fields or {}).items():
            if column not in _SYNCABLE_COLUMNS:
                logger.debug("Ignoring non-syncable field %s for task %s", column, task_id)
                continue
            converted = _to_column_value(column, value)
            if converted is None:
                continue
            assignments.append(f"{column} = ?")
            params.append(converted)

        params.append(task_id)
        async with self.transaction():
            cursor = await conn.execute(
                f"UPDATE tasks SET {', '.join(assignments)} WHERE id = ?",
                tuple(params),
            )
        return cursor.rowcount > 0

    async def purge_synced_deletions(self) -> int:
        conn = self._ensure_conn()
        async with self.transaction():
            cursor = await conn.execute(
                """DELETE FROM tasks
                   WHERE is_deleted = 1 AND sync_status = 'synced'
                     AND NOT EXISTS (SELECT 1 FROM sync_queue q WHERE q.task_id = tasks.id)"""
            )
        return cursor.rowcount

    async def get_last_synced_at(self) -> datetime | None:
        conn = self._ensure_conn()
        async with conn.execute(
            "SELECT MAX(last_synced_at) AS last_sync FROM tasks WHERE sync_status = 'synced'"
        ) as cursor:
            row = await cursor.fetchone()
        if row is None:
            return None
        return parse_timestamp(row["last_sync"])


def _to_column_value(column: str, value: Any) -> Any:
    """Convert a snapshot value to its column representation."""
    if column in ("completed", "is_deleted"):
        return 1 if value else 0
    if column == "updated_at":
        parsed = parse_timestamp(value)
        return parsed.isoformat() if parsed else None
    return value
