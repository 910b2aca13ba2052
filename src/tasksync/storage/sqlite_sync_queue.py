"""SQLite sync queue operations mixin."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from tasksync.core.queue_item import QueueItem, SyncOperation
from tasksync.storage.sqlite_row_mappers import row_to_queue_item

if TYPE_CHECKING:
    from contextlib import AbstractAsyncContextManager

    import aiosqlite

logger = logging.getLogger(__name__)


class SQLiteSyncQueueMixin:
    """Mixin providing the durable FIFO mutation queue."""

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

    async def enqueue(
        self,
        task_id: str,
        operation: SyncOperation | str,
        data: dict[str, Any],
    ) -> QueueItem:
        item = QueueItem.create(task_id, operation, data)
        conn = self._ensure_conn()

        async with self.transaction():
            async with conn.execute("SELECT 1 FROM tasks WHERE id = ?", (task_id,)) as cursor:
                if await cursor.fetchone() is None:
                    raise ValueError(f"Cannot enqueue for unknown task {task_id}")

            await conn.execute(
                """INSERT INTO sync_queue
                   (id, task_id, operation, data, created_at, retry_count, error_message)
                   VALUES (?, ?, ?, ?, ?, 0, NULL)""",
                (
                    item.id,
                    item.task_id,
                    item.operation.value,
                    json.dumps(item.data),
                    item.created_at.isoformat(),
                ),
            )
        logger.debug("Queued %s for task %s (%s)", item.operation, task_id, item.id)
        return item

    async def drain(self) -> list[QueueItem]:
        conn = self._ensure_conn()
        async with conn.execute("SELECT * FROM sync_queue ORDER BY rowid ASC") as cursor:
            rows = await cursor.fetchall()
        return [row_to_queue_item(r) for r in rows]

    async def get_queue_items(self, task_id: str) -> list[QueueItem]:
        conn = self._ensure_conn()
        async with conn.execute(
            "SELECT * FROM sync_queue WHERE task_id = ? ORDER BY rowid ASC",
            (task_id,),
        ) as cursor:
            rows = await cursor.fetchall()
        return [row_to_queue_item(r) for r in rows]

    async def remove(self, task_id: str) -> int:
        conn = self._ensure_conn()
        async with self.transaction():
            cursor = await conn.execute("DELETE FROM sync_queue WHERE task_id = ?", (task_id,))
        return cursor.rowcount

    async def remove_item(self, item_id: str) -> bool:
        conn = self._ensure_conn()
        async with self.transaction():
            cursor = await conn.execute("DELETE FROM sync_queue WHERE id = ?", (item_id,))
        return cursor.rowcount > 0

    async def record_failure(self, item_id: str, error: str) -> QueueItem | None:
        conn = self._ensure_conn()
        async with self.transaction():
            cursor = await conn.execute(
                """UPDATE sync_queue
                   SET retry_count = retry_count + 1, error_message = ?
                   WHERE id = ?""",
                (error, item_id),
            )
            if cursor.rowcount == 0:
                return None

            async with conn.execute("SELECT * FROM sync_queue WHERE id = ?", (item_id,)) as cur:
                row = await cur.fetchone()
        return row_to_queue_item(row) if row is not None else None

    async def reset_retries(self, min_retry_count: int, task_id: str | None = None) -> list[str]:
        conn = self._ensure_conn()
        where = "retry_count >= ?"
        params: list[Any] = [min_retry_count]
        if task_id is not None:
            where += " AND task_id = ?"
            params.append(task_id)

        async with self.transaction():
            async with conn.execute(
                f"SELECT DISTINCT task_id FROM sync_queue WHERE {where}", tuple(params)
            ) as cursor:
                task_ids = [row["task_id"] for row in await cursor.fetchall()]

            if task_ids:
                await conn.execute(
                    f"UPDATE sync_queue SET retry_count = 0, error_message = NULL WHERE {where}",
                    tuple(params),
                )
        return task_ids

    async def count_queue_items(self, min_retry_count: int = 0) -> int:
        conn = self._ensure_conn()
        async with conn.execute(
            "SELECT COUNT(*) AS n FROM sync_queue WHERE retry_count >= ?",
            (min_retry_count,),
        ) as cursor:
            row = await cursor.fetchone()
        return int(row["n"]) if row else 0
