"""In-memory storage backend for tests and ephemeral sessions."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import replace
from datetime import datetime
from typing import Any

from tasksync.core.queue_item import QueueItem, SyncOperation
from tasksync.core.task import SyncStatus, Task
from tasksync.storage.base import TaskStorage
from tasksync.utils.timeutils import parse_timestamp

_SYNCABLE_FIELDS = frozenset({"title", "description", "completed", "is_deleted", "updated_at"})


class InMemoryStorage(TaskStorage):
    """
    Dict-backed storage with the same contract as SQLiteStorage.

    Data does not survive the process. Transactions snapshot both
    collections and restore them if the block raises.
    """

    def __init__(self) -> None:
        self._tasks: dict[str, Task] = {}
        # Insertion order of the dict is the queue's FIFO order
        self._queue: dict[str, QueueItem] = {}
        self._write_lock = asyncio.Lock()
        self._tx_owner: asyncio.Task[object] | None = None

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        current = asyncio.current_task()
        if self._tx_owner is not None and self._tx_owner is current:
            yield
            return

        async with self._write_lock:
            tasks_backup = dict(self._tasks)
            queue_backup = dict(self._queue)
            self._tx_owner = current
            try:
                yield
            except BaseException:
                self._tasks = tasks_backup
                self._queue = queue_backup
                raise
            finally:
                self._tx_owner = None

    # ========== Task Operations ==========

    async def save_task(self, task: Task) -> None:
        async with self.transaction():
            self._tasks[task.id] = task

    async def get_task(self, task_id: str) -> Task | None:
        return self._tasks.get(task_id)

    async def list_tasks(self, include_deleted: bool = False) -> list[Task]:
        tasks = [t for t in self._tasks.values() if include_deleted or not t.is_deleted]
        return sorted(tasks, key=lambda t: t.created_at)

    async def find_tasks_by_status(self, *statuses: SyncStatus) -> list[Task]:
        wanted = set(statuses)
        return sorted(
            (t for t in self._tasks.values() if t.sync_status in wanted),
            key=lambda t: t.created_at,
        )

    async def update_sync_state(
        self,
        task_id: str,
        status: SyncStatus,
        *,
        synced_at: datetime | None = None,
        server_id: str | None = None,
        fields: dict[str, Any] | None = None,
    ) -> bool:
        async with self.transaction():
            task = self._tasks.get(task_id)
            if task is None:
                return False

            changes: dict[str, Any] = {"sync_status": status}
            if synced_at is not None:
                changes["last_synced_at"] = synced_at
            if server_id:
                changes["server_id"] = server_id
            for name, value in (fields or {}).items():
                if name not in _SYNCABLE_FIELDS or value is None:
                    continue
                if name == "updated_at":
                    value = parse_timestamp(value)
                elif name in ("completed", "is_deleted"):
                    value = bool(value)
                changes[name] = value

            self._tasks[task_id] = replace(task, **changes)
            return True

    async def purge_synced_deletions(self) -> int:
        async with self.transaction():
            queued = {item.task_id for item in self._queue.values()}
            doomed = [
                t.id
                for t in self._tasks.values()
                if t.is_deleted and t.sync_status == SyncStatus.SYNCED and t.id not in queued
            ]
            for task_id in doomed:
                del self._tasks[task_id]
            return len(doomed)

    async def get_last_synced_at(self) -> datetime | None:
        stamps = [
            t.last_synced_at
            for t in self._tasks.values()
            if t.sync_status == SyncStatus.SYNCED and t.last_synced_at is not None
        ]
        return max(stamps) if stamps else None

    # ========== Queue Operations ==========

    async def enqueue(
        self,
        task_id: str,
        operation: SyncOperation | str,
        data: dict[str, Any],
    ) -> QueueItem:
        async with self.transaction():
            item = QueueItem.create(task_id, operation, data)
            if task_id not in self._tasks:
                raise ValueError(f"Cannot enqueue for unknown task {task_id}")
            self._queue[item.id] = item
            return item

    async def drain(self) -> list[QueueItem]:
        return list(self._queue.values())

    async def get_queue_items(self, task_id: str) -> list[QueueItem]:
        return [item for item in self._queue.values() if item.task_id == task_id]

    async def remove(self, task_id: str) -> int:
        async with self.transaction():
            doomed = [item.id for item in self._queue.values() if item.task_id == task_id]
            for item_id in doomed:
                del self._queue[item_id]
            return len(doomed)

    async def remove_item(self, item_id: str) -> bool:
        async with self.transaction():
            return self._queue.pop(item_id, None) is not None

    async def record_failure(self, item_id: str, error: str) -> QueueItem | None:
        async with self.transaction():
            item = self._queue.get(item_id)
            if item is None:
                return None
            updated = replace(item, retry_count=item.retry_count + 1, error_message=error)
            self._queue[item_id] = updated
            return updated

    async def reset_retries(self, min_retry_count: int, task_id: str | None = None) -> list[str]:
        async with self.transaction():
            task_ids: list[str] = []
            for item_id, item in self._queue.items():
                if item.retry_count < min_retry_count:
                    continue
                if task_id is not None and item.task_id != task_id:
                    continue
                self._queue[item_id] = replace(item, retry_count=0, error_message=None)
                if item.task_id not in task_ids:
                    task_ids.append(item.task_id)
            return task_ids

    async def count_queue_items(self, min_retry_count: int = 0) -> int:
        return sum(1 for item in self._queue.values() if item.retry_count >= min_retry_count)
