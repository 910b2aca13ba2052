"""Local task mutations that feed the sync queue.

Every create, update and delete writes the task and queues a snapshot of
it in one transaction, so a task is never pending without a queue item to
carry it to the remote.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from tasksync.core.queue_item import SyncOperation
from tasksync.core.task import SyncStatus, Task

if TYPE_CHECKING:
    from tasksync.storage.base import TaskStorage

logger = logging.getLogger(__name__)


class TaskService:
    """Task CRUD for the offline client."""

    def __init__(self, storage: TaskStorage) -> None:
        self._storage = storage

    async def create_task(
        self,
        title: str = "",
        description: str = "",
        completed: bool = False,
    ) -> Task:
        task = Task.create(title=title, description=description, completed=completed)
        await self._write(task, SyncOperation.CREATE)
        return task

    async def update_task(self, task_id: str, **changes: Any) -> Task | None:
        """Apply edits to a live task. Returns None if missing or deleted.

        Raises:
            ValueError: If a non-editable field is passed
        """
        task = await self.get_task(task_id)
        if task is None:
            return None
        updated = task.with_changes(**changes)
        await self._write(updated, SyncOperation.UPDATE)
        return updated

    async def delete_task(self, task_id: str) -> bool:
        """Soft-delete a task. Returns False if missing or already deleted."""
        task = await self.get_task(task_id)
        if task is None:
            return False
        await self._write(task.soft_deleted(), SyncOperation.DELETE)
        return True

    async def get_task(self, task_id: str) -> Task | None:
        task = await self._storage.get_task(task_id)
        if task is None or task.is_deleted:
            return None
        return task

    async def get_all_tasks(self) -> list[Task]:
        return await self._storage.list_tasks(include_deleted=False)

    async def get_tasks_needing_sync(self) -> list[Task]:
        """Tasks still pending or permanently failed, deleted ones included."""
        return await self._storage.find_tasks_by_status(SyncStatus.PENDING, SyncStatus.ERROR)

    async def _write(self, task: Task, operation: SyncOperation) -> None:
        async with self._storage.transaction():
            await self._storage.save_task(task)
            await self._storage.enqueue(task.id, operation, task.to_dict())
        logger.debug("Task %s saved locally (%s)", task.id, operation)
