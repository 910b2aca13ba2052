"""Abstract base class for task storage backends."""

from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from datetime import datetime
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from tasksync.core.queue_item import QueueItem, SyncOperation
    from tasksync.core.task import SyncStatus, Task


class TaskStorage(ABC):
    """
    Abstract interface for the record store and the mutation queue.

    Both collections live in one backend so that a task write and the
    matching queue write can be committed together inside ``transaction()``.
    """

    async def initialize(self) -> None:  # noqa: B027
        """Prepare the backend. No-op by default."""

    async def close(self) -> None:  # noqa: B027
        """Release backend resources. No-op by default."""

    @abstractmethod
    def transaction(self) -> AbstractAsyncContextManager[None]:
        """Group writes so they commit together or not at all.

        Nested use by the same asyncio task joins the outer transaction.
        Other tasks wait until it has committed or rolled back.
        """
        ...

    # ========== Task Operations ==========

    @abstractmethod
    async def save_task(self, task: Task) -> None:
        """Insert or replace a task."""
        ...

    @abstractmethod
    async def get_task(self, task_id: str) -> Task | None:
        """Get a task by id, including soft-deleted ones."""
        ...

    @abstractmethod
    async def list_tasks(self, include_deleted: bool = False) -> list[Task]:
        """List tasks ordered by creation time."""
        ...

    @abstractmethod
    async def find_tasks_by_status(self, *statuses: SyncStatus) -> list[Task]:
        """List tasks (deleted or not) whose sync_status is one of ``statuses``."""
        ...

    @abstractmethod
    async def update_sync_state(
        self,
        task_id: str,
        status: SyncStatus,
        *,
        synced_at: datetime | None = None,
        server_id: str | None = None,
        fields: dict[str, Any] | None = None,
    ) -> bool:
        """Update a task's sync metadata and, optionally, its business fields.

        ``server_id`` and ``synced_at`` are only written when given.
        ``fields`` may contain title, description, completed, is_deleted
        and updated_at. Returns False if the task does not exist.
        """
        ...

    @abstractmethod
    async def purge_synced_deletions(self) -> int:
        """Hard-delete soft-deleted, synced tasks with no queue items. Returns count."""
        ...

    @abstractmethod
    async def get_last_synced_at(self) -> datetime | None:
        """Latest last_synced_at among synced tasks."""
        ...

    # ========== Queue Operations ==========

    @abstractmethod
    async def enqueue(
        self,
        task_id: str,
        operation: SyncOperation | str,
        data: dict[str, Any],
    ) -> QueueItem:
        """Durably append a queue item with retry_count 0.

        Raises:
            ValueError: If the task does not exist or the operation is invalid
        """
        ...

    @abstractmethod
    async def drain(self) -> list[QueueItem]:
        """Snapshot of all queue items in creation order."""
        ...

    @abstractmethod
    async def get_queue_items(self, task_id: str) -> list[QueueItem]:
        """Queue items for one task in creation order."""
        ...

    @abstractmethod
    async def remove(self, task_id: str) -> int:
        """Delete all queue items for a task. Returns count removed."""
        ...

    @abstractmethod
    async def remove_item(self, item_id: str) -> bool:
        """Delete a single queue item. Returns False if it was not queued."""
        ...

    @abstractmethod
    async def record_failure(self, item_id: str, error: str) -> QueueItem | None:
        """Increment retry_count and store the error. Returns the updated item."""
        ...

    @abstractmethod
    async def reset_retries(self, min_retry_count: int, task_id: str | None = None) -> list[str]:
        """Reset items with retry_count >= min_retry_count back to fresh.

        Returns the ids of the affected tasks.
        """
        ...

    @abstractmethod
    async def count_queue_items(self, min_retry_count: int = 0) -> int:
        """Count queue items with retry_count >= min_retry_count."""
        ...
