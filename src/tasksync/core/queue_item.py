"""Pending mutations waiting to be reconciled with the remote authority."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any

from tasksync.utils.timeutils import utcnow


class SyncOperation(StrEnum):
    """Kind of local mutation recorded in the queue."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True)
class QueueItem:
    """A durable, ordered record of one local mutation."""

    id: str
    task_id: str
    operation: SyncOperation
    data: dict[str, Any]  # Task snapshot at enqueue time
    created_at: datetime = field(default_factory=utcnow)
    retry_count: int = 0
    error_message: str | None = None

    @classmethod
    def create(
        cls,
        task_id: str,
        operation: SyncOperation | str,
        data: dict[str, Any] | None = None,
    ) -> QueueItem:
        """Create a fresh queue item.

        Raises:
            ValueError: If operation is not create, update or delete
        """
        return cls(
            id=str(uuid.uuid4()),
            task_id=task_id,
            operation=SyncOperation(operation),
            data=dict(data or {}),
            created_at=utcnow(),
        )
