"""Task records and their sync metadata.

A task is the synchronized domain entity. Besides its business fields it
carries the metadata the sync core needs: the server-assigned identifier,
the sync status and the time of the last successful reconciliation.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import StrEnum
from typing import Any

from tasksync.utils.timeutils import isoformat, parse_timestamp, utcnow

DEFAULT_TITLE = "Untitled"

# Fields a client may change directly. Everything else is managed by the
# service or the sync core.
MUTABLE_FIELDS: frozenset[str] = frozenset({"title", "description", "completed"})


class SyncStatus(StrEnum):
    """Whether a task still needs to reach the remote authority."""

    PENDING = "pending"
    SYNCED = "synced"
    ERROR = "error"


@dataclass(frozen=True)
class Task:
    """A locally stored task with sync metadata."""

    id: str
    title: str
    description: str = ""
    completed: bool = False
    is_deleted: bool = False
    sync_status: SyncStatus = SyncStatus.PENDING
    server_id: str | None = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    last_synced_at: datetime | None = None

    @classmethod
    def create(
        cls,
        title: str = "",
        description: str = "",
        completed: bool = False,
        server_id: str | None = None,
        task_id: str | None = None,
    ) -> Task:
        """Create a new pending task with a client-generated id.

        Args:
            title: Task title (blank titles become "Untitled")
            description: Optional description
            completed: Initial completion flag
            server_id: Server identifier, if already known
            task_id: Explicit id (generated if not provided)

        Returns:
            New Task instance
        """
        now = utcnow()
        return cls(
            id=task_id or str(uuid.uuid4()),
            title=title.strip() or DEFAULT_TITLE,
            description=description,
            completed=completed,
            server_id=server_id,
            created_at=now,
            updated_at=now,
        )

    @property
    def needs_sync(self) -> bool:
        return self.sync_status != SyncStatus.SYNCED

    def with_changes(self, **changes: Any) -> Task:
        """Apply a local edit: business fields change, status becomes pending.

        Raises:
            ValueError: If a non-editable field is passed
        """
        unknown = set(changes) - MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update fields: {', '.join(sorted(unknown))}")
        if "title" in changes:
            changes["title"] = str(changes["title"]).strip() or DEFAULT_TITLE
        return replace(
            self,
            **changes,
            sync_status=SyncStatus.PENDING,
            updated_at=utcnow(),
        )

    def soft_deleted(self) -> Task:
        """Mark the task deleted locally; it stays stored until reconciled."""
        return replace(
            self,
            is_deleted=True,
            sync_status=SyncStatus.PENDING,
            updated_at=utcnow(),
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the snapshot format stored in the queue and sent on the wire."""
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "completed": self.completed,
            "is_deleted": self.is_deleted,
            "sync_status": self.sync_status.value,
            "server_id": self.server_id,
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
            "last_synced_at": isoformat(self.last_synced_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Task:
        """Build a task from a snapshot dict. Missing metadata falls back to defaults."""
        created_at = parse_timestamp(data.get("created_at")) or utcnow()
        return cls(
            id=str(data["id"]),
            title=str(data.get("title") or DEFAULT_TITLE),
            description=str(data.get("description") or ""),
            completed=bool(data.get("completed", False)),
            is_deleted=bool(data.get("is_deleted", False)),
            sync_status=SyncStatus(data.get("sync_status", SyncStatus.PENDING)),
            server_id=data.get("server_id"),
            created_at=created_at,
            updated_at=parse_timestamp(data.get("updated_at")) or created_at,
            last_synced_at=parse_timestamp(data.get("last_synced_at")),
        )
