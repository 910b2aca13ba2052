"""Batch sync protocol data structures and run results."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any

from tasksync.core.queue_item import QueueItem, SyncOperation
from tasksync.utils.timeutils import utcnow


class ProtocolError(ValueError):
    """A remote response that does not follow the batch contract."""


class ItemStatus(StrEnum):
    """Per-item outcome reported by the remote authority."""

    SUCCESS = "success"
    CONFLICT = "conflict"
    ERROR = "error"


@dataclass(frozen=True)
class BatchItem:
    """One queued mutation as sent to the remote."""

    task_id: str
    operation: SyncOperation
    data: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_queue_item(cls, item: QueueItem) -> BatchItem:
        return cls(task_id=item.task_id, operation=item.operation, data=item.data)

    def to_dict(self) -> dict[str, Any]:
        return {"task_id": self.task_id, "operation": self.operation.value, "data": self.data}


@dataclass(frozen=True)
class BatchRequest:
    """Request body for the batch endpoint."""

    items: list[BatchItem] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"items": [item.to_dict() for item in self.items]}


@dataclass(frozen=True)
class ProcessedItem:
    """Remote outcome for one submitted item."""

    client_id: str
    status: ItemStatus
    server_id: str | None = None
    resolved_data: dict[str, Any] | None = None
    error: str | None = None

    @classmethod
    def from_dict(cls, data: Any) -> ProcessedItem:
        """Parse one entry of ``processed_items``.

        Raises:
            ProtocolError: If the entry is not an object, lacks a client_id
                or carries an unknown status
        """
        if not isinstance(data, dict):
            raise ProtocolError(f"processed item must be an object, got {type(data).__name__}")
        client_id = data.get("client_id")
        if not client_id:
            raise ProtocolError("processed item is missing client_id")
        try:
            status = ItemStatus(data.get("status"))
        except ValueError as e:
            raise ProtocolError(f"unknown item status {data.get('status')!r}") from e

        resolved = data.get("resolved_data")
        if resolved is not None and not isinstance(resolved, dict):
            raise ProtocolError("resolved_data must be an object")

        server_id = data.get("server_id") or (resolved or {}).get("server_id")
        return cls(
            client_id=str(client_id),
            status=status,
            server_id=str(server_id) if server_id else None,
            resolved_data=resolved,
            error=data.get("error"),
        )


@dataclass(frozen=True)
class BatchResponse:
    """Response body from the batch endpoint."""

    processed_items: list[ProcessedItem] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> BatchResponse:
        """Parse a batch response body.

        Raises:
            ProtocolError: If ``processed_items`` is missing or malformed
        """
        if not isinstance(data, dict):
            raise ProtocolError("batch response must be a JSON object")
        raw_items = data.get("processed_items")
        if not isinstance(raw_items, list):
            raise ProtocolError("batch response is missing processed_items")
        return cls(processed_items=[ProcessedItem.from_dict(item) for item in raw_items])


@dataclass(frozen=True)
class SyncError:
    """A failure reported by a sync run."""

    task_id: str | None  # None for run-level failures
    operation: str
    error: str
    timestamp: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "task_id": self.task_id,
            "operation": self.operation,
            "error": self.error,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class SyncResult:
    """Summary of one sync run."""

    success: bool = True
    synced_items: int = 0
    failed_items: int = 0
    errors: list[SyncError] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "synced_items": self.synced_items,
            "failed_items": self.failed_items,
            "errors": [e.to_dict() for e in self.errors],
        }
