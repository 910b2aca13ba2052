"""Core domain types."""

from tasksync.core.queue_item import QueueItem, SyncOperation
from tasksync.core.task import Task, SyncStatus

__all__ = ["QueueItem", "SyncOperation", "SyncStatus", "Task"]
