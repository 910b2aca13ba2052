"""tasksync - offline-first task list with batched server reconciliation."""

from tasksync.core.queue_item import QueueItem, SyncOperation
from tasksync.core.task import SyncStatus, Task
from tasksync.services.task_service import TaskService
from tasksync.storage.memory_store import InMemoryStorage
from tasksync.storage.sqlite_store import SQLiteStorage
from tasksync.sync.conflict_resolver import TieBreak, resolve
from tasksync.sync.orchestrator import SyncOrchestrator
from tasksync.sync.protocol import SyncError, SyncResult
from tasksync.sync.retry_policy import RetryPolicy

__version__ = "0.1.0"

__all__ = [
    # Core models
    "QueueItem",
    "SyncOperation",
    "SyncStatus",
    "Task",
    # Storage
    "InMemoryStorage",
    "SQLiteStorage",
    # Services
    "TaskService",
    # Sync
    "RetryPolicy",
    "SyncError",
    "SyncOrchestrator",
    "SyncResult",
    "TieBreak",
    "resolve",
    # Version
    "__version__",
]
