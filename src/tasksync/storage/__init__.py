"""Storage backends for tasks and the sync queue."""

from tasksync.storage.base import TaskStorage
from tasksync.storage.memory_store import InMemoryStorage
from tasksync.storage.sqlite_store import SQLiteStorage

__all__ = ["InMemoryStorage", "SQLiteStorage", "TaskStorage"]
