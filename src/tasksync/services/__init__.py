"""Application services on top of storage."""

from tasksync.services.task_service import TaskService

__all__ = ["TaskService"]
