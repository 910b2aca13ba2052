"""tasksync CLI.

Usage:
    tasksync add "title"        Create a task offline
    tasksync list               List tasks and their sync state
    tasksync sync               Push queued changes to the server
    tasksync status             Show backlog and connectivity
    tasksync retry [id]         Re-enqueue permanently failed tasks
"""

from tasksync.cli.main import app

__all__ = ["app"]
