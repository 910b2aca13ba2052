"""Pytest configuration and fixtures."""

from __future__ import annotations

import pathlib
from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio

from tasksync.services.task_service import TaskService
from tasksync.storage.base import TaskStorage
from tasksync.storage.memory_store import InMemoryStorage
from tasksync.storage.sqlite_store import SQLiteStorage


@pytest_asyncio.fixture
async def sqlite_storage(tmp_path: pathlib.Path) -> AsyncGenerator[SQLiteStorage, None]:
    """Initialized SQLiteStorage backed by a temp file."""
    storage = SQLiteStorage(tmp_path / "tasks.db")
    await storage.initialize()
    yield storage
    await storage.close()


@pytest_asyncio.fixture(params=["memory", "sqlite"])
async def storage(
    request: pytest.FixtureRequest, tmp_path: pathlib.Path
) -> AsyncGenerator[TaskStorage, None]:
    """Each storage backend in turn, behind the same contract."""
    store: TaskStorage
    if request.param == "memory":
        store = InMemoryStorage()
    else:
        store = SQLiteStorage(tmp_path / "tasks.db")
    await store.initialize()
    yield store
    await store.close()


@pytest.fixture
def service(storage: TaskStorage) -> TaskService:
    """Task service over the parametrized storage backend."""
    return TaskService(storage)
