"""Tests for TaskService: local mutations and their queue items."""

from __future__ import annotations

import pytest

from tasksync.core.queue_item import SyncOperation
from tasksync.core.task import SyncStatus
from tasksync.services.task_service import TaskService
from tasksync.storage.base import TaskStorage


class TestCreate:
    async def test_create_persists_and_enqueues(
        self, storage: TaskStorage, service: TaskService
    ) -> None:
        task = await service.create_task(title="Buy milk", description="2 litres")

        stored = await storage.get_task(task.id)
        assert stored is not None
        assert stored.title == task.title
        assert stored.sync_status == SyncStatus.PENDING

        (item,) = await storage.get_queue_items(task.id)
        assert item.operation == SyncOperation.CREATE
        assert item.data["title"] == "Buy milk"
        assert item.data["description"] == "2 litres"
        assert item.retry_count == 0

    async def test_blank_title_defaults(self, service: TaskService) -> None:
        task = await service.create_task(title="   ")
        assert task.title == "Untitled"


class TestUpdate:
    async def test_update_queues_snapshot(
        self, storage: TaskStorage, service: TaskService
    ) -> None:
        task = await service.create_task(title="draft")
        updated = await service.update_task(task.id, title="final", completed=True)

        assert updated is not None
        assert updated.title == "final"
        assert updated.completed is True
        assert updated.updated_at >= task.updated_at

        items = await storage.get_queue_items(task.id)
        assert [i.operation for i in items] == [SyncOperation.CREATE, SyncOperation.UPDATE]
        assert items[1].data["title"] == "final"

    async def test_update_missing_returns_none(self, service: TaskService) -> None:
        assert await service.update_task("nope", title="x") is None

    async def test_update_rejects_managed_fields(self, service: TaskService) -> None:
        task = await service.create_task(title="t")
        with pytest.raises(ValueError):
            await service.update_task(task.id, sync_status="synced")

    async def test_update_resets_synced_task_to_pending(
        self, storage: TaskStorage, service: TaskService
    ) -> None:
        task = await service.create_task(title="t")
        await storage.update_sync_state(task.id, SyncStatus.SYNCED)

        updated = await service.update_task(task.id, description="more")

        assert updated is not None
        assert updated.sync_status == SyncStatus.PENDING


class TestDelete:
    async def test_soft_delete(self, storage: TaskStorage, service: TaskService) -> None:
        task = await service.create_task(title="t")

        assert await service.delete_task(task.id) is True

        assert await service.get_task(task.id) is None
        stored = await storage.get_task(task.id)
        assert stored is not None
        assert stored.is_deleted is True
        items = await storage.get_queue_items(task.id)
        assert items[-1].operation == SyncOperation.DELETE

    async def test_delete_twice(self, service: TaskService) -> None:
        task = await service.create_task(title="t")
        await service.delete_task(task.id)
        assert await service.delete_task(task.id) is False

    async def test_deleted_tasks_hidden_from_listing(self, service: TaskService) -> None:
        keep = await service.create_task(title="keep")
        gone = await service.create_task(title="gone")
        await service.delete_task(gone.id)

        assert [t.id for t in await service.get_all_tasks()] == [keep.id]

    async def test_deleted_task_still_needs_sync(self, service: TaskService) -> None:
        task = await service.create_task(title="t")
        await service.delete_task(task.id)
        assert task.id in {t.id for t in await service.get_tasks_needing_sync()}


class TestNeedingSync:
    async def test_pending_and_error_only(
        self, storage: TaskStorage, service: TaskService
    ) -> None:
        pending = await service.create_task(title="pending")
        synced = await service.create_task(title="synced")
        failed = await service.create_task(title="failed")
        await storage.update_sync_state(synced.id, SyncStatus.SYNCED)
        await storage.update_sync_state(failed.id, SyncStatus.ERROR)

        ids = {t.id for t in await service.get_tasks_needing_sync()}

        assert ids == {pending.id, failed.id}
