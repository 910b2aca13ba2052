"""Tests for the Task and QueueItem models."""

from __future__ import annotations

from dataclasses import FrozenInstanceError
from datetime import UTC, datetime

import pytest

from tasksync.core.queue_item import QueueItem, SyncOperation
from tasksync.core.task import DEFAULT_TITLE, SyncStatus, Task
from tasksync.utils.timeutils import parse_timestamp


class TestTaskCreate:
    def test_defaults(self) -> None:
        task = Task.create(title="Buy milk")
        assert task.title == "Buy milk"
        assert task.description == ""
        assert task.completed is False
        assert task.is_deleted is False
        assert task.sync_status == SyncStatus.PENDING
        assert task.server_id is None
        assert task.last_synced_at is None
        assert task.created_at == task.updated_at

    def test_blank_title_becomes_default(self) -> None:
        assert Task.create(title="   ").title == DEFAULT_TITLE

    def test_ids_are_unique(self) -> None:
        assert Task.create().id != Task.create().id

    def test_explicit_id(self) -> None:
        assert Task.create(task_id="t-1").id == "t-1"

    def test_frozen(self) -> None:
        task = Task.create(title="x")
        with pytest.raises((FrozenInstanceError, AttributeError)):
            task.title = "y"  # type: ignore[misc]


class TestLocalMutations:
    def test_with_changes_sets_pending_and_bumps_updated_at(self) -> None:
        task = Task(
            id="t-1",
            title="old",
            sync_status=SyncStatus.SYNCED,
            updated_at=datetime(2024, 1, 1, tzinfo=UTC),
        )
        edited = task.with_changes(title="new", completed=True)
        assert edited.title == "new"
        assert edited.completed is True
        assert edited.sync_status == SyncStatus.PENDING
        assert edited.updated_at > task.updated_at
        assert edited.id == task.id

    def test_with_changes_rejects_metadata(self) -> None:
        task = Task.create(title="x")
        with pytest.raises(ValueError, match="sync_status"):
            task.with_changes(sync_status=SyncStatus.SYNCED)

    def test_soft_deleted(self) -> None:
        task = Task(id="t-1", title="x", sync_status=SyncStatus.ERROR)
        deleted = task.soft_deleted()
        assert deleted.is_deleted is True
        assert deleted.sync_status == SyncStatus.PENDING
        assert deleted.needs_sync


class TestTaskSerialization:
    def test_to_dict_uses_iso_timestamps(self) -> None:
        task = Task(id="t-1", title="x", updated_at=datetime(2024, 5, 1, 12, tzinfo=UTC))
        data = task.to_dict()
        assert data["updated_at"] == "2024-05-01T12:00:00+00:00"
        assert data["sync_status"] == "pending"
        assert data["last_synced_at"] is None

    def test_from_dict_with_server_fields(self) -> None:
        task = Task.from_dict(
            {
                "id": "t-1",
                "title": "From server",
                "completed": 1,
                "server_id": "srv-9",
                "updated_at": "2024-05-01T12:00:00Z",
            }
        )
        assert task.completed is True
        assert task.server_id == "srv-9"
        assert task.updated_at == datetime(2024, 5, 1, 12, tzinfo=UTC)


class TestQueueItem:
    def test_create_fresh(self) -> None:
        item = QueueItem.create("t-1", "update", {"id": "t-1"})
        assert item.operation == SyncOperation.UPDATE
        assert item.retry_count == 0
        assert item.error_message is None
        assert item.data == {"id": "t-1"}

    def test_invalid_operation(self) -> None:
        with pytest.raises(ValueError):
            QueueItem.create("t-1", "upsert", {})


class TestParseTimestamp:
    def test_naive_is_utc(self) -> None:
        assert parse_timestamp("2024-01-01 10:00:00") == datetime(2024, 1, 1, 10, tzinfo=UTC)

    def test_epoch_millis(self) -> None:
        assert parse_timestamp(0) == datetime(1970, 1, 1, tzinfo=UTC)

    def test_none_and_empty(self) -> None:
        assert parse_timestamp(None) is None
        assert parse_timestamp("") is None

    def test_garbage(self) -> None:
        with pytest.raises(ValueError):
            parse_timestamp("yesterday")
