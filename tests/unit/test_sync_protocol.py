"""Tests for batch protocol marshaling."""

from __future__ import annotations

from dataclasses import FrozenInstanceError

import pytest

from tasksync.core.queue_item import QueueItem, SyncOperation
from tasksync.sync.protocol import (
    BatchItem,
    BatchRequest,
    BatchResponse,
    ItemStatus,
    ProcessedItem,
    ProtocolError,
    SyncError,
    SyncResult,
)


class TestBatchRequest:
    def test_request_shape(self) -> None:
        item = QueueItem.create("t-1", SyncOperation.UPDATE, {"id": "t-1", "title": "x"})
        request = BatchRequest(items=[BatchItem.from_queue_item(item)])
        assert request.to_dict() == {
            "items": [
                {"task_id": "t-1", "operation": "update", "data": {"id": "t-1", "title": "x"}}
            ]
        }

    def test_batch_item_frozen(self) -> None:
        item = BatchItem(task_id="t-1", operation=SyncOperation.CREATE)
        with pytest.raises((FrozenInstanceError, AttributeError)):
            item.task_id = "t-2"  # type: ignore[misc]


class TestBatchResponse:
    def test_parses_all_statuses(self) -> None:
        response = BatchResponse.from_dict(
            {
                "processed_items": [
                    {"client_id": "a", "server_id": "s-a", "status": "success"},
                    {
                        "client_id": "b",
                        "status": "conflict",
                        "resolved_data": {"server_id": "s-b", "updated_at": "2024-01-01"},
                    },
                    {"client_id": "c", "status": "error", "error": "rejected"},
                ]
            }
        )
        a, b, c = response.processed_items
        assert a.status == ItemStatus.SUCCESS
        assert a.server_id == "s-a"
        assert b.status == ItemStatus.CONFLICT
        assert b.server_id == "s-b"  # falls back to resolved_data
        assert c.status == ItemStatus.ERROR
        assert c.error == "rejected"
        assert c.server_id is None

    def test_empty_server_id_is_none(self) -> None:
        item = ProcessedItem.from_dict({"client_id": "a", "server_id": "", "status": "error"})
        assert item.server_id is None

    @pytest.mark.parametrize(
        "body",
        [
            [],
            {},
            {"processed_items": "nope"},
            {"processed_items": ["nope"]},
            {"processed_items": [{"status": "success"}]},
            {"processed_items": [{"client_id": "a", "status": "maybe"}]},
            {"processed_items": [{"client_id": "a", "status": "success", "resolved_data": 3}]},
        ],
    )
    def test_malformed(self, body: object) -> None:
        with pytest.raises(ProtocolError):
            BatchResponse.from_dict(body)

    def test_protocol_error_is_value_error(self) -> None:
        assert issubclass(ProtocolError, ValueError)


class TestSyncResult:
    def test_defaults_mean_nothing_to_do(self) -> None:
        result = SyncResult()
        assert result.success is True
        assert result.to_dict() == {
            "success": True,
            "synced_items": 0,
            "failed_items": 0,
            "errors": [],
        }

    def test_error_serialization(self) -> None:
        error = SyncError(task_id=None, operation="sync", error="disk full")
        data = error.to_dict()
        assert data["task_id"] is None
        assert data["error"] == "disk full"
        assert "T" in data["timestamp"]
