"""Tests for the tasksync CLI via the Typer runner.

The remote is never contacted: the connectivity probe and the batch
client are patched at class level.
"""

from __future__ import annotations

import json
from collections.abc import Iterator, Sequence
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest
from typer.testing import CliRunner

from tasksync.cli.main import app
from tasksync.sync.client import BatchSyncClient, SyncTransportError
from tasksync.sync.connectivity import ConnectivityProbe
from tasksync.sync.protocol import BatchItem, BatchResponse, ItemStatus, ProcessedItem

runner = CliRunner()


@pytest.fixture(autouse=True)
def data_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[Path]:
    """Point the CLI at a throwaway data directory."""
    monkeypatch.setenv("TASKSYNC_DIR", str(tmp_path))
    monkeypatch.delenv("TASKSYNC_API_URL", raising=False)
    monkeypatch.delenv("TASKSYNC_BATCH_SIZE", raising=False)
    with patch("tasksync.cli.main.configure_logging"):
        yield tmp_path


def _invoke_json(*args: str) -> dict:
    result = runner.invoke(app, [*args, "--json"])
    assert result.exit_code == 0, result.output
    return json.loads(result.output)


def _add(title: str) -> str:
    return _invoke_json("add", title)["task"]["id"]


def _accept_all(items: Sequence[BatchItem]) -> BatchResponse:
    return BatchResponse(
        processed_items=[
            ProcessedItem(client_id=i.task_id, status=ItemStatus.SUCCESS, server_id="srv-1")
            for i in items
        ]
    )


def _online(online: bool = True):
    return patch.object(ConnectivityProbe, "check", new=AsyncMock(return_value=online))


def _remote(side_effect):
    return patch.object(BatchSyncClient, "send_batch", new=AsyncMock(side_effect=side_effect))


class TestTaskCommands:
    def test_add_and_list(self) -> None:
        task_id = _add("Buy milk")

        data = _invoke_json("list")

        assert data["count"] == 1
        assert data["tasks"][0]["id"] == task_id
        assert data["tasks"][0]["sync_status"] == "pending"

    def test_list_table(self) -> None:
        _add("Buy milk")
        result = runner.invoke(app, ["list"])
        assert result.exit_code == 0
        assert "Buy milk" in result.output
        assert "pending" in result.output

    def test_list_empty(self) -> None:
        result = runner.invoke(app, ["list"])
        assert "No tasks found" in result.output

    def test_edit(self) -> None:
        task_id = _add("draft")
        data = _invoke_json("edit", task_id, "--title", "final")
        assert data["task"]["title"] == "final"

    def test_edit_requires_change(self) -> None:
        task_id = _add("draft")
        result = runner.invoke(app, ["edit", task_id])
        assert result.exit_code == 1

    def test_edit_unknown_task(self) -> None:
        result = runner.invoke(app, ["edit", "missing", "--title", "x"])
        assert result.exit_code == 1
        assert "not found" in result.output

    def test_done_and_undo(self) -> None:
        task_id = _add("chore")
        assert _invoke_json("done", task_id)["task"]["completed"] is True
        assert _invoke_json("done", task_id, "--undo")["task"]["completed"] is False

    def test_rm_hides_task(self) -> None:
        task_id = _add("doomed")
        _invoke_json("rm", task_id)

        assert _invoke_json("list")["count"] == 0
        result = runner.invoke(app, ["rm", task_id])
        assert result.exit_code == 1

    def test_show_includes_queue(self) -> None:
        task_id = _add("inspect me")
        data = _invoke_json("show", task_id)
        assert data["task"]["title"] == "inspect me"
        assert [q["operation"] for q in data["queue"]] == ["create"]


class TestSyncCommands:
    def test_sync_offline_exits_1(self) -> None:
        _add("queued")
        with _online(False), _remote(_accept_all) as send:
            result = runner.invoke(app, ["sync"])

        assert result.exit_code == 1
        assert "Server not reachable" in result.output
        send.assert_not_called()

    def test_sync_success(self) -> None:
        task_id = _add("queued")
        with _online(), _remote(_accept_all):
            data = _invoke_json("sync")

        assert data == {"success": True, "synced_items": 1, "failed_items": 0, "errors": []}
        assert _invoke_json("show", task_id)["task"]["sync_status"] == "synced"

    def test_sync_failure_exits_2(self) -> None:
        _add("queued")
        with _online(), _remote(SyncTransportError("Batch request timed out")):
            result = runner.invoke(app, ["sync"])

        assert result.exit_code == 2
        assert "failed 1" in result.output
        assert "Batch request timed out" in result.output

    def test_skip_check(self) -> None:
        _add("queued")
        with _online(False), _remote(_accept_all) as send:
            result = runner.invoke(app, ["sync", "--skip-check"])

        assert result.exit_code == 0
        send.assert_awaited_once()

    def test_status_and_retry(self, monkeypatch: pytest.MonkeyPatch) -> None:
        task_id = _add("flaky")
        monkeypatch.setenv("TASKSYNC_BATCH_SIZE", "1")
        with _online(), _remote(SyncTransportError("down")):
            for _ in range(3):
                runner.invoke(app, ["sync"])

            status = _invoke_json("status")
            assert status["online"] is True
            assert status["failed"] == 1
            assert status["pending"] == 0

            retried = _invoke_json("retry", task_id)
            assert retried["requeued"] == 1

            status = _invoke_json("status")
            assert status["failed"] == 0
            assert status["pending"] == 1

    def test_purge_after_synced_delete(self) -> None:
        task_id = _add("doomed")
        _invoke_json("rm", task_id)
        with _online(), _remote(_accept_all):
            _invoke_json("sync")

        assert _invoke_json("purge")["purged"] == 1


class TestConfigCommand:
    def test_config_json(self, data_dir: Path) -> None:
        data = _invoke_json("config")
        assert data["data_dir"] == str(data_dir)
        assert data["sync"]["batch_size"] == 10
        assert (data_dir / "config.toml").exists()
