"""Tests for last-write-wins conflict resolution."""

from __future__ import annotations

import logging

import pytest

from tasksync.sync.conflict_resolver import (
    ConflictWinner,
    TieBreak,
    resolve,
    resolve_conflict,
)

LOCAL = {"id": "t-1", "title": "local edit", "updated_at": "2024-05-01T10:00:00+00:00"}
SERVER = {"id": "t-1", "title": "server edit", "updated_at": "2024-05-01T09:00:00+00:00"}


def _with_time(data: dict, updated_at: object) -> dict:
    return {**data, "updated_at": updated_at}


class TestLastWriteWins:
    def test_local_newer_wins(self) -> None:
        assert resolve(LOCAL, SERVER) == LOCAL

    def test_server_newer_wins(self) -> None:
        server = _with_time(SERVER, "2024-05-01T11:00:00Z")
        assert resolve(LOCAL, server) == server

    def test_winner_taken_in_full(self) -> None:
        local = {**LOCAL, "description": "only local has this"}
        server = _with_time(SERVER, "2024-06-01T00:00:00Z")
        assert "description" not in resolve(local, server)

    def test_compares_instants_not_strings(self) -> None:
        # 10:30+02:00 is 08:30 UTC, earlier than the server's 09:00 UTC
        local = _with_time(LOCAL, "2024-05-01T10:30:00+02:00")
        resolution = resolve_conflict(local, SERVER)
        assert resolution.winner == ConflictWinner.SERVER

    def test_returns_copy(self) -> None:
        winner = resolve(LOCAL, SERVER)
        winner["title"] = "mutated"
        assert LOCAL["title"] == "local edit"


class TestTieBreak:
    def test_default_favors_server(self) -> None:
        server = _with_time(SERVER, LOCAL["updated_at"])
        resolution = resolve_conflict(LOCAL, server)
        assert resolution.winner == ConflictWinner.SERVER
        assert resolution.data == server

    def test_configurable_local(self) -> None:
        server = _with_time(SERVER, LOCAL["updated_at"])
        assert resolve(LOCAL, server, TieBreak.LOCAL) == LOCAL

    @pytest.mark.parametrize("tie_break", list(TieBreak))
    def test_deterministic(self, tie_break: TieBreak) -> None:
        server = _with_time(SERVER, LOCAL["updated_at"])
        results = {resolve_conflict(LOCAL, server, tie_break).winner for _ in range(10)}
        assert len(results) == 1


class TestMissingTimestamps:
    def test_side_without_timestamp_loses(self) -> None:
        local = _with_time(LOCAL, None)
        assert resolve_conflict(local, SERVER).winner == ConflictWinner.SERVER
        server = _with_time(SERVER, "not a date")
        assert resolve_conflict(LOCAL, server).winner == ConflictWinner.LOCAL

    def test_both_missing_uses_tie_break(self) -> None:
        local = _with_time(LOCAL, None)
        server = _with_time(SERVER, None)
        assert resolve_conflict(local, server, TieBreak.LOCAL).winner == ConflictWinner.LOCAL


def test_decision_is_logged(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.INFO, logger="tasksync.sync.conflict_resolver"):
        resolve(LOCAL, SERVER)
    assert "using local version" in caplog.text
