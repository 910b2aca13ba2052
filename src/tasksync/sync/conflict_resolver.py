"""Last-write-wins conflict resolution between local and server task versions."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from typing import Any

from tasksync.utils.timeutils import parse_timestamp

logger = logging.getLogger(__name__)


class TieBreak(StrEnum):
    """Which side wins when both versions carry the same updated_at."""

    SERVER = "server"
    LOCAL = "local"


class ConflictWinner(StrEnum):
    LOCAL = "local"
    SERVER = "server"


@dataclass(frozen=True)
class ConflictResolution:
    """Outcome of resolving one conflict."""

    winner: ConflictWinner
    data: dict[str, Any]
    local_updated_at: datetime | None
    server_updated_at: datetime | None
    reason: str


def resolve_conflict(
    local: dict[str, Any],
    server: dict[str, Any],
    tie_break: TieBreak = TieBreak.SERVER,
) -> ConflictResolution:
    """Pick the authoritative version of a task.

    The version with the strictly later ``updated_at`` wins in full; fields
    are never merged. A version without a readable timestamp loses to one
    that has it. Equal (or both missing) timestamps go to ``tie_break``.

    Args:
        local: Local task snapshot
        server: Server's version of the task
        tie_break: Side that wins on equal timestamps

    Returns:
        ConflictResolution naming the winner and carrying its data
    """
    local_ts = _updated_at(local)
    server_ts = _updated_at(server)

    if local_ts is not None and (server_ts is None or local_ts > server_ts):
        winner, reason = ConflictWinner.LOCAL, "local is newer"
    elif server_ts is not None and (local_ts is None or server_ts > local_ts):
        winner, reason = ConflictWinner.SERVER, "server is newer"
    else:
        winner = ConflictWinner(tie_break.value)
        reason = f"equal timestamps, tie goes to {tie_break.value}"

    task_id = local.get("id") or server.get("id")
    logger.info(
        "Conflict resolved for task %s: using %s version (%s; local=%s, server=%s)",
        task_id,
        winner.value,
        reason,
        local_ts.isoformat() if local_ts else None,
        server_ts.isoformat() if server_ts else None,
    )

    return ConflictResolution(
        winner=winner,
        data=dict(local if winner == ConflictWinner.LOCAL else server),
        local_updated_at=local_ts,
        server_updated_at=server_ts,
        reason=reason,
    )


def resolve(
    local: dict[str, Any],
    server: dict[str, Any],
    tie_break: TieBreak = TieBreak.SERVER,
) -> dict[str, Any]:
    """Return the winning version of a task (see resolve_conflict)."""
    return resolve_conflict(local, server, tie_break).data


def _updated_at(data: dict[str, Any]) -> datetime | None:
    try:
        return parse_timestamp(data.get("updated_at"))
    except (ValueError, TypeError, OverflowError):
        logger.debug("Unreadable updated_at %r", data.get("updated_at"))
        return None
