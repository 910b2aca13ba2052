"""Bounded retry policy for queue items that fail to sync.

An item moves through ``fresh -> retrying -> permanently_failed`` as its
retry_count grows. Reaching the ceiling flips the owning task to
``sync_status = error``; the queue item itself is kept so it can be
re-enqueued explicitly.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from tasksync.core.queue_item import QueueItem

DEFAULT_MAX_RETRIES = 3


class RetryState(StrEnum):
    FRESH = "fresh"
    RETRYING = "retrying"
    PERMANENTLY_FAILED = "permanently_failed"


@dataclass(frozen=True)
class FailureDecision:
    """What a failed attempt does to a queue item."""

    item_id: str
    task_id: str
    retry_count: int
    error_message: str
    state: RetryState

    @property
    def permanent(self) -> bool:
        return self.state == RetryState.PERMANENTLY_FAILED


@dataclass(frozen=True)
class RetryPolicy:
    """Retry ceiling shared by every item in a sync run."""

    max_retries: int = DEFAULT_MAX_RETRIES

    def __post_init__(self) -> None:
        if self.max_retries < 1:
            raise ValueError("max_retries must be at least 1")

    def state_of(self, retry_count: int) -> RetryState:
        if retry_count <= 0:
            return RetryState.FRESH
        if retry_count < self.max_retries:
            return RetryState.RETRYING
        return RetryState.PERMANENTLY_FAILED

    def is_exhausted(self, item: QueueItem) -> bool:
        return self.state_of(item.retry_count) == RetryState.PERMANENTLY_FAILED

    def next_failure(self, item: QueueItem, error: str) -> FailureDecision:
        """Decide the item's state after one more failed attempt."""
        retry_count = item.retry_count + 1
        return FailureDecision(
            item_id=item.id,
            task_id=item.task_id,
            retry_count=retry_count,
            error_message=error or "Unknown sync error",
            state=self.state_of(retry_count),
        )
