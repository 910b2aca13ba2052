"""Sync orchestrator: drains the mutation queue and reconciles it in batches.

A run takes a snapshot of the queue, splits it into fixed-size batches and
sends them one after another. Each per-item outcome is committed in its own
storage transaction:

- success: the queue item is removed and the task marked synced
- conflict: last-write-wins picks a version, then as success
- error: retry_count grows; at the ceiling the task is marked error

A batch that fails as a whole (unreachable, timeout, non-2xx, malformed
body) counts as an error for every item in it and the run moves on to the
next batch. Anything else aborts the run with one top-level error, appended
after the item errors recorded so far.
"""

from __future__ import annotations

import logging
from collections import defaultdict, deque
from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any, Protocol

from tasksync.core.task import SyncStatus
from tasksync.sync.client import BatchSyncClient, SyncTransportError
from tasksync.sync.conflict_resolver import ConflictWinner, TieBreak, resolve_conflict
from tasksync.sync.connectivity import DEFAULT_HEALTH_TIMEOUT, ConnectivityProbe
from tasksync.sync.protocol import (
    BatchItem,
    BatchResponse,
    ItemStatus,
    ProcessedItem,
    SyncError,
    SyncResult,
)
from tasksync.sync.retry_policy import RetryPolicy
from tasksync.utils.timeutils import utcnow

if TYPE_CHECKING:
    from tasksync.core.queue_item import QueueItem, SyncOperation
    from tasksync.storage.base import TaskStorage

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 10


class BatchSender(Protocol):
    """Anything that can deliver one batch to the remote authority."""

    async def send_batch(self, items: Sequence[BatchItem]) -> BatchResponse: ...


class SyncInProgressError(RuntimeError):
    """Raised when sync() is called while a run is already executing."""


@dataclass(frozen=True)
class SyncStatusReport:
    """Snapshot of the local sync backlog."""

    online: bool
    pending: int
    failed: int
    last_sync: datetime | None
    timestamp: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "online": self.online,
            "pending": self.pending,
            "failed": self.failed,
            "last_sync": self.last_sync.isoformat() if self.last_sync else None,
            "timestamp": self.timestamp.isoformat(),
        }


class SyncOrchestrator:
    """Moves queued mutations to the remote authority.

    Runs are sequential by construction: batches and items are handled one
    at a time in queue order. A second sync() on the same orchestrator while
    one is running raises SyncInProgressError.
    """

    def __init__(
        self,
        storage: TaskStorage,
        client: BatchSender,
        *,
        probe: ConnectivityProbe | None = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        retry_policy: RetryPolicy | None = None,
        tie_break: TieBreak = TieBreak.SERVER,
    ) -> None:
        """
        Initialize the orchestrator.

        Args:
            storage: Record store and mutation queue
            client: Sender for the remote batch endpoint
            probe: Connectivity probe used by check_connectivity()
            batch_size: Maximum items per remote request
            retry_policy: Retry ceiling (default: 3 attempts)
            tie_break: Winner of conflicts with equal timestamps
        """
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self._storage = storage
        self._client = client
        self._probe = probe
        self._batch_size = batch_size
        self._retry_policy = retry_policy or RetryPolicy()
        self._tie_break = tie_break
        self._running = False

    @classmethod
    def create(
        cls,
        storage: TaskStorage,
        api_url: str,
        *,
        request_timeout: float = 30.0,
        health_timeout: float = DEFAULT_HEALTH_TIMEOUT,
        api_key: str | None = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        retry_policy: RetryPolicy | None = None,
        tie_break: TieBreak = TieBreak.SERVER,
    ) -> SyncOrchestrator:
        """Build an orchestrator that talks HTTP to ``api_url``.

        The caller owns the returned orchestrator's client and should
        ``await orchestrator.close()`` when done.
        """
        return cls(
            storage,
            BatchSyncClient(api_url, timeout=request_timeout, api_key=api_key),
            probe=ConnectivityProbe(api_url, timeout=health_timeout),
            batch_size=batch_size,
            retry_policy=retry_policy,
            tie_break=tie_break,
        )

    @property
    def batch_size(self) -> int:
        return self._batch_size

    @property
    def retry_policy(self) -> RetryPolicy:
        return self._retry_policy

    @property
    def is_running(self) -> bool:
        return self._running

    async def close(self) -> None:
        """Close the batch client if it holds network resources."""
        close = getattr(self._client, "close", None)
        if close is not None:
            await close()

    # ========== Caller-facing operations ==========

    async def check_connectivity(self) -> bool:
        """Pre-flight reachability check. sync() itself never calls this."""
        if self._probe is None:
            raise RuntimeError("No connectivity probe configured")
        return await self._probe.check()

    async def add_to_sync_queue(
        self,
        task_id: str,
        operation: SyncOperation | str,
        data: dict[str, Any],
    ) -> None:
        """Queue a mutation for the next run."""
        await self._storage.enqueue(task_id, operation, data)

    async def requeue_failed(self, task_id: str | None = None) -> int:
        """Give permanently failed items a fresh retry budget.

        Resets their retry_count and flips the owning tasks back to pending.
        Returns the number of tasks re-enqueued.
        """
        async with self._storage.transaction():
            task_ids = await self._storage.reset_retries(
                self._retry_policy.max_retries, task_id=task_id
            )
            for tid in task_ids:
                await self._storage.update_sync_state(tid, SyncStatus.PENDING)
        if task_ids:
            logger.info("Re-enqueued %d permanently failed task(s)", len(task_ids))
        return len(task_ids)

    async def get_status(self, check_online: bool = True) -> SyncStatusReport:
        """Summarize the backlog: retryable items, failed items, last sync."""
        total = await self._storage.count_queue_items()
        failed = await self._storage.count_queue_items(
            min_retry_count=self._retry_policy.max_retries
        )
        online = await self.check_connectivity() if check_online and self._probe else False
        return SyncStatusReport(
            online=online,
            pending=total - failed,
            failed=failed,
            last_sync=await self._storage.get_last_synced_at(),
        )

    async def sync(self) -> SyncResult:
        """Drain the queue and reconcile every item with the remote.

        Raises:
            SyncInProgressError: If another run is executing
        """
        if self._running:
            raise SyncInProgressError("A sync run is already in progress")
        self._running = True
        try:
            return await self._run()
        finally:
            self._running = False

    # ========== Run internals ==========

    async def _run(self) -> SyncResult:
        result = SyncResult()
        try:
            queued = await self._storage.drain()
            items = [item for item in queued if not self._retry_policy.is_exhausted(item)]
            if len(items) < len(queued):
                logger.debug(
                    "Skipping %d permanently failed item(s)", len(queued) - len(items)
                )
            if not items:
                logger.debug("Sync queue empty, nothing to do")
                return result

            batches = list(_chunked(items, self._batch_size))
            logger.info("Syncing %d item(s) in %d batch(es)", len(items), len(batches))
            for batch in batches:
                await self._process_batch(batch, result)
        except Exception as e:
            logger.exception("Sync run aborted")
            return SyncResult(
                success=False,
                synced_items=result.synced_items,
                failed_items=result.failed_items,
                errors=[
                    *result.errors,
                    SyncError(task_id=None, operation="sync", error=str(e) or repr(e)),
                ],
            )

        result.success = result.failed_items == 0 and not result.errors
        logger.info(
            "Sync finished: %d synced, %d failed", result.synced_items, result.failed_items
        )
        return result

    async def _process_batch(self, batch: list[QueueItem], result: SyncResult) -> None:
        try:
            response = await self._client.send_batch(
                [BatchItem.from_queue_item(item) for item in batch]
            )
        except SyncTransportError as e:
            logger.warning("Batch of %d item(s) failed: %s", len(batch), e)
            for item in batch:
                await self._record_failure(item, str(e) or "Batch sync failed", result)
            return

        for item, outcome in _match_outcomes(batch, response):
            if outcome is None:
                await self._record_failure(item, "No result returned for item", result)
            elif outcome.status == ItemStatus.SUCCESS:
                await self._commit(item, outcome.server_id)
                result.synced_items += 1
            elif outcome.status == ItemStatus.CONFLICT:
                if outcome.resolved_data is None:
                    await self._record_failure(
                        item, "Conflict reported without server data", result
                    )
                    continue
                await self._commit_conflict(item, outcome)
                result.synced_items += 1
            else:
                await self._record_failure(item, outcome.error or "Unknown sync error", result)

    async def _commit(
        self,
        item: QueueItem,
        server_id: str | None,
        fields: dict[str, Any] | None = None,
    ) -> None:
        """Remove the item and settle its task, atomically."""
        async with self._storage.transaction():
            await self._storage.remove_item(item.id)
            remaining = await self._storage.get_queue_items(item.task_id)
            if remaining:
                # A newer local mutation is still queued; keep its edits
                fields = None
            await self._storage.update_sync_state(
                item.task_id,
                self._settled_status(remaining),
                synced_at=utcnow(),
                server_id=server_id,
                fields=fields,
            )
        logger.debug("Committed %s for task %s", item.operation, item.task_id)

    async def _commit_conflict(self, item: QueueItem, outcome: ProcessedItem) -> None:
        assert outcome.resolved_data is not None
        resolution = resolve_conflict(item.data, outcome.resolved_data, self._tie_break)
        # A local win leaves the stored fields untouched
        fields = resolution.data if resolution.winner == ConflictWinner.SERVER else None
        await self._commit(item, outcome.server_id, fields)

    async def _record_failure(self, item: QueueItem, message: str, result: SyncResult) -> None:
        decision = self._retry_policy.next_failure(item, message)
        async with self._storage.transaction():
            updated = await self._storage.record_failure(item.id, decision.error_message)
            if updated is None:
                logger.warning("Queue item %s vanished before its failure was recorded", item.id)
            elif decision.permanent:
                await self._storage.update_sync_state(item.task_id, SyncStatus.ERROR)

        if decision.permanent:
            logger.warning(
                "Task %s marked as permanently failed after %d retries: %s",
                item.task_id,
                decision.retry_count,
                decision.error_message,
            )
        else:
            logger.warning(
                "Sync failed for task %s (attempt %d/%d): %s",
                item.task_id,
                decision.retry_count,
                self._retry_policy.max_retries,
                decision.error_message,
            )

        result.failed_items += 1
        result.errors.append(
            SyncError(
                task_id=item.task_id,
                operation=item.operation.value,
                error=decision.error_message,
            )
        )

    def _settled_status(self, remaining: list[QueueItem]) -> SyncStatus:
        """Status of a task after one of its items was committed."""
        if any(self._retry_policy.is_exhausted(i) for i in remaining):
            return SyncStatus.ERROR
        if remaining:
            return SyncStatus.PENDING
        return SyncStatus.SYNCED


def _chunked(items: list[QueueItem], size: int) -> Iterator[list[QueueItem]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


def _match_outcomes(
    batch: list[QueueItem],
    response: BatchResponse,
) -> list[tuple[QueueItem, ProcessedItem | None]]:
    """Pair each submitted item with its outcome, in submission order.

    Outcomes are keyed by task id; several items for the same task are
    matched first-in-first-out.
    """
    waiting: dict[str, deque[QueueItem]] = defaultdict(deque)
    for item in batch:
        waiting[item.task_id].append(item)

    matched: dict[str, ProcessedItem] = {}
    for outcome in response.processed_items:
        queue = waiting.get(outcome.client_id)
        if not queue:
            logger.warning("Ignoring outcome for unexpected task %s", outcome.client_id)
            continue
        matched[queue.popleft().id] = outcome

    return [(item, matched.get(item.id)) for item in batch]
