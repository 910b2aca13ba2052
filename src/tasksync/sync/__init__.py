"""Offline-first synchronization with a remote authority."""

from tasksync.sync.client import BatchSyncClient, SyncTransportError
from tasksync.sync.conflict_resolver import (
    ConflictResolution,
    ConflictWinner,
    TieBreak,
    resolve,
    resolve_conflict,
)
from tasksync.sync.connectivity import ConnectivityProbe
from tasksync.sync.orchestrator import (
    BatchSender,
    SyncInProgressError,
    SyncOrchestrator,
    SyncStatusReport,
)
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
from tasksync.sync.retry_policy import FailureDecision, RetryPolicy, RetryState

__all__ = [
    "BatchSyncClient",
    "SyncTransportError",
    "ConflictResolution",
    "ConflictWinner",
    "TieBreak",
    "resolve",
    "resolve_conflict",
    "ConnectivityProbe",
    "BatchSender",
    "SyncInProgressError",
    "SyncOrchestrator",
    "SyncStatusReport",
    "BatchItem",
    "BatchRequest",
    "BatchResponse",
    "ItemStatus",
    "ProcessedItem",
    "ProtocolError",
    "SyncError",
    "SyncResult",
    "FailureDecision",
    "RetryPolicy",
    "RetryState",
]
