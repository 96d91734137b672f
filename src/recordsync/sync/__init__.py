"""Publishing local models and applying remote changes."""

from recordsync.sync.commits import CommitEvent, CommitHandler
from recordsync.sync.conflict import ConflictDetector, ConflictResolution, ConflictResolver
from recordsync.sync.conflict_store import (
    ConflictNotFoundError,
    ConflictStore,
    PendingConflict,
)
from recordsync.sync.engine import SyncEngine
from recordsync.sync.hooks import AutoSync, ReferenceAutoSync
from recordsync.sync.reference import ReferenceSyncEngine
from recordsync.sync.results import ReferenceSyncResult, SyncResult

__all__ = [
    "AutoSync",
    "CommitEvent",
    "CommitHandler",
    "ConflictDetector",
    "ConflictNotFoundError",
    "ConflictResolution",
    "ConflictResolver",
    "ConflictStore",
    "PendingConflict",
    "ReferenceAutoSync",
    "ReferenceSyncEngine",
    "ReferenceSyncResult",
    "SyncEngine",
    "SyncResult",
]
