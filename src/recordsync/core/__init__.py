"""Core module - Shared types, URIs, configuration and events."""

from recordsync.core.config import (
    ColumnConfig,
    ConflictConfig,
    ImportConfig,
    PendingSyncConfig,
    RecordSyncConfig,
    ReferenceConfig,
    RemoteConfig,
    SyncFilterConfig,
    load_config,
    save_config,
)
from recordsync.core.events import (
    ConflictDetected,
    Event,
    EventDispatcher,
    ImportCompleted,
    ImportFailed,
    ImportProgress,
    ImportStarted,
    PendingSyncCaptured,
    PendingSyncFailed,
    PendingSyncRetried,
    RecordSynced,
    RecordUnsynced,
    ReferenceSynced,
)
from recordsync.core.types import (
    CommitOperation,
    ConflictStatus,
    ConflictStrategy,
    ConflictWinner,
    ImportStatus,
    PendingSyncOperation,
    ReferenceFormat,
)
from recordsync.core.uri import InvalidURIError, RemoteURI, StrongRef

__all__ = [
    # Config
    "ColumnConfig",
    "ConflictConfig",
    "ImportConfig",
    "PendingSyncConfig",
    "RecordSyncConfig",
    "ReferenceConfig",
    "RemoteConfig",
    "SyncFilterConfig",
    "load_config",
    "save_config",
    # Events
    "ConflictDetected",
    "Event",
    "EventDispatcher",
    "ImportCompleted",
    "ImportFailed",
    "ImportProgress",
    "ImportStarted",
    "PendingSyncCaptured",
    "PendingSyncFailed",
    "PendingSyncRetried",
    "RecordSynced",
    "RecordUnsynced",
    "ReferenceSynced",
    # Types
    "CommitOperation",
    "ConflictStatus",
    "ConflictStrategy",
    "ConflictWinner",
    "ImportStatus",
    "PendingSyncOperation",
    "ReferenceFormat",
    # URIs
    "InvalidURIError",
    "RemoteURI",
    "StrongRef",
]
