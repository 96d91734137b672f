"""Retry queue for remote writes that failed on authentication."""

from recordsync.pending.entry import PendingSyncEntry, PendingSyncRetryResult
from recordsync.pending.listener import RetryOnAuthentication
from recordsync.pending.manager import PendingSyncManager
from recordsync.pending.store import (
    DatabasePendingSyncStore,
    MemoryPendingSyncStore,
    PendingSyncStore,
)

__all__ = [
    "DatabasePendingSyncStore",
    "MemoryPendingSyncStore",
    "PendingSyncEntry",
    "PendingSyncManager",
    "PendingSyncRetryResult",
    "PendingSyncStore",
    "RetryOnAuthentication",
]
