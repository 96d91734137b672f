"""Shared enums for recordsync.

This module defines the closed value sets used across the importer,
the sync engines and the pending-sync queue.
"""

from __future__ import annotations

from enum import Enum


class ImportStatus(str, Enum):
    """Progress status of an (owner, collection) import."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class PendingSyncOperation(str, Enum):
    """Remote write captured for a later retry."""

    SYNC = "sync"
    RESYNC = "resync"
    UNSYNC = "unsync"
    SYNC_WITH_REFERENCE = "sync_with_reference"
    RESYNC_WITH_REFERENCE = "resync_with_reference"
    UNSYNC_WITH_REFERENCE = "unsync_with_reference"

    @property
    def uses_reference(self) -> bool:
        """Whether replaying this operation needs a reference mapper."""
        return self in (
            PendingSyncOperation.SYNC_WITH_REFERENCE,
            PendingSyncOperation.RESYNC_WITH_REFERENCE,
            PendingSyncOperation.UNSYNC_WITH_REFERENCE,
        )


class ConflictStrategy(str, Enum):
    """How a write-write conflict between local and remote is settled.

    REMOTE_WINS: the remote record overwrites local changes.
    LOCAL_WINS: the remote change is ignored.
    NEWEST_WINS: compare local update time with the record's creation time.
    MANUAL: store a pending conflict and leave the model untouched.
    """

    REMOTE_WINS = "remote"
    LOCAL_WINS = "local"
    NEWEST_WINS = "newest"
    MANUAL = "manual"

    @classmethod
    def from_config(cls, value: str | None) -> ConflictStrategy:
        """Map a config string to a strategy, defaulting to REMOTE_WINS."""
        if value is None:
            return cls.REMOTE_WINS
        try:
            return cls(value.strip().lower())
        except ValueError:
            return cls.REMOTE_WINS


class ConflictStatus(str, Enum):
    """Lifecycle of a stored pending conflict."""

    PENDING = "pending"
    RESOLVED = "resolved"
    DISMISSED = "dismissed"


class ConflictWinner(str, Enum):
    """Side kept by a conflict resolution."""

    LOCAL = "local"
    REMOTE = "remote"
    MANUAL = "manual"


class ReferenceFormat(str, Enum):
    """Shape of the pointer a reference record carries to its main record.

    AT_URI: a bare URI string.
    STRONG_REF: a {"uri": ..., "cid": ...} object.
    """

    AT_URI = "at-uri"
    STRONG_REF = "strongref"


class CommitOperation(str, Enum):
    """Operation carried by a remote commit notification."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
