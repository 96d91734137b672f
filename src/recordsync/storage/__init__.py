"""Persistent sync state (SQLAlchemy over SQLite)."""

from recordsync.storage.database import Database
from recordsync.storage.models import (
    Base,
    ImportStateRow,
    PendingConflictRow,
    PendingSyncRow,
)

__all__ = [
    "Base",
    "Database",
    "ImportStateRow",
    "PendingConflictRow",
    "PendingSyncRow",
]
