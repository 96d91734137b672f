"""Pending sync storage backends.

This module provides:
- PendingSyncStore: storage capability used by PendingSyncManager
- MemoryPendingSyncStore: in-process store with per-entry expiry and owner
  and model indexes
- DatabasePendingSyncStore: durable store in the ``pending_syncs`` table
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from datetime import timedelta
from typing import Any, Protocol, runtime_checkable

from sqlalchemy import delete, func, select

from recordsync.core.types import PendingSyncOperation
from recordsync.mapping.model import as_aware, utcnow
from recordsync.pending.entry import PendingSyncEntry
from recordsync.storage.database import Database
from recordsync.storage.models import PendingSyncRow

logger = logging.getLogger(__name__)

DEFAULT_TTL = 3600  # seconds


@runtime_checkable
class PendingSyncStore(Protocol):
    """Storage for pending sync entries."""

    def store(self, entry: PendingSyncEntry) -> None:
        ...

    def find(self, entry_id: str) -> PendingSyncEntry | None:
        ...

    def for_owner(self, owner: str) -> list[PendingSyncEntry]:
        """Entries for an owner, oldest first."""
        ...

    def update(self, entry: PendingSyncEntry) -> None:
        ...

    def remove(self, entry_id: str) -> None:
        ...

    def remove_for_owner(self, owner: str) -> int:
        ...

    def remove_for_model(self, model_type: str, model_id: Any) -> int:
        ...

    def remove_expired(self) -> int:
        ...

    def count_for_owner(self, owner: str) -> int:
        ...

    def has_for_owner(self, owner: str) -> bool:
        ...


def _model_key(model_type: str, model_id: Any) -> tuple[str, str]:
    return (model_type, str(model_id))


class MemoryPendingSyncStore:
    """In-memory store with cache semantics.

    Each entry expires ``ttl`` seconds after it was last written; expired
    entries are invisible to reads and purged lazily.
    """

    def __init__(
        self, ttl: int = DEFAULT_TTL, clock: Callable[[], float] = time.monotonic
    ) -> None:
        self.ttl = ttl
        self._clock = clock
        self._lock = threading.RLock()
        self._entries: dict[str, tuple[PendingSyncEntry, float]] = {}
        # dicts keep insertion order
        self._by_owner: dict[str, dict[str, None]] = {}
        self._by_model: dict[tuple[str, str], dict[str, None]] = {}

    def _live(self, entry_id: str) -> PendingSyncEntry | None:
        item = self._entries.get(entry_id)
        if item is None:
            return None
        entry, expires_at = item
        if expires_at <= self._clock():
            self._drop(entry)
            return None
        return entry

    def _drop(self, entry: PendingSyncEntry) -> None:
        self._entries.pop(entry.id, None)

        owner_ids = self._by_owner.get(entry.owner)
        if owner_ids is not None:
            owner_ids.pop(entry.id, None)
            if not owner_ids:
                del self._by_owner[entry.owner]

        model_key = _model_key(entry.model_type, entry.model_id)
        model_ids = self._by_model.get(model_key)
        if model_ids is not None:
            model_ids.pop(entry.id, None)
            if not model_ids:
                del self._by_model[model_key]

    def store(self, entry: PendingSyncEntry) -> None:
        with self._lock:
            self._entries[entry.id] = (entry, self._clock() + self.ttl)
            self._by_owner.setdefault(entry.owner, {})[entry.id] = None
            self._by_model.setdefault(_model_key(entry.model_type, entry.model_id), {})[
                entry.id
            ] = None

    def find(self, entry_id: str) -> PendingSyncEntry | None:
        with self._lock:
            return self._live(entry_id)

    def for_owner(self, owner: str) -> list[PendingSyncEntry]:
        with self._lock:
            ids = list(self._by_owner.get(owner, {}))
            entries = [self._live(entry_id) for entry_id in ids]
            return [e for e in entries if e is not None]

    def update(self, entry: PendingSyncEntry) -> None:
        with self._lock:
            if entry.id in self._entries:
                self._entries[entry.id] = (entry, self._clock() + self.ttl)

    def remove(self, entry_id: str) -> None:
        with self._lock:
            item = self._entries.get(entry_id)
            if item is not None:
                self._drop(item[0])

    def remove_for_owner(self, owner: str) -> int:
        with self._lock:
            entries = self.for_owner(owner)
            for entry in entries:
                self._drop(entry)
            return len(entries)

    def remove_for_model(self, model_type: str, model_id: Any) -> int:
        with self._lock:
            ids = list(self._by_model.get(_model_key(model_type, model_id), {}))
            entries = [e for e in (self._live(i) for i in ids) if e is not None]
            for entry in entries:
                self._drop(entry)
            return len(entries)

    def remove_expired(self) -> int:
        with self._lock:
            now = self._clock()
            expired = [entry for entry, expires_at in self._entries.values() if expires_at <= now]
            for entry in expired:
                self._drop(entry)
            return len(expired)

    def count_for_owner(self, owner: str) -> int:
        return len(self.for_owner(owner))

    def has_for_owner(self, owner: str) -> bool:
        return self.count_for_owner(owner) > 0


class DatabasePendingSyncStore:
    """Durable store backed by the ``pending_syncs`` table."""

    def __init__(self, database: Database, ttl: int = DEFAULT_TTL) -> None:
        self._db = database
        self.ttl = ttl

    @staticmethod
    def _to_entry(row: PendingSyncRow) -> PendingSyncEntry:
        return PendingSyncEntry(
            id=row.pending_id,
            owner=row.owner,
            model_type=row.model_type,
            model_id=row.model_id,
            operation=PendingSyncOperation(row.operation),
            reference_mapper=row.reference_mapper,
            created_at=as_aware(row.created_at) or utcnow(),
            attempts=row.attempts,
        )

    def store(self, entry: PendingSyncEntry) -> None:
        with self._db.session() as session:
            session.add(
                PendingSyncRow(
                    pending_id=entry.id,
                    owner=entry.owner,
                    model_type=entry.model_type,
                    model_id=str(entry.model_id),
                    operation=entry.operation.value,
                    reference_mapper=entry.reference_mapper,
                    attempts=entry.attempts,
                    created_at=entry.created_at,
                )
            )
            session.commit()

    def find(self, entry_id: str) -> PendingSyncEntry | None:
        with self._db.session() as session:
            row = session.scalar(select(PendingSyncRow).where(PendingSyncRow.pending_id == entry_id))
            return self._to_entry(row) if row else None

    def for_owner(self, owner: str) -> list[PendingSyncEntry]:
        with self._db.session() as session:
            rows = session.scalars(
                select(PendingSyncRow)
                .where(PendingSyncRow.owner == owner)
                .order_by(PendingSyncRow.created_at, PendingSyncRow.id)
            ).all()
            return [self._to_entry(row) for row in rows]

    def update(self, entry: PendingSyncEntry) -> None:
        with self._db.session() as session:
            row = session.scalar(select(PendingSyncRow).where(PendingSyncRow.pending_id == entry.id))
            if row is None:
                return
            row.attempts = entry.attempts
            row.operation = entry.operation.value
            row.reference_mapper = entry.reference_mapper
            session.commit()

    def remove(self, entry_id: str) -> None:
        with self._db.session() as session:
            session.execute(delete(PendingSyncRow).where(PendingSyncRow.pending_id == entry_id))
            session.commit()

    def remove_for_owner(self, owner: str) -> int:
        with self._db.session() as session:
            result = session.execute(delete(PendingSyncRow).where(PendingSyncRow.owner == owner))
            session.commit()
            return result.rowcount

    def remove_for_model(self, model_type: str, model_id: Any) -> int:
        with self._db.session() as session:
            result = session.execute(
                delete(PendingSyncRow).where(
                    PendingSyncRow.model_type == model_type,
                    PendingSyncRow.model_id == str(model_id),
                )
            )
            session.commit()
            return result.rowcount

    def remove_expired(self) -> int:
        cutoff = utcnow() - timedelta(seconds=self.ttl)
        with self._db.session() as session:
            result = session.execute(delete(PendingSyncRow).where(PendingSyncRow.created_at < cutoff))
            session.commit()
            if result.rowcount:
                logger.debug(f"Removed {result.rowcount} expired pending syncs")
            return result.rowcount

    def count_for_owner(self, owner: str) -> int:
        with self._db.session() as session:
            return session.scalar(
                select(func.count()).select_from(PendingSyncRow).where(PendingSyncRow.owner == owner)
            ) or 0

    def has_for_owner(self, owner: str) -> bool:
        return self.count_for_owner(owner) > 0
