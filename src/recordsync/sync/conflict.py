"""Conflict detection and resolution.

A conflict exists when an incoming remote record would overwrite a model
that changed locally since its last sync, and the remote version differs
from the one the model was synced at.

Strategies:
- REMOTE_WINS: apply the remote record to the model
- LOCAL_WINS: ignore the remote record
- NEWEST_WINS: local wins only if updated strictly after the record's
  ``createdAt``; missing timestamps fall back to remote
- MANUAL: store a PendingConflict and leave the model untouched
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from recordsync.core.config import ColumnConfig
from recordsync.core.events import ConflictDetected, EventDispatcher
from recordsync.core.types import ConflictStrategy, ConflictWinner
from recordsync.mapping.mapper import RecordMapper, RecordMeta
from recordsync.mapping.model import ModelStore, RemoteMetadata, as_aware
from recordsync.sync.conflict_store import ConflictStore, PendingConflict

logger = logging.getLogger(__name__)

REMOTE_TIMESTAMP_FIELD = "createdAt"


@dataclass(frozen=True)
class ConflictResolution:
    """Result of conflict resolution."""

    resolved: bool
    winner: ConflictWinner
    model: Any = None
    pending: PendingConflict | None = None

    @property
    def is_resolved(self) -> bool:
        return self.resolved

    @property
    def is_pending(self) -> bool:
        return not self.resolved and self.pending is not None

    @classmethod
    def remote_wins(cls, model: Any) -> ConflictResolution:
        return cls(resolved=True, winner=ConflictWinner.REMOTE, model=model)

    @classmethod
    def local_wins(cls, model: Any) -> ConflictResolution:
        return cls(resolved=True, winner=ConflictWinner.LOCAL, model=model)

    @classmethod
    def manual(cls, conflict: PendingConflict) -> ConflictResolution:
        return cls(resolved=False, winner=ConflictWinner.MANUAL, pending=conflict)


class ConflictDetector:
    """Decides whether an incoming record conflicts with a local model."""

    def __init__(self, columns: ColumnConfig | None = None) -> None:
        self.meta = RemoteMetadata(columns)

    def has_conflict(self, model: Any, record: dict[str, Any], version: str | None) -> bool:
        """Check for a conflict. Does not modify anything."""
        if not self.meta.has_local_changes(model):
            return False

        if self.meta.version(model) == version:
            return False

        return True


class ConflictResolver:
    """Applies a ConflictStrategy to a detected conflict."""

    def __init__(
        self,
        store: ModelStore,
        conflicts: ConflictStore,
        dispatcher: EventDispatcher | None = None,
        columns: ColumnConfig | None = None,
    ) -> None:
        self.store = store
        self.conflicts = conflicts
        self.dispatcher = dispatcher or EventDispatcher()
        self.meta = RemoteMetadata(columns)

    def resolve(
        self,
        model: Any,
        record: dict[str, Any],
        meta: RecordMeta,
        mapper: RecordMapper,
        strategy: ConflictStrategy,
    ) -> ConflictResolution:
        if strategy is ConflictStrategy.LOCAL_WINS:
            return ConflictResolution.local_wins(model)
        if strategy is ConflictStrategy.NEWEST_WINS:
            return self._newest_wins(model, record, meta, mapper)
        if strategy is ConflictStrategy.MANUAL:
            return self._flag_for_review(model, record, meta, mapper)
        return self._apply_remote(model, record, meta, mapper)

    def _apply_remote(
        self, model: Any, record: dict[str, Any], meta: RecordMeta, mapper: RecordMapper
    ) -> ConflictResolution:
        mapper.update_model(model, record, meta)
        self.store.save(model)
        return ConflictResolution.remote_wins(model)

    def _newest_wins(
        self, model: Any, record: dict[str, Any], meta: RecordMeta, mapper: RecordMapper
    ) -> ConflictResolution:
        local_updated_at = self.meta.updated_at(model)
        remote_created_at = as_aware(record.get(REMOTE_TIMESTAMP_FIELD))

        # Can't compare: remote wins
        if local_updated_at is None or remote_created_at is None:
            return self._apply_remote(model, record, meta, mapper)

        if local_updated_at > remote_created_at:
            return ConflictResolution.local_wins(model)

        return self._apply_remote(model, record, meta, mapper)

    def _flag_for_review(
        self, model: Any, record: dict[str, Any], meta: RecordMeta, mapper: RecordMapper
    ) -> ConflictResolution:
        remote_model = mapper.to_model(record, meta)
        conflict = self.conflicts.create(
            model,
            uri=meta.uri,
            local_data=self.store.snapshot(model),
            remote_data=self.store.snapshot(remote_model),
        )
        logger.info(f"Conflict on {meta.uri} flagged for review ({conflict.id})")
        self.dispatcher.dispatch(
            ConflictDetected(model=model, record=record, meta=meta, conflict_id=conflict.id)
        )
        return ConflictResolution.manual(conflict)
