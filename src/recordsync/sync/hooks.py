"""Lifecycle hooks that keep remote records in step with local models.

The ORM adapter calls ``on_created`` / ``on_updated`` / ``on_deleted`` after
the corresponding local write. Models opt out by defining
``should_auto_sync()`` / ``should_auto_unsync()`` (or the ``_reference``
variants) returning False.

When a write fails with AuthenticationError, the operation is captured in
the pending sync queue (if enabled) and the error is re-raised.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from recordsync.core.types import PendingSyncOperation
from recordsync.mapping.mapper import ReferenceMapper
from recordsync.remote.api import AuthenticationError
from recordsync.sync.engine import SyncEngine
from recordsync.sync.reference import ReferenceSyncEngine
from recordsync.sync.results import ReferenceSyncResult, SyncResult

if TYPE_CHECKING:
    from recordsync.pending.manager import PendingSyncManager

logger = logging.getLogger(__name__)


def _opted_in(model: Any, hook: str) -> bool:
    check = getattr(model, hook, None)
    if callable(check):
        return bool(check())
    return True


class AutoSync:
    """Syncs a model's main record on create, update and delete."""

    def __init__(self, engine: SyncEngine, pending: PendingSyncManager | None = None) -> None:
        self.engine = engine
        self.pending = pending

    def on_created(self, model: Any) -> SyncResult | None:
        if not _opted_in(model, "should_auto_sync"):
            return None

        owner = self.engine.owner_of(model)
        if not owner:
            return None

        try:
            return self.engine.sync_as(owner, model)
        except AuthenticationError:
            self._capture(owner, model, PendingSyncOperation.SYNC)
            raise

    def on_updated(self, model: Any) -> SyncResult | None:
        if not self.engine.meta.is_synced(model) or not _opted_in(model, "should_auto_sync"):
            return None

        try:
            return self.engine.resync(model)
        except AuthenticationError:
            self._capture(self.engine.owner_of(model), model, PendingSyncOperation.RESYNC)
            raise

    def on_deleted(self, model: Any) -> bool:
        if not self.engine.meta.is_synced(model) or not _opted_in(model, "should_auto_unsync"):
            return False

        try:
            return self.engine.unsync(model)
        except AuthenticationError:
            self._capture(self.engine.owner_of(model), model, PendingSyncOperation.UNSYNC)
            raise

    def _capture(
        self,
        owner: str | None,
        model: Any,
        operation: PendingSyncOperation,
        mapper: ReferenceMapper | None = None,
    ) -> None:
        if owner and self.pending is not None and self.pending.is_enabled():
            self.pending.capture(owner, model, operation, mapper)
        else:
            logger.debug(f"Not capturing {operation.value} after authentication failure")


class ReferenceAutoSync(AutoSync):
    """Syncs a model's main and reference records together."""

    def __init__(
        self,
        references: ReferenceSyncEngine,
        mapper: ReferenceMapper,
        pending: PendingSyncManager | None = None,
    ) -> None:
        super().__init__(references.engine, pending)
        self.references = references
        self.mapper = mapper

    def _is_fully_synced(self, model: Any) -> bool:
        return self.engine.meta.is_synced(model) and bool(
            getattr(model, self.mapper.reference_uri_column, None)
        )

    def on_created(self, model: Any) -> ReferenceSyncResult | None:  # type: ignore[override]
        if not _opted_in(model, "should_auto_sync_reference"):
            return None

        owner = self.engine.owner_of(model)
        if not owner:
            return None

        try:
            return self.references.sync_with_reference(owner, model, self.mapper)
        except AuthenticationError:
            self._capture(owner, model, PendingSyncOperation.SYNC_WITH_REFERENCE, self.mapper)
            raise

    def on_updated(self, model: Any) -> ReferenceSyncResult | None:  # type: ignore[override]
        if not self._is_fully_synced(model) or not _opted_in(model, "should_auto_sync_reference"):
            return None

        try:
            return self.references.resync_with_reference(model, self.mapper)
        except AuthenticationError:
            self._capture(
                self.engine.owner_of(model),
                model,
                PendingSyncOperation.RESYNC_WITH_REFERENCE,
                self.mapper,
            )
            raise

    def on_deleted(self, model: Any) -> bool:
        if not _opted_in(model, "should_auto_unsync_reference"):
            return False

        try:
            return self.references.unsync_with_reference(model, self.mapper)
        except AuthenticationError:
            self._capture(
                self.engine.owner_of(model),
                model,
                PendingSyncOperation.UNSYNC_WITH_REFERENCE,
                self.mapper,
            )
            raise
