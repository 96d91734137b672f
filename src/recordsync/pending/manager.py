"""Retry queue for remote writes that failed on authentication.

When a write fails because the owner's session is no longer valid, the
intended operation is captured as a PendingSyncEntry. Once the owner
re-authenticates, ``retry_for_owner`` replays the entries in order.
"""

from __future__ import annotations

import logging
import threading
from typing import Any

from recordsync.core.config import PendingSyncConfig
from recordsync.core.events import (
    EventDispatcher,
    PendingSyncCaptured,
    PendingSyncFailed,
    PendingSyncRetried,
)
from recordsync.core.types import PendingSyncOperation
from recordsync.mapping.mapper import ReferenceMapper
from recordsync.mapping.model import ModelStore, type_name
from recordsync.mapping.registry import MapperRegistry
from recordsync.pending.entry import PendingSyncEntry, PendingSyncRetryResult
from recordsync.pending.store import PendingSyncStore
from recordsync.remote.api import AuthenticationError
from recordsync.sync.engine import SyncEngine
from recordsync.sync.reference import ReferenceSyncEngine

logger = logging.getLogger(__name__)

LOG_PREFIX = "[recordsync]"


class PendingSyncManager:
    """Captures failed writes and replays them later.

    Entries for one owner are replayed sequentially. At most one entry per
    model is kept: capturing replaces any earlier entry for the same model.
    """

    def __init__(
        self,
        store: PendingSyncStore,
        engine: SyncEngine,
        references: ReferenceSyncEngine,
        registry: MapperRegistry,
        models: ModelStore,
        dispatcher: EventDispatcher | None = None,
        config: PendingSyncConfig | None = None,
    ) -> None:
        self.store = store
        self.engine = engine
        self.references = references
        self.registry = registry
        self.models = models
        self.dispatcher = dispatcher or EventDispatcher()
        self.config = config or PendingSyncConfig()

    def is_enabled(self) -> bool:
        return self.config.enabled

    def capture(
        self,
        owner: str,
        model: Any,
        operation: PendingSyncOperation,
        reference_mapper: ReferenceMapper | str | None = None,
    ) -> PendingSyncEntry:
        """Record an operation to replay for a model, replacing earlier ones."""
        model_type = type_name(type(model))
        model_id = self.models.key(model)
        self.store.remove_for_model(model_type, model_id)

        if reference_mapper is not None and not isinstance(reference_mapper, str):
            reference_mapper = reference_mapper.collection

        entry = PendingSyncEntry(
            owner=owner,
            model_type=model_type,
            model_id=model_id,
            operation=operation,
            reference_mapper=reference_mapper,
        )
        self.store.store(entry)

        self._log(
            logging.INFO,
            f"Pending sync captured: {entry.id} {operation.value} "
            f"{model_type}:{model_id} for {owner}",
        )
        self.dispatcher.dispatch(PendingSyncCaptured(entry=entry, model=model))
        return entry

    def retry_for_owner(
        self, owner: str, cancel: threading.Event | None = None
    ) -> PendingSyncRetryResult:
        """Replay an owner's pending entries.

        Expired entries and entries out of attempts are removed and counted
        as skipped. Attempts are persisted before each replay. An
        AuthenticationError stops the pass and propagates.
        """
        entries = self.store.for_owner(owner)
        succeeded = failed = skipped = 0
        errors: list[str] = []

        for entry in entries:
            if cancel is not None and cancel.is_set():
                self._log(logging.INFO, f"Pending sync retry for {owner} cancelled")
                break

            if entry.is_expired(self.config.ttl):
                self.store.remove(entry.id)
                skipped += 1
                self._log(logging.WARNING, f"Pending sync skipped (expired): {entry.id}")
                continue

            if entry.has_exceeded_max_attempts(self.config.max_attempts):
                self.store.remove(entry.id)
                skipped += 1
                self._log(
                    logging.WARNING,
                    f"Pending sync skipped (max attempts exceeded): {entry.id} "
                    f"after {entry.attempts} attempts",
                )
                continue

            entry = entry.with_incremented_attempts()
            self.store.update(entry)

            try:
                success, error = self._replay(entry)
            except AuthenticationError:
                raise
            except Exception as e:
                failed += 1
                errors.append(str(e))
                self._log(logging.ERROR, f"Pending sync retry exception: {entry.id}: {e}")
                self.dispatcher.dispatch(PendingSyncFailed(entry=entry, error=e))
                continue

            if success:
                self.store.remove(entry.id)
                succeeded += 1
                self._log(logging.INFO, f"Pending sync retry succeeded: {entry.id}")
            else:
                failed += 1
                message = error or (
                    f"Failed to retry sync for {entry.model_type}:{entry.model_id}"
                )
                errors.append(message)
                self._log(
                    logging.WARNING,
                    f"Pending sync retry failed: {entry.id} (attempt {entry.attempts}): {message}",
                )
            self.dispatcher.dispatch(PendingSyncRetried(entry=entry, success=success))

        return PendingSyncRetryResult(
            total=len(entries),
            succeeded=succeeded,
            failed=failed,
            skipped=skipped,
            errors=tuple(errors),
        )

    def _replay(self, entry: PendingSyncEntry) -> tuple[bool, str | None]:
        model_type = self.registry.model_type_named(entry.model_type)
        model = self.models.find(model_type, entry.model_id) if model_type else None

        if model is None:
            # Deleted since capture: nothing left to do
            self._log(
                logging.INFO,
                f"Pending sync model {entry.model_type}:{entry.model_id} is gone, "
                f"marking {entry.id} as handled",
            )
            return True, None

        operation = entry.operation
        if operation is PendingSyncOperation.SYNC:
            result = self.engine.sync_as(entry.owner, model)
            return result.is_success, result.error
        if operation is PendingSyncOperation.RESYNC:
            result = self.engine.resync(model)
            return result.is_success, result.error
        if operation is PendingSyncOperation.UNSYNC:
            ok = self.engine.unsync(model)
            return ok, None if ok else "Failed to unsync"

        mapper = (
            self.registry.reference_mapper(entry.reference_mapper)
            if entry.reference_mapper
            else None
        )
        if mapper is None:
            return False, f"Reference mapper not found: {entry.reference_mapper}"

        if operation is PendingSyncOperation.SYNC_WITH_REFERENCE:
            ref_result = self.references.sync_with_reference(entry.owner, model, mapper)
            return ref_result.is_success, ref_result.error
        if operation is PendingSyncOperation.RESYNC_WITH_REFERENCE:
            ref_result = self.references.resync_with_reference(model, mapper)
            return ref_result.is_success, ref_result.error

        ok = self.references.unsync_with_reference(model, mapper)
        return ok, None if ok else "Failed to unsync with reference"

    def count_for_owner(self, owner: str) -> int:
        return self.store.count_for_owner(owner)

    def has_pending_syncs(self, owner: str) -> bool:
        return self.store.has_for_owner(owner)

    def for_owner(self, owner: str) -> list[PendingSyncEntry]:
        return self.store.for_owner(owner)

    def cleanup(self) -> int:
        """Remove expired entries; returns how many were removed."""
        return self.store.remove_expired()

    def remove(self, entry_id: str) -> None:
        self.store.remove(entry_id)

    def remove_for_owner(self, owner: str) -> int:
        return self.store.remove_for_owner(owner)

    def _log(self, level: int, message: str) -> None:
        if self.config.log:
            logger.log(level, f"{LOG_PREFIX} {message}")
