"""Two-phase sync of a main record and a reference record pointing at it.

The main record is written first. If writing the reference record then
fails, a main record created by this call is deleted again (rollback)
unless rollback is disabled, in which case the main record is kept and the
result reports a main-only success. A main record that existed before the
call is never rolled back.
"""

from __future__ import annotations

import logging
from typing import Any

from recordsync.core.config import ReferenceConfig
from recordsync.core.events import EventDispatcher, ReferenceSynced
from recordsync.core.uri import RemoteURI, StrongRef
from recordsync.mapping.mapper import ReferenceMapper
from recordsync.mapping.model import ModelStore
from recordsync.remote.api import AuthenticationError, RemoteRepository
from recordsync.sync.engine import SyncEngine
from recordsync.sync.results import ReferenceSyncResult, SyncResult

logger = logging.getLogger(__name__)


class ReferenceSyncEngine:
    """Writes main + reference record pairs."""

    def __init__(
        self,
        engine: SyncEngine,
        repository: RemoteRepository | None = None,
        dispatcher: EventDispatcher | None = None,
        config: ReferenceConfig | None = None,
    ) -> None:
        self.engine = engine
        self.repository = repository or engine.repository
        self.dispatcher = dispatcher or engine.dispatcher
        self.config = config or ReferenceConfig()

    @property
    def store(self) -> ModelStore:
        return self.engine.store

    def sync_with_reference(
        self,
        owner: str,
        model: Any,
        reference_mapper: ReferenceMapper,
        rollback_on_failure: bool | None = None,
    ) -> ReferenceSyncResult:
        """Sync the main record, then the reference record."""
        if rollback_on_failure is None:
            rollback_on_failure = self.config.rollback_on_failure

        main_mapper = reference_mapper.main_mapper()
        if main_mapper is None:
            return ReferenceSyncResult.failed(
                f"No mapper registered for main collection: {reference_mapper.main_collection}"
            )

        had_main = bool(self.engine.meta.uri(model))
        main = self.engine.sync_as_with_mapper(owner, model, main_mapper)
        if main.is_failed:
            return ReferenceSyncResult.failed(main.error or "Main record failed")

        reference = self.sync_reference_only(owner, model, reference_mapper)

        if reference.is_failed and rollback_on_failure:
            if had_main:
                return ReferenceSyncResult.failed(
                    f"Reference record failed: {reference.error}. Main record kept."
                )
            logger.warning(f"Reference record failed for {main.uri}, rolling back main record")
            if not self.engine.unsync(model):
                logger.error(f"Rollback of main record {main.uri} failed")
                return ReferenceSyncResult.failed(
                    f"Reference record failed: {reference.error}. Rollback of main record failed."
                )
            return ReferenceSyncResult.failed(
                f"Reference record failed: {reference.error}. Main record rolled back."
            )

        if reference.is_failed:
            return ReferenceSyncResult.ok(main.uri, main.cid)

        return ReferenceSyncResult.ok(main.uri, main.cid, reference.uri, reference.cid)

    def sync_reference_only(
        self, owner: str, model: Any, mapper: ReferenceMapper
    ) -> SyncResult:
        """Create (or replace) the reference record for an already-synced model."""
        main_uri = self.engine.meta.uri(model)
        if not main_uri:
            return SyncResult.failed(
                "Model must have main record synced before creating reference record"
            )

        if self._reference_uri(model, mapper):
            return self.resync_reference(model, mapper)

        try:
            written = self.repository.create_record(
                owner, mapper.collection, mapper.to_payload(model)
            )
        except AuthenticationError:
            raise
        except Exception as e:
            logger.warning(f"Failed to create reference {mapper.collection} for {main_uri}: {e}")
            return SyncResult.failed(str(e))

        self._write_back(model, mapper, written.uri, written.cid)
        self.dispatcher.dispatch(
            ReferenceSynced(
                model=model,
                reference_uri=written.uri,
                reference_cid=written.cid,
                main_uri=main_uri,
            )
        )
        return SyncResult.ok(written.uri, written.cid)

    def sync_reference_to_external(
        self, owner: str, model: Any, mapper: ReferenceMapper, main_ref: StrongRef
    ) -> SyncResult:
        """Point the model at a main record owned elsewhere, then sync the reference."""
        self.engine.meta.set_main_ref(model, main_ref.uri, main_ref.cid or None)
        self.store.save(model)
        return self.sync_reference_only(owner, model, mapper)

    def resync_reference(self, model: Any, mapper: ReferenceMapper) -> SyncResult:
        uri = self._reference_uri(model, mapper)
        if not uri:
            return SyncResult.failed("Reference record has not been synced yet.")

        parsed = RemoteURI.try_parse(uri)
        if parsed is None:
            return SyncResult.failed(f"Invalid remote URI: {uri}")

        try:
            written = self.repository.put_record(
                parsed.owner, parsed.collection, parsed.rkey, mapper.to_payload(model)
            )
        except AuthenticationError:
            raise
        except Exception as e:
            logger.warning(f"Failed to update reference {uri}: {e}")
            return SyncResult.failed(str(e))

        self._write_back(model, mapper, written.uri, written.cid)
        self.dispatcher.dispatch(
            ReferenceSynced(
                model=model,
                reference_uri=written.uri,
                reference_cid=written.cid,
                main_uri=self.engine.meta.uri(model),
            )
        )
        return SyncResult.ok(written.uri, written.cid)

    def resync_with_reference(self, model: Any, mapper: ReferenceMapper) -> ReferenceSyncResult:
        """Replace the main record, then the reference record."""
        main_mapper = mapper.main_mapper()
        if main_mapper is None:
            return ReferenceSyncResult.failed(
                f"No mapper registered for main collection: {mapper.main_collection}"
            )

        main = self.engine.resync_with_mapper(model, main_mapper)
        if main.is_failed:
            return ReferenceSyncResult.failed(main.error or "Main record failed")

        reference = self.resync_reference(model, mapper)
        if reference.is_failed:
            return ReferenceSyncResult.failed(f"Reference record failed: {reference.error}")

        return ReferenceSyncResult.ok(main.uri, main.cid, reference.uri, reference.cid)

    def unsync_reference(self, model: Any, mapper: ReferenceMapper) -> bool:
        uri = self._reference_uri(model, mapper)
        if not uri:
            return False

        parsed = RemoteURI.try_parse(uri)
        if parsed is None:
            return False

        try:
            self.repository.delete_record(parsed.owner, parsed.collection, parsed.rkey)
        except AuthenticationError:
            raise
        except Exception as e:
            logger.warning(f"Failed to delete reference {uri}: {e}")
            return False

        setattr(model, mapper.reference_uri_column, None)
        setattr(model, mapper.reference_cid_column, None)
        self.store.save(model)
        return True

    def unsync_with_reference(self, model: Any, mapper: ReferenceMapper) -> bool:
        """Delete the reference record, then the main record."""
        self.unsync_reference(model, mapper)
        return self.engine.unsync(model)

    def _reference_uri(self, model: Any, mapper: ReferenceMapper) -> str | None:
        return getattr(model, mapper.reference_uri_column, None) or None

    def _write_back(self, model: Any, mapper: ReferenceMapper, uri: str, cid: str) -> None:
        setattr(model, mapper.reference_uri_column, uri)
        setattr(model, mapper.reference_cid_column, cid)
        self.store.save(model)
