"""Publish local models as remote records.

This module provides:
- SyncEngine: create, replace and delete the remote record of a model and
  keep its URI/version metadata up to date

Transport and API errors become failed results. AuthenticationError always
propagates so the caller can re-authenticate (and capture a pending sync).
"""

from __future__ import annotations

import logging
from typing import Any

from recordsync.core.config import ColumnConfig
from recordsync.core.events import EventDispatcher, RecordSynced, RecordUnsynced
from recordsync.core.uri import RemoteURI
from recordsync.mapping.mapper import RecordMapper
from recordsync.mapping.model import ModelStore, OwnerResolvable, RemoteMetadata, type_name
from recordsync.mapping.registry import MapperRegistry
from recordsync.remote.api import AuthenticationError, RemoteRepository
from recordsync.sync.results import SyncResult

logger = logging.getLogger(__name__)


class SyncEngine:
    """Writes local models to the remote repository."""

    def __init__(
        self,
        registry: MapperRegistry,
        repository: RemoteRepository,
        store: ModelStore,
        dispatcher: EventDispatcher | None = None,
        columns: ColumnConfig | None = None,
    ) -> None:
        self.registry = registry
        self.repository = repository
        self.store = store
        self.dispatcher = dispatcher or EventDispatcher()
        self.meta = RemoteMetadata(columns)

    def owner_of(self, model: Any) -> str | None:
        """Owner a model syncs as: its own ``owner_id()``, else its URI's owner."""
        if isinstance(model, OwnerResolvable):
            owner = model.owner_id()
            if owner:
                return owner

        parsed = RemoteURI.try_parse(self.meta.uri(model))
        return parsed.owner if parsed else None

    def sync(self, model: Any) -> SyncResult:
        owner = self.owner_of(model)
        if not owner:
            return SyncResult.failed(
                "No owner associated with model. Use sync_as() to specify an owner."
            )
        return self.sync_as(owner, model)

    def sync_as(self, owner: str, model: Any) -> SyncResult:
        mapper = self.registry.for_model(type(model))
        if mapper is None:
            return SyncResult.failed(f"No mapper registered for model: {type_name(type(model))}")
        return self.sync_as_with_mapper(owner, model, mapper)

    def sync_as_with_mapper(self, owner: str, model: Any, mapper: RecordMapper) -> SyncResult:
        """Create the remote record, or replace it if the model is already synced."""
        if self.meta.uri(model):
            return self.resync_with_mapper(model, mapper)

        try:
            written = self.repository.create_record(
                owner, mapper.collection, mapper.to_payload(model), rkey=mapper.rkey_for(model)
            )
        except AuthenticationError:
            raise
        except Exception as e:
            logger.warning(f"Failed to create {mapper.collection} record for {owner}: {e}")
            return SyncResult.failed(str(e))

        self._write_back(model, written.uri, written.cid)
        return SyncResult.ok(written.uri, written.cid)

    def resync(self, model: Any) -> SyncResult:
        mapper = self.registry.for_model(type(model))
        if mapper is None:
            return SyncResult.failed(f"No mapper registered for model: {type_name(type(model))}")
        return self.resync_with_mapper(model, mapper)

    def resync_with_mapper(self, model: Any, mapper: RecordMapper) -> SyncResult:
        """Replace the remote record with the model's current payload."""
        uri = self.meta.uri(model)
        if not uri:
            return SyncResult.failed("Model has not been synced yet. Use sync() first.")

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
            logger.warning(f"Failed to update {uri}: {e}")
            return SyncResult.failed(str(e))

        self._write_back(model, written.uri, written.cid)
        return SyncResult.ok(written.uri, written.cid)

    def unsync(self, model: Any) -> bool:
        """Delete the remote record and clear the model's metadata."""
        uri = self.meta.uri(model)
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
            logger.warning(f"Failed to delete {uri}: {e}")
            return False

        self.meta.clear(model)
        self.store.save(model)
        self.dispatcher.dispatch(RecordUnsynced(model=model, uri=uri))
        logger.debug(f"Unsynced {uri}")
        return True

    def _write_back(self, model: Any, uri: str, cid: str) -> None:
        self.meta.mark_synced(model, uri, cid)
        self.store.save(model)
        self.dispatcher.dispatch(RecordSynced(model=model, uri=uri, cid=cid))
        logger.debug(f"Synced {uri} ({cid})")
