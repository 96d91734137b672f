"""Resumable import of remote records into the local store.

This module provides:
- Importer: pages through an owner's collections and upserts every record
  through the collection's mapper, persisting the cursor after each page
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Iterable

from recordsync.core.config import ImportConfig
from recordsync.core.events import (
    EventDispatcher,
    ImportCompleted,
    ImportFailed,
    ImportProgress,
    ImportStarted,
)
from recordsync.importer.result import ImportResult
from recordsync.importer.state import ImportState, ImportStateRepository
from recordsync.mapping.mapper import RecordMapper, RecordMeta
from recordsync.mapping.registry import MapperRegistry
from recordsync.remote.api import RecordPage, RemoteRepository

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ImportProgress], None]


class Importer:
    """Imports remote collections page by page.

    Pages for one (owner, collection) are processed in cursor order. Running
    two imports of the same pair at the same time is not supported.
    """

    def __init__(
        self,
        registry: MapperRegistry,
        repository: RemoteRepository,
        states: ImportStateRepository,
        dispatcher: EventDispatcher | None = None,
        config: ImportConfig | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize the importer.

        Args:
            registry: Mappers keyed by collection.
            repository: Remote repository to read from.
            states: Import progress persistence.
            dispatcher: Receives import events.
            config: Page size and inter-page delay.
            sleep: Delay function used between pages.
        """
        self.registry = registry
        self.repository = repository
        self.states = states
        self.dispatcher = dispatcher or EventDispatcher()
        self.config = config or ImportConfig()
        self._sleep = sleep

    def import_owner(
        self,
        owner: str,
        collections: Iterable[str] | None = None,
        on_progress: ProgressCallback | None = None,
        cancel: threading.Event | None = None,
    ) -> ImportResult:
        """Import every requested collection (default: all registered).

        Collections without a registered mapper are ignored.
        """
        targets = list(collections) if collections is not None else self.registry.collections()
        results = [
            self.import_collection(owner, collection, on_progress, cancel)
            for collection in targets
            if self.registry.has_collection(collection)
        ]
        return ImportResult.aggregate(owner, results)

    def import_collection(
        self,
        owner: str,
        collection: str,
        on_progress: ProgressCallback | None = None,
        cancel: threading.Event | None = None,
    ) -> ImportResult:
        """Import one collection, resuming from the stored cursor if any."""
        mapper = self.registry.for_collection(collection)
        if mapper is None:
            return ImportResult.failed(
                owner, collection, f"No mapper registered for collection: {collection}"
            )

        state = self.states.find_or_create(owner, collection)
        if state.is_completed:
            return state.to_result()

        try:
            endpoint = self.repository.resolve_endpoint(owner)
        except Exception as e:
            logger.warning(f"Endpoint resolution failed for {owner}: {e}")
            endpoint = None

        if not endpoint:
            error = f"Could not resolve endpoint for owner: {owner}"
            return self._fail(state, error)

        state.mark_started()
        self.states.save(state)
        self.dispatcher.dispatch(ImportStarted(owner=owner, collection=collection))
        logger.info(f"Importing {collection} for {owner} (cursor={state.cursor})")

        try:
            return self._run(state, mapper, on_progress, cancel)
        except Exception as e:
            logger.error(f"Import of {collection} for {owner} failed: {e}")
            return self._fail(state, str(e))

    def _run(
        self,
        state: ImportState,
        mapper: RecordMapper,
        on_progress: ProgressCallback | None,
        cancel: threading.Event | None,
    ) -> ImportResult:
        owner, collection = state.owner, state.collection

        while True:
            if cancel is not None and cancel.is_set():
                logger.info(f"Import of {collection} for {owner} cancelled at {state.cursor}")
                return ImportResult.partial(
                    owner,
                    collection,
                    state.records_synced,
                    state.cursor,
                    skipped=state.records_skipped,
                    failed=state.records_failed,
                )

            page = self.repository.list_records(
                owner, collection, state.cursor, self.config.page_size
            )
            synced, skipped, failed = self._import_page(page, mapper, collection)

            state.update_progress(synced, skipped, failed, page.cursor)
            self.states.save(state)

            progress = ImportProgress(
                owner=owner,
                collection=collection,
                records_synced=state.records_synced,
                cursor=page.cursor,
            )
            if on_progress is not None:
                on_progress(progress)
            self.dispatcher.dispatch(progress)

            if not page.cursor:
                break

            if self.config.page_delay > 0:
                self._sleep(self.config.page_delay)

        state.mark_completed()
        self.states.save(state)
        result = state.to_result()
        self.dispatcher.dispatch(ImportCompleted(result=result))
        logger.info(
            f"Imported {collection} for {owner}: {result.records_synced} synced, "
            f"{result.records_skipped} skipped, {result.records_failed} failed"
        )
        return result

    def _import_page(
        self, page: RecordPage, mapper: RecordMapper, collection: str
    ) -> tuple[int, int, int]:
        synced = skipped = failed = 0
        for record in page.records:
            try:
                model = mapper.upsert(record.value, RecordMeta.for_uri(record.uri, record.cid))
            except Exception as e:
                logger.warning(f"Failed to import {record.uri} into {collection}: {e}")
                failed += 1
                continue

            if model is None:
                skipped += 1
            else:
                synced += 1
        return synced, skipped, failed

    def _fail(self, state: ImportState, error: str) -> ImportResult:
        state.mark_failed(error)
        self.states.save(state)
        self.dispatcher.dispatch(
            ImportFailed(owner=state.owner, collection=state.collection, error=error)
        )
        return ImportResult.failed(
            state.owner,
            state.collection,
            error,
            synced=state.records_synced,
            skipped=state.records_skipped,
            failed=state.records_failed,
            cursor=state.cursor,
        )

    def resume(
        self,
        state: ImportState,
        on_progress: ProgressCallback | None = None,
        cancel: threading.Event | None = None,
    ) -> ImportResult:
        """Resume an interrupted or failed import from its cursor."""
        if not state.can_resume:
            return state.to_result()

        state.mark_pending()
        self.states.save(state)
        return self.import_collection(state.owner, state.collection, on_progress, cancel)

    def resume_all(
        self,
        on_progress: ProgressCallback | None = None,
        cancel: threading.Event | None = None,
    ) -> list[ImportResult]:
        return [self.resume(state, on_progress, cancel) for state in self.states.resumable()]

    def get_status(self, owner: str, collection: str) -> ImportState | None:
        return self.states.find(owner, collection)

    def get_status_for_owner(self, owner: str) -> list[ImportState]:
        return self.states.for_owner(owner)

    def is_imported(self, owner: str, collection: str) -> bool:
        state = self.states.find(owner, collection)
        return state is not None and state.is_completed

    def reset(self, owner: str, collection: str) -> None:
        """Forget import progress so the collection is imported again."""
        self.states.delete(owner, collection)

    def reset_owner(self, owner: str) -> None:
        self.states.delete_for_owner(owner)
