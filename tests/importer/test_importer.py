"""Tests for the resumable Importer."""

from __future__ import annotations

import threading

import pytest
from conftest import (
    LINK_COLLECTION,
    OWNER,
    POST_COLLECTION,
    DraftSkippingPostMapper,
    EventRecorder,
    FakeRepository,
    InMemoryModelStore,
    Post,
    make_records,
)

from recordsync.core.config import ImportConfig
from recordsync.core.events import (
    EventDispatcher,
    ImportCompleted,
    ImportFailed,
    ImportProgress,
    ImportStarted,
)
from recordsync.core.types import ImportStatus
from recordsync.importer.service import Importer
from recordsync.importer.state import ImportStateRepository
from recordsync.mapping.registry import MapperRegistry
from recordsync.remote.api import RemoteRecord, TransportError
from recordsync.storage.database import Database


@pytest.fixture
def states(database: Database) -> ImportStateRepository:
    return ImportStateRepository(database)


@pytest.fixture
def importer(
    registry: MapperRegistry,
    repository: FakeRepository,
    states: ImportStateRepository,
    dispatcher: EventDispatcher,
) -> Importer:
    return Importer(
        registry,
        repository,
        states,
        dispatcher=dispatcher,
        config=ImportConfig(page_size=100, page_delay_ms=0),
    )


def script_250(repository: FakeRepository) -> None:
    repository.add_pages(
        OWNER,
        POST_COLLECTION,
        make_records(100),
        make_records(100, start=100),
        make_records(50, start=200),
    )


class TestImportCollection:
    """Tests for importing a single collection."""

    def test_imports_all_pages(
        self,
        importer: Importer,
        repository: FakeRepository,
        store: InMemoryModelStore,
        states: ImportStateRepository,
    ) -> None:
        """250 records at page size 100 should take three fetches."""
        script_250(repository)

        result = importer.import_collection(OWNER, POST_COLLECTION)

        assert repository.count("list_records") == 3
        assert result.is_success
        assert result.records_synced == 250
        assert result.cursor is None
        assert len(store.all(Post)) == 250

        state = states.find(OWNER, POST_COLLECTION)
        assert state is not None
        assert state.status is ImportStatus.COMPLETED
        assert state.cursor is None
        assert state.completed_at is not None

    def test_emits_events(
        self, importer: Importer, repository: FakeRepository, recorder: EventRecorder
    ) -> None:
        """Should emit started, one progress per page and completed."""
        script_250(repository)
        seen = []

        importer.import_collection(OWNER, POST_COLLECTION, on_progress=seen.append)

        assert len(recorder.of_type(ImportStarted)) == 1
        progress = recorder.of_type(ImportProgress)
        assert [p.records_synced for p in progress] == [100, 200, 250]
        assert [p.cursor for p in progress] == ["c1", "c2", None]
        assert seen == progress
        completed = recorder.of_type(ImportCompleted)
        assert len(completed) == 1
        assert completed[0].result.records_synced == 250

    def test_completed_collection_is_not_refetched(
        self, importer: Importer, repository: FakeRepository
    ) -> None:
        """A second import of a completed collection should return the stored result."""
        script_250(repository)
        importer.import_collection(OWNER, POST_COLLECTION)

        again = importer.import_collection(OWNER, POST_COLLECTION)

        assert again.is_success
        assert again.records_synced == 250
        assert repository.count("list_records") == 3

    def test_empty_collection(self, importer: Importer, repository: FakeRepository) -> None:
        """A collection with no records should complete after one fetch."""
        result = importer.import_collection(OWNER, POST_COLLECTION)

        assert result.is_success
        assert result.records_synced == 0
        assert repository.count("list_records") == 1

    def test_no_mapper(self, importer: Importer, repository: FakeRepository) -> None:
        result = importer.import_collection(OWNER, "app.example.unknown")

        assert result.is_failed
        assert result.error == "No mapper registered for collection: app.example.unknown"
        assert repository.calls == []

    def test_unresolvable_endpoint(
        self,
        importer: Importer,
        repository: FakeRepository,
        states: ImportStateRepository,
        recorder: EventRecorder,
    ) -> None:
        """No endpoint should fail before any fetch and persist FAILED."""
        repository.endpoint = None

        result = importer.import_collection(OWNER, POST_COLLECTION)

        assert result.is_failed
        assert result.error == f"Could not resolve endpoint for owner: {OWNER}"
        assert repository.count("list_records") == 0
        state = states.find(OWNER, POST_COLLECTION)
        assert state is not None
        assert state.status is ImportStatus.FAILED
        assert len(recorder.of_type(ImportFailed)) == 1

    def test_skipped_and_failed_records(
        self,
        store: InMemoryModelStore,
        repository: FakeRepository,
        states: ImportStateRepository,
    ) -> None:
        """Declined records count skipped; raising mappers count failed."""
        registry = MapperRegistry()
        registry.register(DraftSkippingPostMapper(store))
        importer = Importer(registry, repository, states, config=ImportConfig(page_delay_ms=0))

        records = make_records(2) + [
            RemoteRecord(uri=f"at://{OWNER}/{POST_COLLECTION}/d", cid="c", value={"draft": True}),
            RemoteRecord(uri=f"at://{OWNER}/{POST_COLLECTION}/x", cid="c", value=None),  # type: ignore[arg-type]
        ]
        repository.add_pages(OWNER, POST_COLLECTION, records)

        result = importer.import_collection(OWNER, POST_COLLECTION)

        assert result.is_success
        assert (result.records_synced, result.records_skipped, result.records_failed) == (2, 1, 1)

    def test_page_delay_between_pages(
        self,
        registry: MapperRegistry,
        repository: FakeRepository,
        states: ImportStateRepository,
    ) -> None:
        """Should sleep between pages but not after the last one."""
        delays: list[float] = []
        importer = Importer(
            registry,
            repository,
            states,
            config=ImportConfig(page_size=100, page_delay_ms=250),
            sleep=delays.append,
        )
        script_250(repository)

        importer.import_collection(OWNER, POST_COLLECTION)

        assert delays == [0.25, 0.25]


class TestResumability:
    """Tests for failure, resume and cancellation."""

    def test_failure_keeps_cursor_then_resumes(
        self,
        importer: Importer,
        repository: FakeRepository,
        states: ImportStateRepository,
    ) -> None:
        """A failed import should restart from its stored cursor."""
        script_250(repository)

        def fail_after_first_page(progress: ImportProgress) -> None:
            repository.fail["list_records"] = TransportError("connection reset")

        failed = importer.import_collection(
            OWNER, POST_COLLECTION, on_progress=fail_after_first_page
        )

        assert failed.is_failed
        assert failed.records_synced == 100
        assert failed.cursor == "c1"
        assert "connection reset" in (failed.error or "")

        state = states.find(OWNER, POST_COLLECTION)
        assert state is not None
        assert state.status is ImportStatus.FAILED
        assert state.can_resume

        del repository.fail["list_records"]
        resumed = importer.resume(state)

        assert resumed.is_success
        assert resumed.records_synced == 250
        cursors = [call[3] for call in repository.calls if call[0] == "list_records"]
        assert cursors == ["", "c1", "c1", "c2"]

    def test_endpoint_failure_keeps_progress(
        self,
        importer: Importer,
        repository: FakeRepository,
        states: ImportStateRepository,
    ) -> None:
        """A retry that cannot resolve the endpoint should report the stored progress."""
        script_250(repository)

        def fail_after_first_page(progress: ImportProgress) -> None:
            repository.fail["list_records"] = TransportError("connection reset")

        importer.import_collection(OWNER, POST_COLLECTION, on_progress=fail_after_first_page)
        repository.endpoint = None

        result = importer.import_collection(OWNER, POST_COLLECTION)

        assert result.is_failed
        assert result.error == f"Could not resolve endpoint for owner: {OWNER}"
        assert result.records_synced == 100
        assert result.cursor == "c1"
        state = states.find(OWNER, POST_COLLECTION)
        assert state is not None
        assert state.can_resume
        assert state.cursor == "c1"

    def test_resume_all(
        self,
        importer: Importer,
        repository: FakeRepository,
        states: ImportStateRepository,
    ) -> None:
        """resume_all should pick up failed imports."""
        script_250(repository)
        repository.fail["list_records"] = TransportError("down")
        importer.import_collection(OWNER, POST_COLLECTION)
        del repository.fail["list_records"]

        results = importer.resume_all()

        assert len(results) == 1
        assert results[0].is_success
        assert states.resumable() == []

    def test_resume_completed_is_noop(
        self, importer: Importer, repository: FakeRepository, states: ImportStateRepository
    ) -> None:
        importer.import_collection(OWNER, POST_COLLECTION)
        state = states.find(OWNER, POST_COLLECTION)
        assert state is not None

        assert importer.resume(state).is_success
        assert repository.count("list_records") == 1

    def test_cancel_returns_partial(
        self,
        importer: Importer,
        repository: FakeRepository,
        states: ImportStateRepository,
    ) -> None:
        """Cancelling between pages should return a partial result at the saved cursor."""
        script_250(repository)
        cancel = threading.Event()

        result = importer.import_collection(
            OWNER, POST_COLLECTION, on_progress=lambda p: cancel.set(), cancel=cancel
        )

        assert result.is_partial
        assert result.records_synced == 100
        assert result.cursor == "c1"
        assert repository.count("list_records") == 1
        state = states.find(OWNER, POST_COLLECTION)
        assert state is not None
        assert state.status is ImportStatus.IN_PROGRESS
        assert state.can_resume

        finished = importer.import_collection(OWNER, POST_COLLECTION)
        assert finished.records_synced == 250


class TestImportOwner:
    """Tests for whole-owner imports and status helpers."""

    def test_imports_registered_collections(
        self, importer: Importer, repository: FakeRepository
    ) -> None:
        """Should aggregate across every registered collection."""
        script_250(repository)
        repository.add_pages(
            OWNER,
            LINK_COLLECTION,
            [RemoteRecord(uri=f"at://{OWNER}/{LINK_COLLECTION}/l1", cid="c", value={"title": "t"})],
        )

        result = importer.import_owner(OWNER)

        assert result.collection == "*"
        assert result.is_success
        assert result.records_synced == 251
        assert importer.is_imported(OWNER, POST_COLLECTION)
        assert importer.is_imported(OWNER, LINK_COLLECTION)

    def test_ignores_unknown_collections(
        self, importer: Importer, repository: FakeRepository
    ) -> None:
        result = importer.import_owner(OWNER, ["app.example.unknown", POST_COLLECTION])

        assert result.is_success
        assert {call[2] for call in repository.calls} == {POST_COLLECTION}

    def test_aggregate_reports_errors(
        self, importer: Importer, repository: FakeRepository
    ) -> None:
        repository.fail[f"list_records:{LINK_COLLECTION}"] = TransportError("down")

        result = importer.import_owner(OWNER, [POST_COLLECTION, LINK_COLLECTION])

        assert result.is_failed
        assert result.error == f"{LINK_COLLECTION}: down"

    def test_reset(self, importer: Importer, repository: FakeRepository) -> None:
        """Reset should allow a completed collection to import again."""
        importer.import_collection(OWNER, POST_COLLECTION)
        importer.reset(OWNER, POST_COLLECTION)

        assert importer.get_status(OWNER, POST_COLLECTION) is None
        importer.import_collection(OWNER, POST_COLLECTION)
        assert repository.count("list_records") == 2

    def test_reset_owner(self, importer: Importer) -> None:
        importer.import_owner(OWNER)
        assert len(importer.get_status_for_owner(OWNER)) == 3

        importer.reset_owner(OWNER)

        assert importer.get_status_for_owner(OWNER) == []
