"""Tests for SyncEngine."""

from __future__ import annotations

import pytest
from conftest import (
    OWNER,
    POST_COLLECTION,
    EventRecorder,
    FakeRepository,
    InMemoryModelStore,
    Post,
)

from recordsync.core.events import EventDispatcher, RecordSynced, RecordUnsynced
from recordsync.mapping.registry import MapperRegistry
from recordsync.remote.api import AuthenticationError, TransportError
from recordsync.sync.engine import SyncEngine


class Orphan:
    """A model type with no mapper."""

    remote_uri = None


@pytest.fixture
def engine(
    registry: MapperRegistry,
    repository: FakeRepository,
    store: InMemoryModelStore,
    dispatcher: EventDispatcher,
) -> SyncEngine:
    return SyncEngine(registry, repository, store, dispatcher=dispatcher)


class TestSync:
    """Tests for creating and replacing remote records."""

    def test_first_sync_creates(
        self,
        engine: SyncEngine,
        repository: FakeRepository,
        store: InMemoryModelStore,
        recorder: EventRecorder,
    ) -> None:
        """First sync should create a record and write back uri/cid."""
        post = Post(owner=OWNER, text="hello")

        result = engine.sync(post)

        assert result.is_success
        assert result.uri == f"at://{OWNER}/{POST_COLLECTION}/rkey1"
        assert post.remote_uri == result.uri
        assert post.remote_cid == result.cid
        assert post.remote_synced_at is not None
        assert post in store.saved
        assert repository.records[result.uri][0]["text"] == "hello"
        assert [e.uri for e in recorder.of_type(RecordSynced)] == [result.uri]

    def test_second_sync_updates_in_place(
        self, engine: SyncEngine, repository: FakeRepository
    ) -> None:
        """Syncing an already-synced model should replace, not create."""
        post = Post(owner=OWNER, text="v1")
        first = engine.sync(post)
        post.text = "v2"

        second = engine.sync(post)

        assert second.is_success
        assert second.uri == first.uri
        assert second.cid != first.cid
        assert repository.count("create_record") == 1
        assert repository.count("put_record") == 1
        assert repository.records[first.uri or ""][0]["text"] == "v2"

    def test_owner_from_uri(self, engine: SyncEngine) -> None:
        """A model without owner_id() falls back to its URI's owner."""
        post = Post(remote_uri=f"at://{OWNER}/{POST_COLLECTION}/k")
        assert engine.owner_of(post) == OWNER

    def test_no_owner(self, engine: SyncEngine, repository: FakeRepository) -> None:
        result = engine.sync(Post(text="x"))

        assert result.is_failed
        assert result.error == "No owner associated with model. Use sync_as() to specify an owner."
        assert repository.calls == []

    def test_sync_as_explicit_owner(self, engine: SyncEngine) -> None:
        result = engine.sync_as("did:plc:bob", Post(text="x"))
        assert result.uri is not None
        assert result.uri.startswith("at://did:plc:bob/")

    def test_no_mapper(self, engine: SyncEngine) -> None:
        result = engine.sync_as(OWNER, Orphan())

        assert result.is_failed
        assert result.error is not None
        assert result.error.startswith("No mapper registered for model: ")
        assert result.error.endswith("Orphan")

    def test_transport_error_becomes_failed_result(
        self, engine: SyncEngine, repository: FakeRepository
    ) -> None:
        """Non-auth errors should not raise and should leave the model unsynced."""
        repository.fail["create_record"] = TransportError("timeout")
        post = Post(owner=OWNER, text="x")

        result = engine.sync(post)

        assert result.is_failed
        assert result.error == "timeout"
        assert post.remote_uri is None

    def test_authentication_error_propagates(
        self, engine: SyncEngine, repository: FakeRepository
    ) -> None:
        repository.fail["create_record"] = AuthenticationError("expired", 401)

        with pytest.raises(AuthenticationError):
            engine.sync(Post(owner=OWNER, text="x"))


class TestResync:
    """Tests for resync."""

    def test_resync_unsynced(self, engine: SyncEngine) -> None:
        result = engine.resync(Post(owner=OWNER))

        assert result.is_failed
        assert result.error == "Model has not been synced yet. Use sync() first."

    def test_resync_invalid_uri(self, engine: SyncEngine, repository: FakeRepository) -> None:
        result = engine.resync(Post(owner=OWNER, remote_uri="not-a-uri"))

        assert result.is_failed
        assert result.error == "Invalid remote URI: not-a-uri"
        assert repository.calls == []

    def test_resync_targets_uri_parts(
        self, engine: SyncEngine, repository: FakeRepository
    ) -> None:
        """Resync should put to the owner/collection/rkey of the stored URI."""
        post = Post(remote_uri=f"at://did:plc:bob/{POST_COLLECTION}/abc", text="x")

        result = engine.resync(post)

        assert result.is_success
        assert repository.calls == [("put_record", "did:plc:bob", POST_COLLECTION, "abc")]

    def test_resync_auth_error_propagates(
        self, engine: SyncEngine, repository: FakeRepository
    ) -> None:
        repository.fail["put_record"] = AuthenticationError("expired", 401)
        post = Post(remote_uri=f"at://{OWNER}/{POST_COLLECTION}/abc")

        with pytest.raises(AuthenticationError):
            engine.resync(post)


class TestUnsync:
    """Tests for unsync."""

    def test_unsync_clears_metadata(
        self,
        engine: SyncEngine,
        repository: FakeRepository,
        recorder: EventRecorder,
    ) -> None:
        post = Post(owner=OWNER, text="x")
        uri = engine.sync(post).uri

        assert engine.unsync(post) is True

        assert post.remote_uri is None
        assert post.remote_cid is None
        assert post.remote_synced_at is None
        assert uri not in repository.records
        assert [e.uri for e in recorder.of_type(RecordUnsynced)] == [uri]

    def test_unsync_never_synced(self, engine: SyncEngine, repository: FakeRepository) -> None:
        assert engine.unsync(Post(owner=OWNER)) is False
        assert repository.calls == []

    def test_unsync_failure_keeps_metadata(
        self, engine: SyncEngine, repository: FakeRepository
    ) -> None:
        post = Post(owner=OWNER, text="x")
        engine.sync(post)
        repository.fail["delete_record"] = TransportError("down")

        assert engine.unsync(post) is False
        assert post.remote_uri is not None

    def test_unsync_auth_error_propagates(
        self, engine: SyncEngine, repository: FakeRepository
    ) -> None:
        post = Post(owner=OWNER, text="x")
        engine.sync(post)
        repository.fail["delete_record"] = AuthenticationError("expired", 401)

        with pytest.raises(AuthenticationError):
            engine.unsync(post)
