"""Tests for retrying pending syncs after re-authentication."""

from __future__ import annotations

from conftest import OWNER, FakeRepository, InMemoryModelStore, Post

from recordsync.core.config import PendingSyncConfig
from recordsync.core.types import PendingSyncOperation
from recordsync.mapping.registry import MapperRegistry
from recordsync.pending.listener import RetryOnAuthentication
from recordsync.pending.manager import PendingSyncManager
from recordsync.pending.store import MemoryPendingSyncStore
from recordsync.sync.engine import SyncEngine
from recordsync.sync.reference import ReferenceSyncEngine


def make_manager(
    registry: MapperRegistry,
    repository: FakeRepository,
    store: InMemoryModelStore,
    config: PendingSyncConfig,
) -> PendingSyncManager:
    engine = SyncEngine(registry, repository, store)
    return PendingSyncManager(
        MemoryPendingSyncStore(), engine, ReferenceSyncEngine(engine), registry, store, config=config
    )


def capture_post(manager: PendingSyncManager, store: InMemoryModelStore) -> Post:
    post = Post(owner=OWNER, text="x")
    store.save(post)
    manager.capture(OWNER, post, PendingSyncOperation.SYNC)
    return post


class TestRetryOnAuthentication:
    """Tests for RetryOnAuthentication."""

    def test_retries_pending_entries(
        self, registry: MapperRegistry, repository: FakeRepository, store: InMemoryModelStore
    ) -> None:
        manager = make_manager(registry, repository, store, PendingSyncConfig(enabled=True))
        post = capture_post(manager, store)

        result = RetryOnAuthentication(manager)(OWNER)

        assert result is not None
        assert result.succeeded == 1
        assert post.remote_uri is not None

    def test_nothing_pending(
        self, registry: MapperRegistry, repository: FakeRepository, store: InMemoryModelStore
    ) -> None:
        manager = make_manager(registry, repository, store, PendingSyncConfig(enabled=True))

        assert RetryOnAuthentication(manager).handle(OWNER) is None

    def test_disabled_manager(
        self, registry: MapperRegistry, repository: FakeRepository, store: InMemoryModelStore
    ) -> None:
        manager = make_manager(registry, repository, store, PendingSyncConfig(enabled=False))
        capture_post(manager, store)

        assert RetryOnAuthentication(manager).handle(OWNER) is None
        assert repository.calls == []

    def test_auto_retry_off(
        self, registry: MapperRegistry, repository: FakeRepository, store: InMemoryModelStore
    ) -> None:
        manager = make_manager(
            registry, repository, store, PendingSyncConfig(enabled=True, auto_retry=False)
        )
        capture_post(manager, store)

        assert RetryOnAuthentication(manager).handle(OWNER) is None
        assert manager.has_pending_syncs(OWNER)
