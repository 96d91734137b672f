"""Apply remote commits to local models.

This module provides:
- CommitEvent: one create/update/delete observed on a remote repository
- CommitHandler: filters commits and applies them through the collection's
  mapper, running conflict detection before overwriting local changes
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from recordsync.core.config import ConflictConfig, SyncFilterConfig
from recordsync.core.types import CommitOperation
from recordsync.core.uri import RemoteURI
from recordsync.mapping.mapper import RecordMapper, RecordMeta
from recordsync.mapping.registry import MapperRegistry
from recordsync.sync.conflict import ConflictDetector, ConflictResolver

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommitEvent:
    """A record change observed on a remote repository."""

    owner: str
    collection: str
    rkey: str
    operation: CommitOperation
    record: dict[str, Any] | None = None
    cid: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def uri(self) -> str:
        return str(RemoteURI.build(self.owner, self.collection, self.rkey))

    def meta(self) -> RecordMeta:
        return RecordMeta(uri=self.uri, cid=self.cid, owner=self.owner, rkey=self.rkey)


CommitFilter = Callable[[CommitEvent], bool]


class CommitHandler:
    """Consumes remote commits for registered collections."""

    def __init__(
        self,
        registry: MapperRegistry,
        detector: ConflictDetector,
        resolver: ConflictResolver,
        filters: SyncFilterConfig | None = None,
        conflicts: ConflictConfig | None = None,
        commit_filter: CommitFilter | None = None,
    ) -> None:
        """Initialize the handler.

        Args:
            registry: Mappers keyed by collection.
            detector: Decides whether an update conflicts with local changes.
            resolver: Settles detected conflicts.
            filters: Allowed owners and operations (None allows all).
            conflicts: Conflict strategy.
            commit_filter: Extra predicate; commits it rejects are ignored.
        """
        self.registry = registry
        self.detector = detector
        self.resolver = resolver
        self.filters = filters or SyncFilterConfig()
        self.conflicts = conflicts or ConflictConfig()
        self.commit_filter = commit_filter

    def collections(self) -> list[str]:
        """Collections this handler wants to receive."""
        return self.registry.collections()

    def accepts(self, event: CommitEvent) -> bool:
        owners = self.filters.owners
        if owners is not None and event.owner not in owners:
            logger.debug(f"Skipping {event.uri}: owner not allowed")
            return False

        operations = self.filters.operations
        if operations is not None and event.operation not in operations:
            logger.debug(f"Skipping {event.uri}: operation {event.operation.value} not allowed")
            return False

        if self.commit_filter is not None and not self.commit_filter(event):
            logger.debug(f"Skipping {event.uri}: rejected by filter")
            return False

        return True

    def handle(self, event: CommitEvent) -> None:
        """Apply one commit. Errors are logged and re-raised."""
        if not self.accepts(event):
            return

        mapper = self.registry.for_collection(event.collection)
        if mapper is None:
            logger.debug(f"Skipping {event.uri}: no mapper for collection")
            return

        try:
            if event.operation is CommitOperation.DELETE:
                self._handle_delete(event, mapper)
            else:
                self._handle_upsert(event, mapper)
        except Exception as e:
            logger.error(
                f"Error processing {event.operation.value} of {event.uri}: {e}", exc_info=True
            )
            raise

    def _handle_upsert(self, event: CommitEvent, mapper: RecordMapper) -> None:
        if not event.record:
            logger.debug(f"Skipping upsert of {event.uri}: record is empty")
            return

        meta = event.meta()
        existing = mapper.find_by_uri(event.uri)

        if existing is not None and self.detector.has_conflict(existing, event.record, event.cid):
            resolution = self.resolver.resolve(
                existing, event.record, meta, mapper, self.conflicts.strategy
            )
            if not resolution.is_resolved:
                logger.info(f"Conflict on {event.uri} pending manual resolution")
                return
            logger.info(f"Conflict on {event.uri} resolved: {resolution.winner.value} wins")
            return

        model = mapper.upsert(event.record, meta)
        if model is None:
            logger.debug(f"Skipping upsert of {event.uri}: declined by mapper")
        else:
            logger.debug(f"Upserted {event.uri}")

    def _handle_delete(self, event: CommitEvent, mapper: RecordMapper) -> None:
        deleted = mapper.delete_by_uri(event.uri)
        if deleted:
            logger.debug(f"Deleted {event.uri}")
        else:
            logger.debug(f"Delete of {event.uri} skipped: model not found")
