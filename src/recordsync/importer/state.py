"""Import state machine and its persistence.

States:
    PENDING -> IN_PROGRESS -> COMPLETED
            -> FAILED      -> FAILED
    FAILED  -> PENDING | IN_PROGRESS

A failed or interrupted import keeps its cursor and counts so it can be
resumed. COMPLETED is terminal until the state row is deleted.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError

from recordsync.core.types import ImportStatus
from recordsync.importer.result import ImportResult
from recordsync.mapping.model import as_aware, utcnow
from recordsync.storage.database import Database
from recordsync.storage.models import ImportStateRow

logger = logging.getLogger(__name__)


# Valid state transitions
VALID_TRANSITIONS: dict[ImportStatus, set[ImportStatus]] = {
    ImportStatus.PENDING: {ImportStatus.IN_PROGRESS, ImportStatus.FAILED},
    ImportStatus.IN_PROGRESS: {
        ImportStatus.IN_PROGRESS,  # continuing an interrupted run
        ImportStatus.PENDING,
        ImportStatus.COMPLETED,
        ImportStatus.FAILED,
    },
    ImportStatus.FAILED: {ImportStatus.PENDING, ImportStatus.IN_PROGRESS, ImportStatus.FAILED},
    ImportStatus.COMPLETED: set(),  # Terminal
}

RESUMABLE = (ImportStatus.IN_PROGRESS, ImportStatus.FAILED)


class InvalidTransitionError(Exception):
    """Raised when attempting invalid state transition."""

    pass


@dataclass
class ImportState:
    """Import progress for one (owner, collection) pair.

    Attributes:
        owner: Repository owner.
        collection: Collection being imported.
        status: Current status.
        cursor: Cursor of the next page to fetch.
        records_synced: Cumulative upserted records.
        records_skipped: Cumulative skipped records.
        records_failed: Cumulative failed records.
        started_at: When the current run started.
        completed_at: When the import completed.
        error: Last error message, if failed.
        id: Database id (None until persisted).
    """

    owner: str
    collection: str
    status: ImportStatus = ImportStatus.PENDING
    cursor: str | None = None
    records_synced: int = 0
    records_skipped: int = 0
    records_failed: int = 0
    started_at: datetime | None = None
    completed_at: datetime | None = None
    error: str | None = None
    id: int | None = None

    def _transition(self, new_status: ImportStatus) -> None:
        if new_status not in VALID_TRANSITIONS[self.status]:
            raise InvalidTransitionError(
                f"Cannot transition from {self.status.name} to {new_status.name}"
            )
        self.status = new_status

    def mark_started(self) -> None:
        self._transition(ImportStatus.IN_PROGRESS)
        self.started_at = utcnow()
        self.error = None

    def mark_completed(self) -> None:
        self._transition(ImportStatus.COMPLETED)
        self.completed_at = utcnow()
        self.cursor = None

    def mark_failed(self, error: str) -> None:
        """Mark failed, keeping cursor and counts for a later resume."""
        self._transition(ImportStatus.FAILED)
        self.error = error

    def mark_pending(self) -> None:
        self._transition(ImportStatus.PENDING)

    def update_progress(
        self, synced: int, skipped: int = 0, failed: int = 0, cursor: str | None = None
    ) -> None:
        """Add one page's counts and move to the next cursor."""
        self.records_synced += synced
        self.records_skipped += skipped
        self.records_failed += failed
        self.cursor = cursor

    @property
    def can_resume(self) -> bool:
        return self.status in RESUMABLE

    @property
    def is_completed(self) -> bool:
        return self.status is ImportStatus.COMPLETED

    @property
    def is_running(self) -> bool:
        return self.status is ImportStatus.IN_PROGRESS

    def to_result(self) -> ImportResult:
        return ImportResult(
            owner=self.owner,
            collection=self.collection,
            records_synced=self.records_synced,
            records_skipped=self.records_skipped,
            records_failed=self.records_failed,
            completed=self.is_completed,
            cursor=self.cursor,
            error=self.error,
        )

    @classmethod
    def from_row(cls, row: ImportStateRow) -> ImportState:
        """Create ImportState from database row."""
        return cls(
            id=row.id,
            owner=row.owner,
            collection=row.collection,
            status=ImportStatus(row.status),
            cursor=row.cursor,
            records_synced=row.records_synced,
            records_skipped=row.records_skipped,
            records_failed=row.records_failed,
            started_at=as_aware(row.started_at),
            completed_at=as_aware(row.completed_at),
            error=row.error,
        )

    def apply_to(self, row: ImportStateRow) -> None:
        row.owner = self.owner
        row.collection = self.collection
        row.status = self.status.value
        row.cursor = self.cursor
        row.records_synced = self.records_synced
        row.records_skipped = self.records_skipped
        row.records_failed = self.records_failed
        row.started_at = self.started_at
        row.completed_at = self.completed_at
        row.error = self.error


class ImportStateRepository:
    """Persists ImportState in the ``import_states`` table."""

    def __init__(self, database: Database) -> None:
        self._db = database

    def find(self, owner: str, collection: str) -> ImportState | None:
        with self._db.session() as session:
            row = session.scalar(
                select(ImportStateRow).where(
                    ImportStateRow.owner == owner,
                    ImportStateRow.collection == collection,
                )
            )
            return ImportState.from_row(row) if row else None

    def find_or_create(self, owner: str, collection: str) -> ImportState:
        """Get the state for a pair, creating a PENDING one if absent."""
        existing = self.find(owner, collection)
        if existing is not None:
            return existing

        state = ImportState(owner=owner, collection=collection)
        try:
            self.save(state)
        except IntegrityError:
            # Created concurrently
            found = self.find(owner, collection)
            if found is None:
                raise
            return found
        return state

    def save(self, state: ImportState) -> None:
        """Insert or update a state; assigns ``state.id`` on insert."""
        with self._db.session() as session:
            row = session.get(ImportStateRow, state.id) if state.id is not None else None
            if row is None:
                row = ImportStateRow()
                session.add(row)
            state.apply_to(row)
            session.commit()
            state.id = row.id

    def for_owner(self, owner: str) -> list[ImportState]:
        with self._db.session() as session:
            rows = session.scalars(
                select(ImportStateRow)
                .where(ImportStateRow.owner == owner)
                .order_by(ImportStateRow.collection)
            ).all()
            return [ImportState.from_row(row) for row in rows]

    def with_status(self, *statuses: ImportStatus) -> list[ImportState]:
        with self._db.session() as session:
            rows = session.scalars(
                select(ImportStateRow)
                .where(ImportStateRow.status.in_([s.value for s in statuses]))
                .order_by(ImportStateRow.id)
            ).all()
            return [ImportState.from_row(row) for row in rows]

    def resumable(self) -> list[ImportState]:
        """States that are in progress or failed."""
        return self.with_status(*RESUMABLE)

    def delete(self, owner: str, collection: str) -> None:
        with self._db.session() as session:
            session.execute(
                delete(ImportStateRow).where(
                    ImportStateRow.owner == owner,
                    ImportStateRow.collection == collection,
                )
            )
            session.commit()

    def delete_for_owner(self, owner: str) -> int:
        with self._db.session() as session:
            result = session.execute(delete(ImportStateRow).where(ImportStateRow.owner == owner))
            session.commit()
            logger.debug(f"Deleted {result.rowcount} import states for {owner}")
            return result.rowcount
