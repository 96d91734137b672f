"""Import outcome value object."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

AGGREGATE_COLLECTION = "*"


@dataclass(frozen=True)
class ImportResult:
    """Result of importing one collection (or several, when aggregated).

    Attributes:
        owner: Repository owner that was imported.
        collection: Collection name, or "*" for an aggregate.
        records_synced: Records upserted into the local store.
        records_skipped: Records the mapper declined to import.
        records_failed: Records whose upsert raised.
        completed: Whether the last page was reached.
        cursor: Cursor to resume from, if not completed.
        error: Error message when the import failed.
    """

    owner: str
    collection: str
    records_synced: int = 0
    records_skipped: int = 0
    records_failed: int = 0
    completed: bool = False
    cursor: str | None = None
    error: str | None = None

    @property
    def is_success(self) -> bool:
        return self.completed and self.error is None

    @property
    def is_partial(self) -> bool:
        """Stopped before the end after syncing some records."""
        return not self.completed and self.records_synced > 0

    @property
    def is_failed(self) -> bool:
        return self.error is not None

    @property
    def total_processed(self) -> int:
        return self.records_synced + self.records_skipped + self.records_failed

    @classmethod
    def success(
        cls, owner: str, collection: str, synced: int, skipped: int = 0, failed: int = 0
    ) -> ImportResult:
        return cls(
            owner=owner,
            collection=collection,
            records_synced=synced,
            records_skipped=skipped,
            records_failed=failed,
            completed=True,
        )

    @classmethod
    def partial(
        cls,
        owner: str,
        collection: str,
        synced: int,
        cursor: str | None,
        skipped: int = 0,
        failed: int = 0,
    ) -> ImportResult:
        return cls(
            owner=owner,
            collection=collection,
            records_synced=synced,
            records_skipped=skipped,
            records_failed=failed,
            completed=False,
            cursor=cursor,
        )

    @classmethod
    def failed(
        cls,
        owner: str,
        collection: str,
        error: str,
        synced: int = 0,
        skipped: int = 0,
        failed: int = 0,
        cursor: str | None = None,
    ) -> ImportResult:
        return cls(
            owner=owner,
            collection=collection,
            records_synced=synced,
            records_skipped=skipped,
            records_failed=failed,
            completed=False,
            cursor=cursor,
            error=error,
        )

    @classmethod
    def aggregate(cls, owner: str, results: Iterable[ImportResult]) -> ImportResult:
        """Merge per-collection results for one owner.

        The aggregate is completed only if every result is, and errors are
        joined as "collection: error; ...". An empty input is completed.
        """
        synced = skipped = failed = 0
        errors: list[str] = []
        all_completed = True

        for result in results:
            synced += result.records_synced
            skipped += result.records_skipped
            failed += result.records_failed
            if not result.completed:
                all_completed = False
            if result.error:
                errors.append(f"{result.collection}: {result.error}")

        return cls(
            owner=owner,
            collection=AGGREGATE_COLLECTION,
            records_synced=synced,
            records_skipped=skipped,
            records_failed=failed,
            completed=all_completed,
            error="; ".join(errors) if errors else None,
        )
