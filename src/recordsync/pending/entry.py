"""Pending sync value objects."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from typing import Any

from recordsync.core.types import PendingSyncOperation
from recordsync.mapping.model import as_aware, utcnow


def new_entry_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class PendingSyncEntry:
    """A remote write that failed and should be replayed later.

    Attributes:
        id: Unique entry id.
        owner: Repository owner the write was made as.
        model_type: ``type_name`` of the model class.
        model_id: Primary key of the model.
        operation: Operation to replay.
        reference_mapper: Collection of the reference mapper, for
            reference operations.
        created_at: When the entry was captured.
        attempts: Retry attempts made so far.
    """

    owner: str
    model_type: str
    model_id: Any
    operation: PendingSyncOperation
    reference_mapper: str | None = None
    created_at: datetime = field(default_factory=utcnow)
    attempts: int = 0
    id: str = field(default_factory=new_entry_id)

    def with_incremented_attempts(self) -> PendingSyncEntry:
        return replace(self, attempts=self.attempts + 1)

    def is_expired(self, ttl: int, now: datetime | None = None) -> bool:
        """Whether ``created_at + ttl`` seconds lies in the past."""
        now = now or utcnow()
        return self.created_at + timedelta(seconds=ttl) < now

    def has_exceeded_max_attempts(self, max_attempts: int) -> bool:
        return self.attempts >= max_attempts

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "owner": self.owner,
            "model_type": self.model_type,
            "model_id": self.model_id,
            "operation": self.operation.value,
            "reference_mapper": self.reference_mapper,
            "created_at": self.created_at.isoformat(),
            "attempts": self.attempts,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PendingSyncEntry:
        return cls(
            id=data["id"],
            owner=data["owner"],
            model_type=data["model_type"],
            model_id=data["model_id"],
            operation=PendingSyncOperation(data["operation"]),
            reference_mapper=data.get("reference_mapper"),
            created_at=as_aware(data["created_at"]) or utcnow(),
            attempts=data.get("attempts", 0),
        )


@dataclass(frozen=True)
class PendingSyncRetryResult:
    """Counts from one retry pass over an owner's entries."""

    total: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    errors: tuple[str, ...] = ()

    @property
    def has_failures(self) -> bool:
        return self.failed > 0

    @property
    def all_succeeded(self) -> bool:
        return self.failed == 0 and self.skipped == 0

    @property
    def is_empty(self) -> bool:
        return self.total == 0

    @property
    def processed(self) -> int:
        return self.succeeded + self.skipped
