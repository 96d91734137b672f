"""Pending conflicts awaiting operator resolution.

This module provides:
- PendingConflict: a stored local/remote disagreement
- ConflictStore: persistence and resolution of pending conflicts in the
  ``pending_conflicts`` table
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

from sqlalchemy import select

from recordsync.core.types import ConflictStatus, ConflictWinner
from recordsync.mapping.model import ModelStore, as_aware, type_name, utcnow
from recordsync.mapping.registry import MapperRegistry
from recordsync.storage.database import Database
from recordsync.storage.models import PendingConflictRow

logger = logging.getLogger(__name__)


class ConflictNotFoundError(LookupError):
    """Raised when a pending conflict id does not exist."""

    pass


@dataclass
class PendingConflict:
    """A conflict stored for manual review.

    Attributes:
        id: Database id.
        model_type: ``type_name`` of the local model class.
        model_id: Primary key of the local model (string form).
        uri: Remote URI of the conflicting record.
        local_data: Snapshot of the local model.
        remote_data: Snapshot of the model projected from the remote record.
        status: pending, resolved or dismissed.
        resolution: Winning side once resolved.
    """

    id: int
    model_type: str
    model_id: str
    uri: str | None
    local_data: dict[str, Any] = field(default_factory=dict)
    remote_data: dict[str, Any] = field(default_factory=dict)
    status: ConflictStatus = ConflictStatus.PENDING
    resolution: ConflictWinner | None = None
    resolved_at: datetime | None = None
    created_at: datetime | None = None

    @property
    def is_pending(self) -> bool:
        return self.status is ConflictStatus.PENDING

    @property
    def is_resolved(self) -> bool:
        return self.status is ConflictStatus.RESOLVED

    @property
    def is_dismissed(self) -> bool:
        return self.status is ConflictStatus.DISMISSED

    @classmethod
    def from_row(cls, row: PendingConflictRow) -> PendingConflict:
        return cls(
            id=row.id,
            model_type=row.model_type,
            model_id=row.model_id,
            uri=row.uri,
            local_data=dict(row.local_data or {}),
            remote_data=dict(row.remote_data or {}),
            status=ConflictStatus(row.status),
            resolution=ConflictWinner(row.resolution) if row.resolution else None,
            resolved_at=as_aware(row.resolved_at),
            created_at=as_aware(row.created_at),
        )


def _jsonable(value: Any) -> Any:
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


class ConflictStore:
    """Stores and resolves pending conflicts."""

    def __init__(self, database: Database, registry: MapperRegistry, store: ModelStore) -> None:
        self._db = database
        self.registry = registry
        self.store = store

    def create(
        self,
        model: Any,
        uri: str | None,
        local_data: dict[str, Any],
        remote_data: dict[str, Any],
    ) -> PendingConflict:
        """Store a new pending conflict for a model."""
        with self._db.session() as session:
            row = PendingConflictRow(
                model_type=type_name(type(model)),
                model_id=str(self.store.key(model)),
                uri=uri,
                local_data=_jsonable(local_data),
                remote_data=_jsonable(remote_data),
                status=ConflictStatus.PENDING.value,
            )
            session.add(row)
            session.commit()
            conflict = PendingConflict.from_row(row)

        logger.info(f"Stored pending conflict {conflict.id} for {conflict.model_type}:{conflict.model_id}")
        return conflict

    def get(self, conflict_id: int) -> PendingConflict | None:
        with self._db.session() as session:
            row = session.get(PendingConflictRow, conflict_id)
            return PendingConflict.from_row(row) if row else None

    def pending(self) -> list[PendingConflict]:
        return self._with_status(ConflictStatus.PENDING)

    def resolved(self) -> list[PendingConflict]:
        return self._with_status(ConflictStatus.RESOLVED)

    def for_model(self, model_type: type | str, model_id: Any) -> list[PendingConflict]:
        name = model_type if isinstance(model_type, str) else type_name(model_type)
        with self._db.session() as session:
            rows = session.scalars(
                select(PendingConflictRow)
                .where(
                    PendingConflictRow.model_type == name,
                    PendingConflictRow.model_id == str(model_id),
                )
                .order_by(PendingConflictRow.id)
            ).all()
            return [PendingConflict.from_row(row) for row in rows]

    def resolve_with_local(self, conflict_id: int) -> PendingConflict:
        """Keep the local model as is."""
        return self._close(conflict_id, ConflictStatus.RESOLVED, ConflictWinner.LOCAL)

    def resolve_with_remote(self, conflict_id: int) -> PendingConflict:
        """Overwrite the local model with the stored remote snapshot."""
        conflict = self._require(conflict_id)
        model_type = self.registry.model_type_named(conflict.model_type)
        model = self.store.find(model_type, conflict.model_id) if model_type else None

        if model is not None:
            self.store.fill(model, conflict.remote_data)
            self.store.save(model)
        else:
            logger.warning(
                f"Model {conflict.model_type}:{conflict.model_id} for conflict "
                f"{conflict_id} no longer exists"
            )

        return self._close(conflict_id, ConflictStatus.RESOLVED, ConflictWinner.REMOTE)

    def dismiss(self, conflict_id: int) -> PendingConflict:
        return self._close(conflict_id, ConflictStatus.DISMISSED, None)

    def _require(self, conflict_id: int) -> PendingConflict:
        conflict = self.get(conflict_id)
        if conflict is None:
            raise ConflictNotFoundError(f"Conflict not found: {conflict_id}")
        return conflict

    def _close(
        self, conflict_id: int, status: ConflictStatus, resolution: ConflictWinner | None
    ) -> PendingConflict:
        with self._db.session() as session:
            row = session.get(PendingConflictRow, conflict_id)
            if row is None:
                raise ConflictNotFoundError(f"Conflict not found: {conflict_id}")
            row.status = status.value
            row.resolution = resolution.value if resolution else None
            row.resolved_at = utcnow()
            session.commit()
            return PendingConflict.from_row(row)

    def _with_status(self, status: ConflictStatus) -> list[PendingConflict]:
        with self._db.session() as session:
            rows = session.scalars(
                select(PendingConflictRow)
                .where(PendingConflictRow.status == status.value)
                .order_by(PendingConflictRow.id)
            ).all()
            return [PendingConflict.from_row(row) for row in rows]
