"""Local model access.

The ORM is an external collaborator. The sync core only touches local
models through:
- ModelStore: persistence capability implemented by an ORM adapter
- OwnerResolvable: optional capability of models that know their owner
- RemoteMetadata: reads/writes the remote URI, version and sync timestamp
  attributes configured in ColumnConfig
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Protocol, runtime_checkable

from recordsync.core.config import ColumnConfig


@runtime_checkable
class ModelStore(Protocol):
    """Persistence capability for local models."""

    def find(self, model_type: type, model_id: Any) -> Any | None:
        """Load a model by primary key."""
        ...

    def find_by(self, model_type: type, attribute: str, value: Any) -> Any | None:
        """Load the first model whose attribute equals value."""
        ...

    def save(self, model: Any) -> None:
        """Persist a model without triggering auto-sync hooks."""
        ...

    def delete(self, model: Any) -> None:
        ...

    def key(self, model: Any) -> Any:
        """Primary key of a model."""
        ...

    def snapshot(self, model: Any) -> dict[str, Any]:
        """Serializable attribute snapshot of a model."""
        ...

    def fill(self, model: Any, data: dict[str, Any]) -> None:
        """Assign attributes from a mapping (not persisted)."""
        ...


@runtime_checkable
class OwnerResolvable(Protocol):
    """Models that can name the repository owner they sync as."""

    def owner_id(self) -> str | None:
        ...


def type_name(model_type: type) -> str:
    """Stable string identifier for a model class."""
    return f"{model_type.__module__}.{model_type.__qualname__}"


def utcnow() -> datetime:
    return datetime.now(UTC)


def as_aware(value: Any) -> datetime | None:
    """Coerce a datetime or ISO string to an aware datetime (naive = UTC)."""
    if value is None or value == "":
        return None
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value)
        except ValueError:
            return None
    if not isinstance(value, datetime):
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


class RemoteMetadata:
    """Accessor for remote metadata attributes on local models."""

    def __init__(self, columns: ColumnConfig | None = None) -> None:
        self.columns = columns or ColumnConfig()

    def uri(self, model: Any) -> str | None:
        return getattr(model, self.columns.uri, None) or None

    def version(self, model: Any) -> str | None:
        return getattr(model, self.columns.version, None) or None

    def synced_at(self, model: Any) -> datetime | None:
        return as_aware(getattr(model, self.columns.synced_at, None))

    def updated_at(self, model: Any) -> datetime | None:
        return as_aware(getattr(model, self.columns.updated_at, None))

    def is_synced(self, model: Any) -> bool:
        return self.uri(model) is not None

    def mark_synced(self, model: Any, uri: str, cid: str) -> None:
        setattr(model, self.columns.uri, uri)
        setattr(model, self.columns.version, cid)
        setattr(model, self.columns.synced_at, utcnow())

    def set_main_ref(self, model: Any, uri: str, cid: str | None) -> None:
        setattr(model, self.columns.uri, uri)
        if cid:
            setattr(model, self.columns.version, cid)

    def clear(self, model: Any) -> None:
        setattr(model, self.columns.uri, None)
        setattr(model, self.columns.version, None)
        setattr(model, self.columns.synced_at, None)

    def has_local_changes(self, model: Any) -> bool:
        """Whether the model changed locally since its last sync.

        Never synced counts as changed. A missing update timestamp counts as
        unchanged. Otherwise the update must be strictly after the sync.
        """
        synced_at = self.synced_at(model)
        if synced_at is None:
            return True

        updated_at = self.updated_at(model)
        if updated_at is None:
            return False

        return updated_at > synced_at
