"""Record mappers.

A mapper converts between remote record payloads (plain dicts) and local
models for one collection.

This module provides:
- RecordMeta: remote metadata accompanying a payload
- RecordMapper / ReferenceMapper: capabilities consumed by the sync core
- BaseRecordMapper / BaseReferenceMapper: implementations on top of a
  ModelStore, subclassed per collection
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, ClassVar, Protocol, runtime_checkable

from recordsync.core.config import ColumnConfig
from recordsync.core.types import ReferenceFormat
from recordsync.core.uri import RemoteURI, StrongRef
from recordsync.mapping.model import ModelStore, RemoteMetadata, utcnow

if TYPE_CHECKING:
    from recordsync.mapping.registry import MapperRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RecordMeta:
    """Remote metadata for a record payload."""

    uri: str | None = None
    cid: str | None = None
    owner: str | None = None
    rkey: str | None = None

    @classmethod
    def for_uri(cls, uri: str, cid: str | None = None) -> RecordMeta:
        parsed = RemoteURI.try_parse(uri)
        return cls(
            uri=uri,
            cid=cid,
            owner=parsed.owner if parsed else None,
            rkey=parsed.rkey if parsed else None,
        )

    def to_dict(self) -> dict[str, str | None]:
        return {"uri": self.uri, "cid": self.cid, "owner": self.owner, "rkey": self.rkey}


@runtime_checkable
class RecordMapper(Protocol):
    """Bidirectional mapping between one collection and one model type."""

    collection: str
    model_type: type

    def to_payload(self, model: Any) -> dict[str, Any]:
        ...

    def to_model(self, payload: dict[str, Any], meta: RecordMeta) -> Any:
        """Build an unsaved model from a payload."""
        ...

    def update_model(self, model: Any, payload: dict[str, Any], meta: RecordMeta) -> Any:
        """Overwrite a model's fields from a payload (not persisted)."""
        ...

    def should_import(self, payload: dict[str, Any], meta: RecordMeta) -> bool:
        ...

    def upsert(self, payload: dict[str, Any], meta: RecordMeta) -> Any | None:
        """Create or update the model for a payload; None means skipped."""
        ...

    def find_by_uri(self, uri: str) -> Any | None:
        ...

    def delete_by_uri(self, uri: str) -> bool:
        ...

    def rkey_for(self, model: Any) -> str | None:
        """Record key to request on create, or None to let the remote pick."""
        ...

    def has_blob_fields(self) -> bool:
        ...


@runtime_checkable
class ReferenceMapper(RecordMapper, Protocol):
    """Mapper for records that point at a main record."""

    main_collection: str
    reference_property: str
    reference_format: ReferenceFormat
    reference_uri_column: str
    reference_cid_column: str

    def main_mapper(self) -> RecordMapper | None:
        ...

    def extract_reference(self, payload: dict[str, Any]) -> StrongRef | None:
        ...

    def build_reference(self, model: Any) -> str | dict[str, str]:
        ...


class BaseRecordMapper(ABC):
    """Mapper built on a ModelStore.

    Subclasses set ``collection`` and ``model_type`` and implement the two
    conversion hooks.
    """

    collection: ClassVar[str]
    model_type: ClassVar[type]

    def __init__(self, store: ModelStore, columns: ColumnConfig | None = None) -> None:
        self.store = store
        self.meta = RemoteMetadata(columns)

    @abstractmethod
    def payload_to_attributes(self, payload: dict[str, Any]) -> dict[str, Any]:
        """Model attributes for a payload."""

    @abstractmethod
    def model_to_payload(self, model: Any) -> dict[str, Any]:
        """Payload fields for a model."""

    def new_model(self) -> Any:
        return self.model_type()

    def apply_meta(self, attributes: dict[str, Any], meta: RecordMeta) -> dict[str, Any]:
        columns = self.meta.columns
        if meta.uri:
            attributes[columns.uri] = meta.uri
        if meta.cid:
            attributes[columns.version] = meta.cid
        attributes[columns.synced_at] = utcnow()
        return attributes

    def to_payload(self, model: Any) -> dict[str, Any]:
        return self.model_to_payload(model)

    def to_model(self, payload: dict[str, Any], meta: RecordMeta) -> Any:
        model = self.new_model()
        self.store.fill(model, self.apply_meta(self.payload_to_attributes(payload), meta))
        return model

    def update_model(self, model: Any, payload: dict[str, Any], meta: RecordMeta) -> Any:
        self.store.fill(model, self.apply_meta(self.payload_to_attributes(payload), meta))
        return model

    def should_import(self, payload: dict[str, Any], meta: RecordMeta) -> bool:
        return True

    def upsert(self, payload: dict[str, Any], meta: RecordMeta) -> Any | None:
        if not self.should_import(payload, meta):
            return None

        if meta.uri:
            existing = self.find_by_uri(meta.uri)
            if existing is not None:
                self.update_model(existing, payload, meta)
                self.store.save(existing)
                return existing

        model = self.to_model(payload, meta)
        self.store.save(model)
        return model

    def find_by_uri(self, uri: str) -> Any | None:
        return self.store.find_by(self.model_type, self.meta.columns.uri, uri)

    def delete_by_uri(self, uri: str) -> bool:
        model = self.find_by_uri(uri)
        if model is None:
            return False
        self.store.delete(model)
        return True

    def rkey_for(self, model: Any) -> str | None:
        return None

    def blob_fields(self) -> list[str]:
        """Payload fields holding blob references."""
        return []

    def has_blob_fields(self) -> bool:
        return bool(self.blob_fields())


class BaseReferenceMapper(BaseRecordMapper):
    """Mapper for reference records.

    The model carries both the main record's URI/version (in the regular
    metadata columns) and the reference record's URI/version (in
    ``reference_uri_column`` / ``reference_cid_column``).
    """

    main_collection: ClassVar[str]
    reference_property: ClassVar[str] = "subject"
    reference_format: ClassVar[ReferenceFormat] = ReferenceFormat.STRONG_REF
    reference_uri_column: ClassVar[str] = "reference_uri"
    reference_cid_column: ClassVar[str] = "reference_cid"

    def __init__(
        self,
        store: ModelStore,
        registry: MapperRegistry,
        columns: ColumnConfig | None = None,
    ) -> None:
        super().__init__(store, columns)
        self.registry = registry

    def main_mapper(self) -> RecordMapper | None:
        return self.registry.for_collection(self.main_collection)

    def apply_meta(self, attributes: dict[str, Any], meta: RecordMeta) -> dict[str, Any]:
        if meta.uri:
            attributes[self.reference_uri_column] = meta.uri
        if meta.cid:
            attributes[self.reference_cid_column] = meta.cid
        return attributes

    def to_model(self, payload: dict[str, Any], meta: RecordMeta) -> Any:
        model = super().to_model(payload, meta)
        self._apply_main_ref(model, payload)
        return model

    def update_model(self, model: Any, payload: dict[str, Any], meta: RecordMeta) -> Any:
        super().update_model(model, payload, meta)
        self._apply_main_ref(model, payload)
        return model

    def _apply_main_ref(self, model: Any, payload: dict[str, Any]) -> None:
        ref = self.extract_reference(payload)
        if ref is not None:
            self.meta.set_main_ref(model, ref.uri, ref.cid)

    def to_payload(self, model: Any) -> dict[str, Any]:
        payload = self.model_to_payload(model)
        payload[self.reference_property] = self.build_reference(model)
        return payload

    def find_by_uri(self, uri: str) -> Any | None:
        return self.store.find_by(self.model_type, self.reference_uri_column, uri)

    def extract_reference(self, payload: dict[str, Any]) -> StrongRef | None:
        return StrongRef.from_value(payload.get(self.reference_property))

    def build_reference(self, model: Any) -> str | dict[str, str]:
        ref = StrongRef(uri=self.meta.uri(model) or "", cid=self.meta.version(model) or "")
        if self.reference_format is ReferenceFormat.AT_URI:
            return ref.uri
        return ref.to_dict()
