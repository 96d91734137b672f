"""Mapping between remote record payloads and local models."""

from recordsync.mapping.mapper import (
    BaseRecordMapper,
    BaseReferenceMapper,
    RecordMapper,
    RecordMeta,
    ReferenceMapper,
)
from recordsync.mapping.model import (
    ModelStore,
    OwnerResolvable,
    RemoteMetadata,
    type_name,
)
from recordsync.mapping.registry import MapperRegistry

__all__ = [
    "BaseRecordMapper",
    "BaseReferenceMapper",
    "MapperRegistry",
    "ModelStore",
    "OwnerResolvable",
    "RecordMapper",
    "RecordMeta",
    "ReferenceMapper",
    "RemoteMetadata",
    "type_name",
]
