"""Mapper registry.

Lookup table from collection name and model type to RecordMapper. Pure data
structure: no I/O.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from recordsync.mapping.model import type_name

if TYPE_CHECKING:
    from recordsync.mapping.mapper import RecordMapper, ReferenceMapper


class MapperRegistry:
    """Registry of RecordMapper instances.

    A model type may have several mappers (e.g. main + reference records);
    ``for_model`` returns the first one registered.
    """

    def __init__(self) -> None:
        self._by_model: dict[type, list[RecordMapper]] = {}
        self._by_collection: dict[str, RecordMapper] = {}
        self._types_by_name: dict[str, type] = {}

    def register(self, mapper: RecordMapper) -> None:
        """Register a mapper under its collection and model type."""
        model_type = mapper.model_type
        self._by_model.setdefault(model_type, []).append(mapper)
        self._by_collection[mapper.collection] = mapper
        self._types_by_name[type_name(model_type)] = model_type

    def for_model(self, model_type: type) -> RecordMapper | None:
        """Get the first mapper for a model type."""
        mappers = self._by_model.get(model_type)
        return mappers[0] if mappers else None

    def for_model_all(self, model_type: type) -> list[RecordMapper]:
        """Get all mappers for a model type."""
        return list(self._by_model.get(model_type, []))

    def for_collection(self, collection: str) -> RecordMapper | None:
        return self._by_collection.get(collection)

    def reference_mapper(self, collection: str) -> ReferenceMapper | None:
        """Get a registered mapper that handles reference records."""
        mapper = self._by_collection.get(collection)
        if mapper is None or not hasattr(mapper, "main_collection"):
            return None
        return mapper  # type: ignore[return-value]

    def has_collection(self, collection: str) -> bool:
        return collection in self._by_collection

    def collections(self) -> list[str]:
        """Registered collection names, in registration order."""
        return list(self._by_collection)

    def all(self) -> list[RecordMapper]:
        return list(self._by_collection.values())

    def model_type_named(self, name: str) -> type | None:
        """Resolve a model type from its ``type_name`` identifier."""
        return self._types_by_name.get(name)
