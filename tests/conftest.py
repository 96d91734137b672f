"""Shared fixtures: sample models and mappers, an in-memory ModelStore and a
scripted RemoteRepository."""

from __future__ import annotations

import dataclasses
from collections.abc import Iterator
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

import pytest

from recordsync.core.events import Event, EventDispatcher
from recordsync.core.types import ReferenceFormat
from recordsync.core.uri import RemoteURI
from recordsync.mapping.mapper import BaseRecordMapper, BaseReferenceMapper
from recordsync.mapping.registry import MapperRegistry
from recordsync.remote.api import RecordPage, RemoteRecord, WriteResult
from recordsync.storage.database import Database

OWNER = "did:plc:alice"
POST_COLLECTION = "app.example.post"
LINK_COLLECTION = "app.example.link"
BOOKMARK_COLLECTION = "app.example.bookmark"


@dataclass
class Post:
    id: int | None = None
    owner: str | None = None
    text: str = ""
    created_at: str | None = None
    updated_at: datetime | None = None
    remote_uri: str | None = None
    remote_cid: str | None = None
    remote_synced_at: datetime | None = None

    def owner_id(self) -> str | None:
        return self.owner


@dataclass
class Bookmark:
    id: int | None = None
    owner: str | None = None
    title: str = ""
    updated_at: datetime | None = None
    remote_uri: str | None = None
    remote_cid: str | None = None
    remote_synced_at: datetime | None = None
    reference_uri: str | None = None
    reference_cid: str | None = None

    def owner_id(self) -> str | None:
        return self.owner


class InMemoryModelStore:
    """ModelStore over a dict, keyed by (type, str(id))."""

    def __init__(self) -> None:
        self.rows: dict[tuple[type, str], Any] = {}
        self.saved: list[Any] = []
        self._next_id = 1

    def find(self, model_type: type, model_id: Any) -> Any | None:
        return self.rows.get((model_type, str(model_id)))

    def find_by(self, model_type: type, attribute: str, value: Any) -> Any | None:
        for (row_type, _), model in self.rows.items():
            if row_type is model_type and getattr(model, attribute, None) == value:
                return model
        return None

    def save(self, model: Any) -> None:
        if model.id is None:
            model.id = self._next_id
            self._next_id += 1
        self.rows[(type(model), str(model.id))] = model
        self.saved.append(model)

    def delete(self, model: Any) -> None:
        self.rows.pop((type(model), str(model.id)), None)

    def key(self, model: Any) -> Any:
        return model.id

    def snapshot(self, model: Any) -> dict[str, Any]:
        return dataclasses.asdict(model)

    def fill(self, model: Any, data: dict[str, Any]) -> None:
        names = {f.name for f in dataclasses.fields(model)}
        for name, value in data.items():
            if name in names and name != "id":
                setattr(model, name, value)

    def all(self, model_type: type) -> list[Any]:
        return [m for (t, _), m in self.rows.items() if t is model_type]


class PostMapper(BaseRecordMapper):
    collection = POST_COLLECTION
    model_type = Post

    def payload_to_attributes(self, payload: dict[str, Any]) -> dict[str, Any]:
        return {"text": payload.get("text", ""), "created_at": payload.get("createdAt")}

    def model_to_payload(self, model: Any) -> dict[str, Any]:
        return {"$type": self.collection, "text": model.text, "createdAt": model.created_at}


class DraftSkippingPostMapper(PostMapper):
    """Declines records flagged as drafts."""

    def should_import(self, payload: dict[str, Any], meta: Any) -> bool:
        return not payload.get("draft", False)


class LinkMapper(BaseRecordMapper):
    """Main record of a Bookmark."""

    collection = LINK_COLLECTION
    model_type = Bookmark

    def payload_to_attributes(self, payload: dict[str, Any]) -> dict[str, Any]:
        return {"title": payload.get("title", "")}

    def model_to_payload(self, model: Any) -> dict[str, Any]:
        return {"$type": self.collection, "title": model.title}


class BookmarkMapper(BaseReferenceMapper):
    """Reference record pointing at a Bookmark's link record."""

    collection = BOOKMARK_COLLECTION
    model_type = Bookmark
    main_collection = LINK_COLLECTION
    reference_format = ReferenceFormat.STRONG_REF

    def payload_to_attributes(self, payload: dict[str, Any]) -> dict[str, Any]:
        return {}

    def model_to_payload(self, model: Any) -> dict[str, Any]:
        return {"$type": self.collection}


class FakeRepository:
    """Scripted RemoteRepository.

    Records written through create/put are kept in ``records`` keyed by URI.
    ``fail`` maps a method name (optionally "method:collection") to an
    exception raised on every matching call.
    """

    def __init__(self, endpoint: str | None = "https://pds.example.com") -> None:
        self.endpoint = endpoint
        self.records: dict[str, tuple[dict[str, Any], str]] = {}
        self.pages: dict[tuple[str, str], list[RecordPage]] = {}
        self.fail: dict[str, Exception] = {}
        self.calls: list[tuple[str, ...]] = []
        self._counter = 0

    def _check(self, method: str, collection: str) -> None:
        error = self.fail.get(f"{method}:{collection}") or self.fail.get(method)
        if error is not None:
            raise error

    def _next(self) -> int:
        self._counter += 1
        return self._counter

    def add_pages(self, owner: str, collection: str, *pages: list[RemoteRecord]) -> None:
        """Script paging: every page but the last gets a cursor."""
        scripted = []
        for i, records in enumerate(pages):
            cursor = f"c{i + 1}" if i < len(pages) - 1 else None
            scripted.append(RecordPage(records=records, cursor=cursor))
        self.pages[(owner, collection)] = scripted

    def resolve_endpoint(self, owner: str) -> str | None:
        return self.endpoint

    def list_records(
        self, owner: str, collection: str, cursor: str | None, limit: int
    ) -> RecordPage:
        self.calls.append(("list_records", owner, collection, cursor or ""))
        self._check("list_records", collection)
        pages = self.pages.get((owner, collection), [RecordPage(records=[])])
        index = int(cursor[1:]) if cursor else 0
        return pages[index]

    def create_record(
        self,
        owner: str,
        collection: str,
        payload: dict[str, Any],
        rkey: str | None = None,
    ) -> WriteResult:
        self.calls.append(("create_record", owner, collection))
        self._check("create_record", collection)
        n = self._next()
        uri = str(RemoteURI.build(owner, collection, rkey or f"rkey{n}"))
        cid = f"cid{n}"
        self.records[uri] = (payload, cid)
        return WriteResult(uri=uri, cid=cid)

    def put_record(
        self, owner: str, collection: str, rkey: str, payload: dict[str, Any]
    ) -> WriteResult:
        self.calls.append(("put_record", owner, collection, rkey))
        self._check("put_record", collection)
        uri = str(RemoteURI.build(owner, collection, rkey))
        cid = f"cid{self._next()}"
        self.records[uri] = (payload, cid)
        return WriteResult(uri=uri, cid=cid)

    def delete_record(self, owner: str, collection: str, rkey: str) -> None:
        self.calls.append(("delete_record", owner, collection, rkey))
        self._check("delete_record", collection)
        self.records.pop(str(RemoteURI.build(owner, collection, rkey)), None)

    def count(self, method: str) -> int:
        return sum(1 for call in self.calls if call[0] == method)


class EventRecorder:
    """Collects every dispatched event."""

    def __init__(self, dispatcher: EventDispatcher) -> None:
        self.events: list[Event] = []
        dispatcher.subscribe(Event, self.events.append)

    def of_type(self, event_type: type) -> list[Any]:
        return [e for e in self.events if isinstance(e, event_type)]


def make_records(count: int, collection: str = POST_COLLECTION, start: int = 0) -> list[RemoteRecord]:
    return [
        RemoteRecord(
            uri=f"at://{OWNER}/{collection}/r{i}",
            cid=f"bafy{i}",
            value={"text": f"post {i}", "createdAt": "2024-01-01T00:00:00+00:00"},
        )
        for i in range(start, start + count)
    ]


@pytest.fixture
def database(tmp_path: Path) -> Iterator[Database]:
    """Create a state database in a temp directory."""
    db = Database(tmp_path / "state.db")
    yield db
    db.close()


@pytest.fixture
def store() -> InMemoryModelStore:
    return InMemoryModelStore()


@pytest.fixture
def repository() -> FakeRepository:
    return FakeRepository()


@pytest.fixture
def dispatcher() -> EventDispatcher:
    return EventDispatcher()


@pytest.fixture
def recorder(dispatcher: EventDispatcher) -> EventRecorder:
    return EventRecorder(dispatcher)


@pytest.fixture
def registry(store: InMemoryModelStore) -> MapperRegistry:
    """Registry with the post mapper and the bookmark main + reference mappers."""
    reg = MapperRegistry()
    reg.register(PostMapper(store))
    reg.register(LinkMapper(store))
    reg.register(BookmarkMapper(store, reg))
    return reg
