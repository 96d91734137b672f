"""Domain events and an in-process dispatcher.

Events are plain frozen dataclasses. Observability or notification
collaborators subscribe to an event class (or to every event with
``Event``) on an EventDispatcher shared by the services.
"""

from __future__ import annotations

import logging
import threading
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, TypeVar

if TYPE_CHECKING:
    from recordsync.importer.result import ImportResult
    from recordsync.pending.entry import PendingSyncEntry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Event:
    """Base class for all recordsync events."""


@dataclass(frozen=True)
class ImportStarted(Event):
    owner: str
    collection: str


@dataclass(frozen=True)
class ImportProgress(Event):
    owner: str
    collection: str
    records_synced: int
    cursor: str | None = None


@dataclass(frozen=True)
class ImportCompleted(Event):
    result: ImportResult


@dataclass(frozen=True)
class ImportFailed(Event):
    owner: str
    collection: str
    error: str


@dataclass(frozen=True)
class RecordSynced(Event):
    model: Any
    uri: str
    cid: str


@dataclass(frozen=True)
class RecordUnsynced(Event):
    model: Any
    uri: str


@dataclass(frozen=True)
class ReferenceSynced(Event):
    model: Any
    reference_uri: str
    reference_cid: str
    main_uri: str | None


@dataclass(frozen=True)
class ConflictDetected(Event):
    model: Any
    record: dict[str, Any]
    meta: Any
    conflict_id: int


@dataclass(frozen=True)
class PendingSyncCaptured(Event):
    entry: PendingSyncEntry
    model: Any


@dataclass(frozen=True)
class PendingSyncRetried(Event):
    entry: PendingSyncEntry
    success: bool


@dataclass(frozen=True)
class PendingSyncFailed(Event):
    entry: PendingSyncEntry
    error: Exception


E = TypeVar("E", bound=Event)
Handler = Callable[[Any], None]


class EventDispatcher:
    """Thread-safe event dispatcher routed by event class.

    Subscribing to ``Event`` receives every event. Handler errors are logged
    and never reach the code that dispatched the event.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscribers: dict[type[Event], list[Handler]] = defaultdict(list)

    def subscribe(self, event_type: type[E], handler: Callable[[E], None]) -> None:
        """Subscribe a handler to an event class."""
        with self._lock:
            self._subscribers[event_type].append(handler)

    def unsubscribe(self, event_type: type[E], handler: Callable[[E], None]) -> None:
        """Remove a previously subscribed handler (no-op if absent)."""
        with self._lock:
            handlers = self._subscribers.get(event_type, [])
            if handler in handlers:
                handlers.remove(handler)

    def dispatch(self, event: Event) -> None:
        """Deliver an event to its class subscribers, then to catch-all ones."""
        handlers: list[Handler] = []
        with self._lock:
            handlers.extend(self._subscribers.get(type(event), []))
            if type(event) is not Event:
                handlers.extend(self._subscribers.get(Event, []))
        for handler in handlers:
            try:
                handler(event)
            except Exception as exc:
                logger.error(f"Event handler failed for {type(event).__name__}: {exc}")
