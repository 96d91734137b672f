"""Resumable import of remote collections."""

from recordsync.importer.result import ImportResult
from recordsync.importer.service import Importer
from recordsync.importer.state import (
    ImportState,
    ImportStateRepository,
    InvalidTransitionError,
)

__all__ = [
    "ImportResult",
    "ImportState",
    "ImportStateRepository",
    "Importer",
    "InvalidTransitionError",
]
