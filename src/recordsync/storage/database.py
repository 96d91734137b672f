"""State database using SQLAlchemy with SQLite.

Holds import progress, durable pending syncs and pending conflicts. Each
repository opens a short-lived session per operation.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session

from recordsync.storage.models import Base

if TYPE_CHECKING:
    from sqlalchemy import Engine

MEMORY = ":memory:"


class Database:
    """SQLAlchemy database for sync state.

    Uses SQLite with WAL mode for better concurrency with multiple readers.
    Pass ``":memory:"`` for a throwaway in-process database.
    """

    def __init__(self, db_path: Path | str) -> None:
        """Initialize the database.

        Args:
            db_path: Path to the SQLite database file, or ":memory:".
        """
        if str(db_path) == MEMORY:
            from sqlalchemy.pool import StaticPool

            self._db_path: Path | None = None
            self._engine: Engine = create_engine(
                "sqlite://",
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
                echo=False,
            )
        else:
            self._db_path = Path(db_path)
            self._db_path.parent.mkdir(parents=True, exist_ok=True)

            # check_same_thread=False for multi-threaded access
            self._engine = create_engine(
                f"sqlite:///{self._db_path}",
                connect_args={"check_same_thread": False},
                echo=False,
            )

        event.listen(self._engine, "connect", _set_sqlite_pragmas)

        Base.metadata.create_all(self._engine)

    @property
    def engine(self) -> Engine:
        return self._engine

    def close(self) -> None:
        """Close the database connection."""
        self._engine.dispose()

    def session(self) -> Session:
        """Create a new database session.

        Returned rows must be expunged before the session closes.
        """
        return Session(self._engine, expire_on_commit=False)


def _set_sqlite_pragmas(dbapi_connection, connection_record) -> None:  # type: ignore[no-untyped-def]
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()
