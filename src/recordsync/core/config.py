"""Configuration classes for recordsync.

This module provides:
- RemoteConfig: connection settings for the remote repository API
- ImportConfig, SyncFilterConfig, ConflictConfig, PendingSyncConfig,
  ReferenceConfig, ColumnConfig: per-subsystem settings
- RecordSyncConfig: aggregate of all of the above
- load_config / save_config: JSON persistence under ~/.recordsync
"""

from __future__ import annotations

import json
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

from recordsync.core.types import CommitOperation, ConflictStrategy

CONFLICT_STRATEGY_ENV = "RECORDSYNC_CONFLICT_STRATEGY"


@dataclass
class RemoteConfig:
    """Configuration for connecting to a remote repository endpoint.

    Attributes:
        service_url: Base URL of the repository host (e.g., "https://pds.example.com").
        token: Access token sent as a Bearer credential.
        timeout: Request timeout in seconds.
        verify_ssl: Whether to verify SSL certificates (default True).
    """

    service_url: str
    token: str | None = None
    timeout: float = 30.0
    verify_ssl: bool = True

    def __post_init__(self) -> None:
        """Normalize service URL."""
        self.service_url = self.service_url.rstrip("/")

    @property
    def is_secure(self) -> bool:
        """Check if using HTTPS."""
        return self.service_url.startswith("https://")


@dataclass
class ImportConfig:
    """Importer paging settings.

    Attributes:
        page_size: Records requested per page.
        page_delay_ms: Pause between pages in milliseconds (rate limiting).
    """

    page_size: int = 100
    page_delay_ms: int = 100

    @property
    def page_delay(self) -> float:
        """Page delay in seconds."""
        return max(self.page_delay_ms, 0) / 1000.0


@dataclass
class SyncFilterConfig:
    """Which remote commits are applied locally.

    ``None`` means no filtering on that axis.
    """

    owners: list[str] | None = None
    operations: list[CommitOperation] | None = None

    def __post_init__(self) -> None:
        if self.operations is not None:
            self.operations = [CommitOperation(op) for op in self.operations]


@dataclass
class ConflictConfig:
    """Conflict handling settings."""

    strategy: ConflictStrategy = ConflictStrategy.REMOTE_WINS

    def __post_init__(self) -> None:
        if not isinstance(self.strategy, ConflictStrategy):
            self.strategy = ConflictStrategy.from_config(self.strategy)


@dataclass
class PendingSyncConfig:
    """Retry queue settings.

    Attributes:
        enabled: Whether failed writes are captured at all.
        ttl: Seconds after which an entry expires.
        max_attempts: Attempts after which an entry is abandoned.
        auto_retry: Retry automatically when an owner re-authenticates.
        log: Emit queue activity to the log.
    """

    enabled: bool = False
    ttl: int = 3600
    max_attempts: int = 3
    auto_retry: bool = True
    log: bool = False


@dataclass
class ReferenceConfig:
    """Reference record settings."""

    rollback_on_failure: bool = True


@dataclass
class ColumnConfig:
    """Attribute names used to store remote metadata on local models."""

    uri: str = "remote_uri"
    version: str = "remote_cid"
    synced_at: str = "remote_synced_at"
    updated_at: str = "updated_at"


@dataclass
class RecordSyncConfig:
    """Top-level configuration."""

    remote: RemoteConfig | None = None
    database_path: Path | None = None
    imports: ImportConfig = field(default_factory=ImportConfig)
    sync: SyncFilterConfig = field(default_factory=SyncFilterConfig)
    conflicts: ConflictConfig = field(default_factory=ConflictConfig)
    pending_syncs: PendingSyncConfig = field(default_factory=PendingSyncConfig)
    references: ReferenceConfig = field(default_factory=ReferenceConfig)
    columns: ColumnConfig = field(default_factory=ColumnConfig)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RecordSyncConfig:
        """Create from a configuration dictionary."""
        remote = data.get("remote")
        database_path = data.get("database_path")
        config = cls(
            remote=RemoteConfig(**remote) if remote else None,
            database_path=Path(database_path).expanduser() if database_path else None,
            imports=ImportConfig(**data.get("imports", {})),
            sync=SyncFilterConfig(**data.get("sync", {})),
            conflicts=ConflictConfig(**data.get("conflicts", {})),
            pending_syncs=PendingSyncConfig(**data.get("pending_syncs", {})),
            references=ReferenceConfig(**data.get("references", {})),
            columns=ColumnConfig(**data.get("columns", {})),
        )

        env_strategy = os.environ.get(CONFLICT_STRATEGY_ENV)
        if env_strategy:
            config.conflicts.strategy = ConflictStrategy.from_config(env_strategy)

        return config

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable dictionary."""
        data = asdict(self)
        data["database_path"] = str(self.database_path) if self.database_path else None
        data["conflicts"]["strategy"] = self.conflicts.strategy.value
        if self.sync.operations is not None:
            data["sync"]["operations"] = [op.value for op in self.sync.operations]
        return data


def get_config_dir() -> Path:
    """Get the configuration directory for recordsync.

    Returns:
        Path to ~/.recordsync or equivalent.
    """
    return Path.home() / ".recordsync"


def get_config_file() -> Path:
    """Get the path to the config file."""
    return get_config_dir() / "config.json"


def load_config(path: Path | None = None) -> RecordSyncConfig:
    """Load configuration from a JSON file.

    Missing files yield the defaults.
    """
    config_file = path or get_config_file()
    if config_file.exists():
        return RecordSyncConfig.from_dict(dict(json.loads(config_file.read_text())))
    return RecordSyncConfig.from_dict({})


def save_config(config: RecordSyncConfig, path: Path | None = None) -> None:
    """Save configuration to a JSON file."""
    config_file = path or get_config_file()
    config_file.parent.mkdir(parents=True, exist_ok=True)
    config_file.write_text(json.dumps(config.to_dict(), indent=2))
