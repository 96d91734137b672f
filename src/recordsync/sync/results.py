"""Outcomes of remote write operations."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class SyncResult:
    """Outcome of a single record write."""

    success: bool
    uri: str | None = None
    cid: str | None = None
    error: str | None = None

    @property
    def is_success(self) -> bool:
        return self.success

    @property
    def is_failed(self) -> bool:
        return not self.success

    @classmethod
    def ok(cls, uri: str, cid: str) -> SyncResult:
        return cls(success=True, uri=uri, cid=cid)

    @classmethod
    def failed(cls, error: str) -> SyncResult:
        return cls(success=False, error=error)


@dataclass(frozen=True)
class ReferenceSyncResult:
    """Outcome of writing a main record together with its reference record.

    A successful result with only ``main_uri`` set means the reference write
    failed and no rollback was requested.
    """

    success: bool
    main_uri: str | None = None
    main_cid: str | None = None
    reference_uri: str | None = None
    reference_cid: str | None = None
    error: str | None = None

    @property
    def is_success(self) -> bool:
        return self.success

    @property
    def is_failed(self) -> bool:
        return not self.success

    @property
    def is_fully_synced(self) -> bool:
        return self.success and bool(self.main_uri) and bool(self.reference_uri)

    @property
    def has_main_only(self) -> bool:
        return self.success and bool(self.main_uri) and not self.reference_uri

    @property
    def has_reference_only(self) -> bool:
        return self.success and bool(self.reference_uri) and not self.main_uri

    @classmethod
    def ok(
        cls,
        main_uri: str | None,
        main_cid: str | None,
        reference_uri: str | None = None,
        reference_cid: str | None = None,
    ) -> ReferenceSyncResult:
        return cls(
            success=True,
            main_uri=main_uri,
            main_cid=main_cid,
            reference_uri=reference_uri,
            reference_cid=reference_cid,
        )

    @classmethod
    def reference_ok(
        cls,
        reference_uri: str,
        reference_cid: str,
        main_uri: str | None = None,
        main_cid: str | None = None,
    ) -> ReferenceSyncResult:
        return cls.ok(main_uri, main_cid, reference_uri, reference_cid)

    @classmethod
    def failed(cls, error: str) -> ReferenceSyncResult:
        return cls(success=False, error=error)
