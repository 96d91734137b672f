"""Remote record addressing.

A record is addressed as ``at://<owner>/<collection>/<rkey>``:

- owner: stable repository identifier (e.g. ``did:plc:abc123``)
- collection: dot-separated namespaced type (e.g. ``app.example.post``)
- rkey: opaque record key

Versions (CIDs) are opaque strings and are never recomputed locally.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

SCHEME = "at"

_URI_RE = re.compile(r"^at://([^/\s]+)/([^/\s]+)/([^/\s]+)$")
_NSID_RE = re.compile(r"^[A-Za-z0-9-]+(\.[A-Za-z0-9-]+)+$")


class InvalidURIError(ValueError):
    """Raised when a string is not a well-formed remote record URI."""


@dataclass(frozen=True)
class RemoteURI:
    """Parsed owner/collection/rkey triple."""

    owner: str
    collection: str
    rkey: str

    def __str__(self) -> str:
        return f"{SCHEME}://{self.owner}/{self.collection}/{self.rkey}"

    @classmethod
    def build(cls, owner: str, collection: str, rkey: str) -> RemoteURI:
        """Build a URI from its parts, validating each one."""
        return cls.parse(f"{SCHEME}://{owner}/{collection}/{rkey}")

    @classmethod
    def parse(cls, uri: str) -> RemoteURI:
        """Parse a URI string.

        Raises:
            InvalidURIError: If the string has any other shape.
        """
        match = _URI_RE.match(uri or "")
        if not match:
            raise InvalidURIError(f"Invalid remote URI: {uri}")

        owner, collection, rkey = match.groups()
        if not _NSID_RE.match(collection):
            raise InvalidURIError(f"Invalid collection in remote URI: {uri}")

        return cls(owner=owner, collection=collection, rkey=rkey)

    @classmethod
    def try_parse(cls, uri: str | None) -> RemoteURI | None:
        """Parse a URI, returning None instead of raising."""
        if not uri:
            return None
        try:
            return cls.parse(uri)
        except InvalidURIError:
            return None


@dataclass(frozen=True)
class StrongRef:
    """Pointer to a specific record revision.

    ``cid`` is empty when only the URI is known.
    """

    uri: str
    cid: str = ""

    def to_dict(self) -> dict[str, str]:
        return {"uri": self.uri, "cid": self.cid}

    @classmethod
    def from_value(cls, value: Any) -> StrongRef | None:
        """Build from a bare URI string or a ``{uri, cid}`` mapping."""
        if isinstance(value, str) and value:
            return cls(uri=value)
        if isinstance(value, dict) and value.get("uri"):
            return cls(uri=str(value["uri"]), cid=str(value.get("cid") or ""))
        return None
