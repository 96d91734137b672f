"""Remote repository API.

This module provides:
- APIError hierarchy: AuthenticationError, NotFoundError, TransportError
- RemoteRecord, RecordPage, WriteResult: wire values
- RemoteRepository: the capability the sync core consumes
- XrpcRepository: httpx implementation over com.atproto.repo.* endpoints
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

import httpx

from recordsync.core.config import RemoteConfig

logger = logging.getLogger(__name__)


class APIError(Exception):
    """Base exception for remote API errors."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class AuthenticationError(APIError):
    """Credentials are missing, expired or revoked.

    Never converted into a failure result: the remedy (re-authentication)
    is outside the sync core.
    """


class NotFoundError(APIError):
    """Record or repository not found."""


class TransportError(APIError):
    """Network-level failure (connection, timeout, decode)."""


@dataclass(frozen=True)
class RemoteRecord:
    """One record as returned by a listing."""

    uri: str
    cid: str
    value: dict[str, Any]

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RemoteRecord:
        """Create from API response dictionary."""
        return cls(uri=data["uri"], cid=data["cid"], value=dict(data.get("value") or {}))


@dataclass(frozen=True)
class RecordPage:
    """One page of a cursor-based listing.

    ``cursor`` is None when the listing is exhausted.
    """

    records: list[RemoteRecord] = field(default_factory=list)
    cursor: str | None = None


@dataclass(frozen=True)
class WriteResult:
    """Outcome of a successful create or put."""

    uri: str
    cid: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> WriteResult:
        return cls(uri=data["uri"], cid=data["cid"])


@runtime_checkable
class RemoteRepository(Protocol):
    """Capability for reading and writing records in remote repositories.

    Every method may raise APIError subclasses.
    """

    def resolve_endpoint(self, owner: str) -> str | None:
        """Resolve the network endpoint hosting an owner's repository."""
        ...

    def list_records(
        self, owner: str, collection: str, cursor: str | None, limit: int
    ) -> RecordPage:
        ...

    def create_record(
        self,
        owner: str,
        collection: str,
        payload: dict[str, Any],
        rkey: str | None = None,
    ) -> WriteResult:
        ...

    def put_record(
        self, owner: str, collection: str, rkey: str, payload: dict[str, Any]
    ) -> WriteResult:
        ...

    def delete_record(self, owner: str, collection: str, rkey: str) -> None:
        ...


EndpointResolver = Callable[[str], "str | None"]


class XrpcRepository:
    """HTTP implementation of RemoteRepository.

    Writes go to the configured service; reads go to the endpoint returned
    by ``endpoint_resolver`` for the owner (the configured service when no
    resolver is given). One httpx client is kept per endpoint.
    """

    def __init__(
        self,
        config: RemoteConfig,
        endpoint_resolver: EndpointResolver | None = None,
        validate: bool = True,
    ) -> None:
        """Initialize the repository client.

        Args:
            config: Service URL, token and timeouts.
            endpoint_resolver: Optional owner -> endpoint lookup.
            validate: Ask the service to validate records against their schema.
        """
        self._config = config
        self._resolver = endpoint_resolver
        self._validate = validate
        self._lock = threading.Lock()
        self._clients: dict[str, httpx.Client] = {}

    def close(self) -> None:
        """Close all HTTP clients."""
        with self._lock:
            for client in self._clients.values():
                client.close()
            self._clients.clear()

    def __enter__(self) -> XrpcRepository:
        """Context manager entry."""
        return self

    def __exit__(self, *args: object) -> None:
        """Context manager exit."""
        self.close()

    def _client_for(self, endpoint: str) -> httpx.Client:
        endpoint = endpoint.rstrip("/")
        with self._lock:
            client = self._clients.get(endpoint)
            if client is None:
                headers = {}
                if self._config.token:
                    headers["Authorization"] = f"Bearer {self._config.token}"
                client = httpx.Client(
                    base_url=endpoint,
                    timeout=self._config.timeout,
                    verify=self._config.verify_ssl,
                    headers=headers,
                )
                self._clients[endpoint] = client
            return client

    def _handle_response(self, response: httpx.Response) -> httpx.Response:
        """Handle API response and raise appropriate exceptions."""
        if response.status_code < 400:
            return response

        detail = _error_detail(response)
        if response.status_code == 401:
            raise AuthenticationError(detail or "Invalid or expired token", 401)
        if response.status_code == 400 and detail in ("ExpiredToken", "InvalidToken"):
            raise AuthenticationError(detail, 400)
        if response.status_code == 404:
            raise NotFoundError(detail or "Resource not found", 404)
        raise APIError(detail or "Unknown error", response.status_code)

    def _request(
        self, endpoint: str, method: str, nsid: str, **kwargs: Any
    ) -> httpx.Response:
        try:
            response = self._client_for(endpoint).request(method, f"/xrpc/{nsid}", **kwargs)
        except httpx.RequestError as e:
            raise TransportError(f"Request to {nsid} failed: {e}") from e
        return self._handle_response(response)

    def resolve_endpoint(self, owner: str) -> str | None:
        if self._resolver is None:
            return self._config.service_url
        return self._resolver(owner)

    def list_records(
        self, owner: str, collection: str, cursor: str | None, limit: int
    ) -> RecordPage:
        endpoint = self.resolve_endpoint(owner)
        if not endpoint:
            raise NotFoundError(f"Could not resolve endpoint for owner: {owner}")

        params: dict[str, Any] = {"repo": owner, "collection": collection, "limit": limit}
        if cursor:
            params["cursor"] = cursor

        response = self._request(endpoint, "GET", "com.atproto.repo.listRecords", params=params)
        try:
            data = response.json()
            records = [RemoteRecord.from_dict(r) for r in data.get("records", [])]
        except (ValueError, KeyError, TypeError) as e:
            raise TransportError(f"Malformed listRecords response: {e}") from e
        return RecordPage(records=records, cursor=data.get("cursor") or None)

    def create_record(
        self,
        owner: str,
        collection: str,
        payload: dict[str, Any],
        rkey: str | None = None,
    ) -> WriteResult:
        body: dict[str, Any] = {
            "repo": owner,
            "collection": collection,
            "record": payload,
            "validate": self._validate,
        }
        if rkey:
            body["rkey"] = rkey
        response = self._request(
            self._config.service_url, "POST", "com.atproto.repo.createRecord", json=body
        )
        return WriteResult.from_dict(response.json())

    def put_record(
        self, owner: str, collection: str, rkey: str, payload: dict[str, Any]
    ) -> WriteResult:
        response = self._request(
            self._config.service_url,
            "POST",
            "com.atproto.repo.putRecord",
            json={
                "repo": owner,
                "collection": collection,
                "rkey": rkey,
                "record": payload,
                "validate": self._validate,
            },
        )
        return WriteResult.from_dict(response.json())

    def delete_record(self, owner: str, collection: str, rkey: str) -> None:
        self._request(
            self._config.service_url,
            "POST",
            "com.atproto.repo.deleteRecord",
            json={"repo": owner, "collection": collection, "rkey": rkey},
        )


def _error_detail(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text
    if isinstance(data, dict):
        return str(data.get("error") or data.get("message") or data.get("detail") or "")
    return ""
