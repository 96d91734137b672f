"""Remote repository capability and its HTTP implementation."""

from recordsync.remote.api import (
    APIError,
    AuthenticationError,
    EndpointResolver,
    NotFoundError,
    RecordPage,
    RemoteRecord,
    RemoteRepository,
    TransportError,
    WriteResult,
    XrpcRepository,
)

__all__ = [
    "APIError",
    "AuthenticationError",
    "EndpointResolver",
    "NotFoundError",
    "RecordPage",
    "RemoteRecord",
    "RemoteRepository",
    "TransportError",
    "WriteResult",
    "XrpcRepository",
]
