# src/r2session/storage/protocols.py
"""
Shared Protocol definitions for the async S3 client.

aioboto3 ships no type information, so the session and the operations type the
client against these Protocols. Test doubles implement the same surface.
"""

from __future__ import annotations

from types import TracebackType
from typing import Mapping, Protocol, runtime_checkable


S3Response = Mapping[str, object]


# ---------------------------------------------------------------------------
# S3 Response Protocols
# ---------------------------------------------------------------------------


@runtime_checkable
class StreamingBodyProtocol(Protocol):
    """Protocol for the aiobotocore StreamingBody of a GetObject response."""

    async def read(self) -> bytes: ...

    async def __aenter__(self) -> StreamingBodyProtocol: ...

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> bool | None: ...


# ---------------------------------------------------------------------------
# S3 Client Protocol
# ---------------------------------------------------------------------------


class S3ClientProtocol(Protocol):
    """The subset of the aioboto3 S3 client the storage operations use."""

    async def list_buckets(self, **kwargs: object) -> S3Response: ...
    async def list_objects_v2(self, **kwargs: object) -> S3Response: ...
    async def put_object(self, **kwargs: object) -> S3Response: ...
    async def get_object(self, **kwargs: object) -> S3Response: ...
    async def delete_objects(self, **kwargs: object) -> S3Response: ...
    async def generate_presigned_url(
        self,
        ClientMethod: str,
        Params: Mapping[str, object] | None = None,
        ExpiresIn: int = 3600,
        HttpMethod: str | None = None,
    ) -> str: ...


# ---------------------------------------------------------------------------
# Async Context Manager Protocol
# ---------------------------------------------------------------------------


class ClientContextProtocol(Protocol):
    """Protocol for the async context manager returned by ``Session.client()``."""

    async def __aenter__(self) -> S3ClientProtocol: ...
    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> bool | None: ...


__all__ = [
    "S3Response",
    "StreamingBodyProtocol",
    "S3ClientProtocol",
    "ClientContextProtocol",
]
