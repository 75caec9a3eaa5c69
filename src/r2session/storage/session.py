# src/r2session/storage/session.py
"""
Session state: the single authenticated S3 client and the credentials it was built from.

The client and its credentials are stored together as one immutable binding and
replaced in a single assignment under an ``asyncio.Lock``, so no reader can see
a new client paired with old credentials or the reverse. The lock is held only
for that read or assignment, never across a network exchange.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from types import TracebackType
from typing import Callable

import aioboto3
from pydantic import SecretStr, ValidationError

from ..config import ClientSettings, Credentials
from ..result import Failure, Result, Success
from .errors import InvalidArgument, NotInitialized, StorageFailure
from .protocols import ClientContextProtocol, S3ClientProtocol


_logger = logging.getLogger(__name__)

ClientFactory = Callable[[Credentials, ClientSettings], ClientContextProtocol]


def aioboto3_client_factory(
    credentials: Credentials, settings: ClientSettings
) -> ClientContextProtocol:
    """Build an unopened aioboto3 S3 client context bound to the account endpoint."""
    session = aioboto3.Session(
        aws_access_key_id=credentials.access_key,
        aws_secret_access_key=credentials.secret_key.get_secret_value(),
        region_name=settings.region_name,
    )
    context: ClientContextProtocol = session.client(
        "s3",
        endpoint_url=settings.endpoint_for(credentials.account_id),
        config=settings.boto_config(),
    )
    return context


@dataclass(frozen=True)
class _Binding:
    """A live client together with the credentials that produced it."""

    client: S3ClientProtocol
    credentials: Credentials
    context: ClientContextProtocol


class StorageSession:
    """
    Holds zero or one authenticated S3 client.

    Lifecycle: uninitialized -> ready (``initialize``) -> ready again on each
    re-initialization (last call wins) -> closed (``aclose``).

    A replaced client is not closed immediately because operations that
    borrowed it may still be awaiting responses; it is closed by ``aclose``.

    Usage:
        async with StorageSession() as session:
            await session.initialize(account_id, access_key, secret_key)
            ops = StorageOperations(session)
            names = await ops.list_buckets()
    """

    def __init__(
        self,
        settings: ClientSettings | None = None,
        client_factory: ClientFactory = aioboto3_client_factory,
    ) -> None:
        self.settings = settings or ClientSettings()
        self._client_factory = client_factory
        self._lock = asyncio.Lock()
        self._binding: _Binding | None = None
        self._retired: list[_Binding] = []

    async def __aenter__(self) -> StorageSession:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> bool | None:
        await self.aclose()
        return None

    async def initialize(
        self, account_id: str, access_key: str, secret_key: str
    ) -> Result[Credentials, StorageFailure]:
        """
        Build a client for ``account_id`` and make it the current one.

        Returns:
            Success(Credentials) once the new binding is installed
            Failure(InvalidArgument) if a credential field is empty or the
            derived endpoint is rejected; the previous binding stays in place
        """
        try:
            credentials = Credentials(
                account_id=account_id,
                access_key=access_key,
                secret_key=SecretStr(secret_key),
            )
        except ValidationError as exc:
            first = exc.errors()[0]
            field = ".".join(str(part) for part in first["loc"]) or "credentials"
            return Failure(InvalidArgument(field=field, message=first["msg"]))
        if not credentials.secret_key.get_secret_value():
            return Failure(InvalidArgument(field="secret_key", message="must not be empty"))

        try:
            context = self._client_factory(credentials, self.settings)
            client = await context.__aenter__()
        except ValueError as exc:
            # botocore rejects endpoint URLs built from malformed account ids
            return Failure(InvalidArgument(field="account_id", message=str(exc)))

        binding = _Binding(client=client, credentials=credentials, context=context)
        async with self._lock:
            previous = self._binding
            self._binding = binding
            if previous is not None:
                self._retired.append(previous)

        _logger.info(
            "Storage session initialized for account %s (endpoint %s)",
            credentials.account_id,
            self.settings.endpoint_for(credentials.account_id),
        )
        return Success(credentials)

    async def current_handle(self) -> S3ClientProtocol | None:
        """Return the current client, or None if the session is not initialized."""
        async with self._lock:
            binding = self._binding
        return binding.client if binding is not None else None

    async def current_credentials(self) -> Credentials | None:
        async with self._lock:
            binding = self._binding
        return binding.credentials if binding is not None else None

    async def require_handle(self) -> Result[S3ClientProtocol, NotInitialized]:
        """Current client, or Failure(NotInitialized) without touching the network."""
        client = await self.current_handle()
        if client is None:
            return Failure(NotInitialized())
        return Success(client)

    async def aclose(self) -> None:
        """Close the current and all replaced clients; the session becomes uninitialized."""
        async with self._lock:
            bindings = self._retired + ([self._binding] if self._binding is not None else [])
            self._binding = None
            self._retired = []

        for binding in bindings:
            await binding.context.__aexit__(None, None, None)
        if bindings:
            _logger.debug("Closed %d storage client(s)", len(bindings))


__all__ = ["ClientFactory", "StorageSession", "aioboto3_client_factory"]
