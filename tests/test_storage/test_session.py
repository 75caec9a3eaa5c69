# tests/test_storage/test_session.py
"""Tests for StorageSession lifecycle and the client binding swap."""

from __future__ import annotations

import asyncio

import pytest
from pydantic import SecretStr

from r2session.config import ClientSettings, Credentials
from r2session.result import Failure, Success
from r2session.storage import (
    InvalidArgument,
    NotInitialized,
    StorageOperations,
    StorageSession,
    aioboto3_client_factory,
)
from tests.helpers import (
    FakeClientContext,
    FakeClientFactory,
    FakeS3Client,
    expect_failure,
    expect_success,
)


@pytest.mark.asyncio
async def test_handle_absent_before_initialize(session: StorageSession) -> None:
    """A fresh session has no client and reports NotInitialized."""
    assert await session.current_handle() is None
    assert await session.current_credentials() is None
    assert isinstance(expect_failure(await session.require_handle()), NotInitialized)


@pytest.mark.asyncio
async def test_initialize_builds_account_endpoint(
    session: StorageSession, client_factory: FakeClientFactory, fake_client: FakeS3Client
) -> None:
    """Endpoint is derived from the account id; the built client becomes current."""
    credentials = expect_success(await session.initialize("acct42", "AKID", "shh"))

    assert credentials.account_id == "acct42"
    assert credentials.secret_key.get_secret_value() == "shh"
    assert client_factory.requests[0][1] == "https://acct42.r2.cloudflarestorage.com"
    assert await session.current_handle() is fake_client
    assert client_factory.contexts[0].entered


@pytest.mark.asyncio
async def test_reinitialize_replaces_client_and_credentials() -> None:
    """Second initialize fully replaces the first binding (last call wins)."""
    factory = FakeClientFactory()
    async with StorageSession(client_factory=factory) as session:
        expect_success(await session.initialize("acct", "first-key", "first-secret"))
        first_client = await session.current_handle()

        expect_success(await session.initialize("acct", "second-key", "second-secret"))
        second_client = await session.current_handle()
        credentials = await session.current_credentials()

        assert second_client is not first_client
        assert isinstance(second_client, FakeS3Client)
        assert second_client.name == "second-key"
        assert credentials is not None
        assert credentials.access_key == "second-key"
        assert credentials.secret_key.get_secret_value() == "second-secret"
        # replaced client stays open for operations that borrowed it
        assert not factory.contexts[0].exited

    assert all(context.exited for context in factory.contexts)


@pytest.mark.asyncio
async def test_concurrent_initialize_never_mixes_bindings() -> None:
    """Whichever initialize wins, its client and its credentials are observed together."""
    factory = FakeClientFactory()
    async with StorageSession(client_factory=factory) as session:
        results = await asyncio.gather(
            *[session.initialize("acct", f"key-{n}", f"secret-{n}") for n in range(10)]
        )
        assert all(isinstance(result, Success) for result in results)

        client = await session.current_handle()
        credentials = await session.current_credentials()
        assert isinstance(client, FakeS3Client)
        assert credentials is not None
        assert client.name == credentials.access_key
        assert credentials.secret_key.get_secret_value() == client.name.replace("key", "secret")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "account_id, access_key, secret_key, field",
    [
        ("", "key", "secret", "account_id"),
        ("acct", "", "secret", "access_key"),
        ("acct", "key", "", "secret_key"),
    ],
)
async def test_initialize_rejects_empty_credentials(
    session: StorageSession,
    client_factory: FakeClientFactory,
    account_id: str,
    access_key: str,
    secret_key: str,
    field: str,
) -> None:
    """Empty credential fields fail validation before any client is built."""
    error = expect_failure(await session.initialize(account_id, access_key, secret_key))

    assert isinstance(error, InvalidArgument)
    assert error.field == field
    assert client_factory.requests == []
    assert await session.current_handle() is None


@pytest.mark.asyncio
async def test_failed_reinitialize_keeps_previous_binding(
    session: StorageSession, fake_client: FakeS3Client
) -> None:
    expect_success(await session.initialize("acct", "key", "secret"))

    assert isinstance(await session.initialize("acct", "", "secret"), Failure)
    assert await session.current_handle() is fake_client


@pytest.mark.asyncio
async def test_rejected_endpoint_is_invalid_account() -> None:
    """A factory that rejects the endpoint maps to InvalidArgument(account_id)."""

    def rejecting_factory(credentials: Credentials, settings: ClientSettings) -> FakeClientContext:
        raise ValueError(f"Invalid endpoint: {settings.endpoint_for(credentials.account_id)}")

    session = StorageSession(client_factory=rejecting_factory)
    error = expect_failure(await session.initialize("bad host", "key", "secret"))

    assert isinstance(error, InvalidArgument)
    assert error.field == "account_id"
    assert "Invalid endpoint" in error.message


@pytest.mark.asyncio
async def test_aclose_returns_to_uninitialized(
    session: StorageSession, client_factory: FakeClientFactory
) -> None:
    expect_success(await session.initialize("acct", "key", "secret"))

    await session.aclose()

    assert await session.current_handle() is None
    assert client_factory.contexts[0].exited
    ops = StorageOperations(session)
    assert isinstance(expect_failure(await ops.list_buckets()), NotInitialized)


@pytest.mark.asyncio
async def test_custom_endpoint_domain() -> None:
    factory = FakeClientFactory()
    settings = ClientSettings(endpoint_domain="storage.example.net")
    async with StorageSession(settings, client_factory=factory) as session:
        expect_success(await session.initialize("tenant", "key", "secret"))

    assert factory.requests[0][1] == "https://tenant.storage.example.net"


@pytest.mark.asyncio
async def test_aioboto3_client_is_bound_to_account_endpoint() -> None:
    """The real factory builds an endpoint-bound client without any network call."""
    credentials = Credentials(account_id="acct42", access_key="AKID", secret_key=SecretStr("shh"))
    async with aioboto3_client_factory(credentials, ClientSettings()) as client:
        endpoint = client.meta.endpoint_url  # type: ignore[attr-defined]
        assert endpoint == "https://acct42.r2.cloudflarestorage.com"


@pytest.mark.asyncio
async def test_presigned_url_is_signed_offline_with_real_client() -> None:
    """Presigning is local: the URL carries a one-hour expiry and a signature, not the secret."""
    async with StorageSession() as session:
        expect_success(await session.initialize("acct42", "AKIDEXAMPLE", "very-secret"))
        url = expect_success(await StorageOperations(session).get_presigned_url("docs", "a b.txt"))

    assert url.startswith("https://")
    assert "X-Amz-Expires=3600" in url
    assert "X-Amz-Signature=" in url
    assert "AKIDEXAMPLE" in url
    assert "very-secret" not in url
