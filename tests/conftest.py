# tests/conftest.py
"""Global PyTest fixtures for the test-suite.

No test touches the network: sessions are built with a client factory that
returns the in-memory ``FakeS3Client``.
"""

from __future__ import annotations

import signal
from types import FrameType
from typing import AsyncGenerator, Callable, Generator

import pytest

from r2session.storage import StorageOperations, StorageSession
from tests.helpers import FakeClientFactory, FakeS3Client, expect_success

DEFAULT_TEST_TIMEOUT_SECONDS = 10.0

ACCOUNT_ID = "0123456789abcdef"
ACCESS_KEY = "test-access-key"
SECRET_KEY = "test-secret-key"


def _build_timeout_handler(
    timeout_seconds: float,
) -> Callable[[int, FrameType | None], None]:
    """Create SIGALRM handler that fails the test when timeout is reached."""

    def _handle_timeout(signum: int, frame: FrameType | None) -> None:
        pytest.fail(
            f"Test exceeded {timeout_seconds:.0f}s timeout (includes setup/teardown)",
            pytrace=True,
        )

    return _handle_timeout


def _resolve_timeout_seconds(request: pytest.FixtureRequest) -> float:
    """Return timeout for current test (marker override allowed)."""
    marker = request.node.get_closest_marker("timeout")
    if marker is None:
        return DEFAULT_TEST_TIMEOUT_SECONDS

    raw_value = marker.kwargs.get("seconds", marker.args[0] if marker.args else None)
    if raw_value is None:
        pytest.fail("timeout marker requires seconds argument", pytrace=True)

    seconds = float(raw_value)
    if seconds <= 0:
        pytest.fail("timeout marker must be positive seconds", pytrace=True)

    return seconds


@pytest.fixture(autouse=True)
def per_test_timeout(request: pytest.FixtureRequest) -> Generator[None, None, None]:
    """Fail any test that runs longer than the default timeout.

    Pagination bugs show up as endless loops, so a hang must fail, not stall CI.
    """
    if not hasattr(signal, "SIGALRM") or not hasattr(signal, "setitimer"):
        yield
        return

    timeout_seconds = _resolve_timeout_seconds(request)
    handler = _build_timeout_handler(timeout_seconds)
    previous_handler = signal.getsignal(signal.SIGALRM)
    signal.signal(signal.SIGALRM, handler)
    signal.setitimer(signal.ITIMER_REAL, timeout_seconds)
    try:
        yield
    finally:
        signal.setitimer(signal.ITIMER_REAL, 0.0)
        signal.signal(signal.SIGALRM, previous_handler)


# =========================================================================== #
#                         STORAGE SESSION FIXTURES                            #
# =========================================================================== #


@pytest.fixture
def fake_client() -> FakeS3Client:
    """Fake client the initialized session will hand to operations."""
    return FakeS3Client(name="primary")


@pytest.fixture
def client_factory(fake_client: FakeS3Client) -> FakeClientFactory:
    return FakeClientFactory(fake_client)


@pytest.fixture
async def session(client_factory: FakeClientFactory) -> AsyncGenerator[StorageSession, None]:
    """Uninitialized session; closed after the test."""
    async with StorageSession(client_factory=client_factory) as storage_session:
        yield storage_session


@pytest.fixture
async def ops(session: StorageSession) -> StorageOperations:
    """Operations over a session initialized with the test credentials."""
    expect_success(await session.initialize(ACCOUNT_ID, ACCESS_KEY, SECRET_KEY))
    return StorageOperations(session)
