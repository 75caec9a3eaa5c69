# tests/helpers/__init__.py
"""Shared test utilities: Result unwrapping and the in-memory S3 client."""

from __future__ import annotations

from tests.helpers.fake_s3 import (
    FIXED_TIME,
    FakeClientContext,
    FakeClientFactory,
    FakeS3Client,
    FakeStreamingBody,
    client_error,
)
from tests.helpers.result_utils import E, T, expect_failure, expect_success

__all__ = [
    # Result unwrapping
    "expect_success",
    "expect_failure",
    "T",
    "E",
    # Fake S3
    "FIXED_TIME",
    "FakeClientContext",
    "FakeClientFactory",
    "FakeS3Client",
    "FakeStreamingBody",
    "client_error",
]
