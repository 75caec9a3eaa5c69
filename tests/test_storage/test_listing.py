# tests/test_storage/test_listing.py
"""Tests for bucket listing, single-page object listing and bucket statistics."""

from __future__ import annotations

from typing import Awaitable, Callable

import pytest

from r2session.storage import (
    BucketStats,
    InvalidArgument,
    MalformedResponse,
    NotInitialized,
    PaginationLoop,
    S3AccessDenied,
    S3BucketNotFound,
    StorageFailure,
    StorageOperations,
    StorageSession,
)
from r2session.result import Result
from tests.helpers import FIXED_TIME, FakeS3Client, expect_failure, expect_success


# =============================================================================
# Buckets
# =============================================================================


@pytest.mark.asyncio
async def test_list_buckets_in_service_order(
    ops: StorageOperations, fake_client: FakeS3Client
) -> None:
    fake_client.add_bucket("photos")
    fake_client.add_bucket("backups")

    assert expect_success(await ops.list_buckets()) == ["photos", "backups"]
    assert len(fake_client.calls_to("ListBuckets")) == 1


@pytest.mark.asyncio
async def test_list_buckets_empty_account(ops: StorageOperations) -> None:
    assert expect_success(await ops.list_buckets()) == []


@pytest.mark.asyncio
async def test_list_buckets_unnamed_entry_becomes_empty_string(
    ops: StorageOperations, fake_client: FakeS3Client
) -> None:
    fake_client.add_bucket("photos")
    fake_client.unnamed_buckets = 1

    assert expect_success(await ops.list_buckets()) == ["photos", ""]


@pytest.mark.asyncio
async def test_list_buckets_rejected_credentials(
    ops: StorageOperations, fake_client: FakeS3Client
) -> None:
    fake_client.fail("ListBuckets", "InvalidAccessKeyId", "The access key ID is invalid")

    error = expect_failure(await ops.list_buckets())

    assert isinstance(error, S3AccessDenied)
    assert error.operation == "ListBuckets"


# =============================================================================
# Single-page object listing
# =============================================================================


@pytest.mark.asyncio
async def test_list_objects_groups_folders(
    ops: StorageOperations, fake_client: FakeS3Client
) -> None:
    fake_client.put("docs", "readme.txt", b"hello")
    fake_client.put("docs", "logs/", b"")
    fake_client.put("docs", "logs/a.log", b"aaa")
    fake_client.put("docs", "photos/2024/cat.jpg", b"meow")

    listing = expect_success(await ops.list_objects("docs", "", "/"))

    assert [folder.key for folder in listing.folders] == ["logs/", "photos/"]
    assert [entry.key for entry in listing.files] == ["readme.txt"]
    entry = listing.files[0]
    assert entry.size == 5
    assert entry.last_modified == FIXED_TIME
    assert entry.kind == "file"
    assert listing.folders[0].kind == "folder"
    assert not listing.is_truncated
    assert listing.next_token is None


@pytest.mark.asyncio
async def test_list_objects_inside_folder_includes_marker(
    ops: StorageOperations, fake_client: FakeS3Client
) -> None:
    fake_client.put("docs", "logs/", b"")
    fake_client.put("docs", "logs/a.log", b"aaa")

    listing = expect_success(await ops.list_objects("docs", "logs/", "/"))

    assert [entry.key for entry in listing.files] == ["logs/", "logs/a.log"]
    assert listing.folders == ()


@pytest.mark.asyncio
async def test_list_objects_returns_only_first_page(
    ops: StorageOperations, fake_client: FakeS3Client
) -> None:
    """One call, one request; the caller continues with the returned token."""
    fake_client.page_size = 2
    for n in range(5):
        fake_client.put("docs", f"file-{n}.txt", b"x")

    first = expect_success(await ops.list_objects("docs"))

    assert [entry.key for entry in first.files] == ["file-0.txt", "file-1.txt"]
    assert first.is_truncated
    assert first.next_token is not None
    assert len(fake_client.calls_to("ListObjectsV2")) == 1

    second = expect_success(await ops.list_objects("docs", continuation_token=first.next_token))

    assert [entry.key for entry in second.files] == ["file-2.txt", "file-3.txt"]
    assert fake_client.calls_to("ListObjectsV2")[1].params["ContinuationToken"] == first.next_token


@pytest.mark.asyncio
async def test_list_objects_omits_unset_parameters(
    ops: StorageOperations, fake_client: FakeS3Client
) -> None:
    fake_client.add_bucket("docs")

    expect_success(await ops.list_objects("docs"))

    assert fake_client.calls_to("ListObjectsV2")[0].params == {"Bucket": "docs"}


@pytest.mark.asyncio
async def test_list_objects_missing_timestamp_is_malformed(
    ops: StorageOperations, fake_client: FakeS3Client
) -> None:
    fake_client.put("docs", "good.txt", b"x")
    fake_client.put("docs", "odd.txt", b"x", last_modified=None)

    error = expect_failure(await ops.list_objects("docs"))

    assert isinstance(error, MalformedResponse)
    assert "odd.txt" in error.message


@pytest.mark.asyncio
async def test_list_objects_missing_bucket(ops: StorageOperations) -> None:
    error = expect_failure(await ops.list_objects("nope", "", "/"))

    assert isinstance(error, S3BucketNotFound)
    assert error.bucket_name == "nope"


@pytest.mark.asyncio
async def test_list_objects_empty_bucket_name(
    ops: StorageOperations, fake_client: FakeS3Client
) -> None:
    error = expect_failure(await ops.list_objects(""))

    assert isinstance(error, InvalidArgument)
    assert error.field == "bucket"
    assert fake_client.calls == []


# =============================================================================
# Bucket statistics
# =============================================================================


@pytest.mark.asyncio
async def test_stats_of_empty_bucket(ops: StorageOperations, fake_client: FakeS3Client) -> None:
    fake_client.add_bucket("empty")

    assert expect_success(await ops.get_bucket_stats("empty")) == BucketStats(0, 0)


@pytest.mark.asyncio
async def test_stats_follow_every_page(ops: StorageOperations, fake_client: FakeS3Client) -> None:
    """Page size 1 forces one request per object plus none extra."""
    fake_client.page_size = 1
    fake_client.put("data", "a", b"x" * 10)
    fake_client.put("data", "b", b"x" * 20)
    fake_client.put("data", "c", b"x" * 30)

    stats = expect_success(await ops.get_bucket_stats("data"))

    assert stats == BucketStats(total_size=60, object_count=3)
    assert len(fake_client.calls_to("ListObjectsV2")) == 3


@pytest.mark.asyncio
async def test_stats_count_objects_in_every_folder(
    ops: StorageOperations, fake_client: FakeS3Client
) -> None:
    fake_client.put("data", "top.bin", b"x" * 4)
    fake_client.put("data", "deep/er/file.bin", b"x" * 6)
    fake_client.put("data", "deep/", b"")

    stats = expect_success(await ops.get_bucket_stats("data"))

    assert stats == BucketStats(total_size=10, object_count=3)
    assert "Delimiter" not in fake_client.calls_to("ListObjectsV2")[0].params


@pytest.mark.asyncio
async def test_stats_abort_on_repeated_token(
    ops: StorageOperations, fake_client: FakeS3Client
) -> None:
    fake_client.put("data", "a", b"x")
    fake_client.stuck_token = "same-token"

    error = expect_failure(await ops.get_bucket_stats("data"))

    assert isinstance(error, PaginationLoop)
    assert error.token == "same-token"
    assert len(fake_client.calls_to("ListObjectsV2")) == 2


@pytest.mark.asyncio
async def test_stats_truncated_page_without_token(
    ops: StorageOperations, fake_client: FakeS3Client
) -> None:
    fake_client.put("data", "a", b"x")
    fake_client.stuck_token = ""

    error = expect_failure(await ops.get_bucket_stats("data"))

    assert isinstance(error, MalformedResponse)
    assert len(fake_client.calls_to("ListObjectsV2")) == 1


@pytest.mark.asyncio
async def test_stats_fail_on_later_page_error(
    ops: StorageOperations, fake_client: FakeS3Client
) -> None:
    fake_client.page_size = 1
    fake_client.put("data", "a", b"x")
    fake_client.put("data", "b", b"x")
    fake_client.fail("ListObjectsV2", "AccessDenied", on_call=2)

    assert isinstance(expect_failure(await ops.get_bucket_stats("data")), S3AccessDenied)


# =============================================================================
# Uninitialized session
# =============================================================================

Call = Callable[[StorageOperations], Awaitable[Result[object, StorageFailure]]]

UNINITIALIZED_CALLS: list[tuple[str, Call]] = [
    ("list_buckets", lambda ops: ops.list_buckets()),
    ("list_objects", lambda ops: ops.list_objects("docs")),
    ("get_bucket_stats", lambda ops: ops.get_bucket_stats("docs")),
    ("create_folder", lambda ops: ops.create_folder("docs", "new")),
    ("delete_objects", lambda ops: ops.delete_objects("docs", ["a"])),
    ("delete_prefix", lambda ops: ops.delete_prefix("docs", "logs/")),
    ("delete_selection", lambda ops: ops.delete_selection("docs", ["a"], ["b/"])),
    ("upload_file", lambda ops: ops.upload_file("docs", "a", "/nonexistent")),
    ("upload_files", lambda ops: ops.upload_files("docs", "", ["/nonexistent"])),
    ("download_file", lambda ops: ops.download_file("docs", "a", "/nonexistent")),
    ("read_text_file", lambda ops: ops.read_text_file("docs", "a")),
    ("get_presigned_url", lambda ops: ops.get_presigned_url("docs", "a")),
]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "call", [call for _, call in UNINITIALIZED_CALLS], ids=[name for name, _ in UNINITIALIZED_CALLS]
)
async def test_every_operation_requires_initialize(
    session: StorageSession, fake_client: FakeS3Client, call: Call
) -> None:
    """Before initialize, each operation fails with NotInitialized and sends nothing."""
    error = expect_failure(await call(StorageOperations(session)))

    assert isinstance(error, NotInitialized)
    assert error.message == "Client not initialized"
    assert fake_client.calls == []
