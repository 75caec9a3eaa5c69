"""Cursor-driven ListObjectsV2 scans and response parsing.

``fold_objects`` follows continuation tokens until the service reports
``IsTruncated`` false. A short page does not end the scan; only the flag does.
A token that comes back a second time aborts the scan with ``PaginationLoop``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, TypeVar

from ..result import Failure, Result, Success
from .errors import MalformedResponse, PaginationLoop, StorageFailure
from .models import FolderEntry, ObjectEntry, ObjectListing
from .protocols import S3ClientProtocol, S3Response
from .s3_errors import capture_s3_errors


_logger = logging.getLogger(__name__)

A = TypeVar("A")


@dataclass(frozen=True)
class ScannedObject:
    """Key and size of one object seen during a full scan."""

    key: str
    size: int


@dataclass(frozen=True)
class ScanPage:
    objects: tuple[ScannedObject, ...]
    is_truncated: bool
    next_token: str | None


def response_items(response: S3Response, name: str) -> list[dict[str, object]]:
    raw = response.get(name)
    if not isinstance(raw, list):
        return []
    return [item for item in raw if isinstance(item, dict)]


def str_field(item: dict[str, object], name: str) -> str | None:
    value = item.get(name)
    return value if isinstance(value, str) else None


def _size_of(item: dict[str, object]) -> int:
    size = item.get("Size")
    return size if isinstance(size, int) else 0


def _next_token(response: S3Response) -> str | None:
    token = response.get("NextContinuationToken")
    return token if isinstance(token, str) and token else None


def parse_scan_page(response: S3Response) -> ScanPage:
    """Extract keys, sizes and the continuation state from one listing page.

    Entries without a key are skipped; a missing size counts as 0.
    """
    objects = tuple(
        ScannedObject(key=key, size=_size_of(item))
        for item in response_items(response, "Contents")
        if (key := str_field(item, "Key")) is not None
    )
    return ScanPage(
        objects=objects,
        is_truncated=response.get("IsTruncated") is True,
        next_token=_next_token(response),
    )


def parse_listing(response: S3Response) -> Result[ObjectListing, MalformedResponse]:
    """Build the first-page listing returned by ``list_objects``.

    Every stored object has a last-modified timestamp, so an entry without one
    fails the whole listing instead of being shown with a made-up date.
    """
    files: list[ObjectEntry] = []
    for item in response_items(response, "Contents"):
        key = str_field(item, "Key") or ""
        last_modified = item.get("LastModified")
        if not isinstance(last_modified, datetime):
            return Failure(
                MalformedResponse(
                    operation="ListObjectsV2",
                    message=f"object {key!r} has no LastModified timestamp",
                )
            )
        files.append(ObjectEntry(key=key, size=_size_of(item), last_modified=last_modified))

    folders = tuple(
        FolderEntry(key=str_field(item, "Prefix") or "")
        for item in response_items(response, "CommonPrefixes")
    )
    return Success(
        ObjectListing(
            files=tuple(files),
            folders=folders,
            is_truncated=response.get("IsTruncated") is True,
            next_token=_next_token(response),
        )
    )


async def fold_objects(
    client: S3ClientProtocol,
    *,
    bucket: str,
    prefix: str,
    step: Callable[[A, ScannedObject], A],
    initial: A,
) -> Result[A, StorageFailure]:
    """
    Scan every object under ``prefix`` and fold them into an accumulator.

    Args:
        client: S3 client borrowed from the session
        bucket: Bucket to scan
        prefix: Key prefix; empty string scans the whole bucket
        step: Pure accumulator update applied to each object in listing order
        initial: Starting accumulator

    Returns:
        Success(accumulator) after the last page
        Failure on the first remote error, a truncated page without a token,
        or a repeated token
    """
    # Explicit token loop rather than get_paginator("list_objects_v2"): a
    # truncated page without a token and a repeated token must surface as
    # MalformedResponse and PaginationLoop, not end the scan or raise.
    acc = initial
    token: str | None = None
    seen_tokens: set[str] = set()
    pages = 0

    while True:
        params: dict[str, object] = {"Bucket": bucket}
        if prefix:
            params["Prefix"] = prefix
        if token is not None:
            params["ContinuationToken"] = token

        match await capture_s3_errors(
            client.list_objects_v2(**params),
            bucket=bucket,
            key=prefix,
            operation="ListObjectsV2",
        ):
            case Failure(err):
                return Failure(err)
            case Success(response):
                page = parse_scan_page(response)

        pages += 1
        for obj in page.objects:
            acc = step(acc, obj)
        _logger.debug(
            "Scanned page %d of %s/%s: %d objects, truncated=%s",
            pages,
            bucket,
            prefix,
            len(page.objects),
            page.is_truncated,
        )

        if not page.is_truncated:
            return Success(acc)
        if page.next_token is None:
            return Failure(
                MalformedResponse(
                    operation="ListObjectsV2",
                    message="truncated page without NextContinuationToken",
                )
            )
        if page.next_token in seen_tokens:
            return Failure(PaginationLoop(bucket=bucket, prefix=prefix, token=page.next_token))
        seen_tokens.add(page.next_token)
        token = page.next_token


async def collect_keys(
    client: S3ClientProtocol, *, bucket: str, prefix: str
) -> Result[list[str], StorageFailure]:
    """Every key under ``prefix``, in listing order."""

    def append(keys: list[str], obj: ScannedObject) -> list[str]:
        keys.append(obj.key)
        return keys

    return await fold_objects(client, bucket=bucket, prefix=prefix, step=append, initial=[])


__all__ = [
    "ScannedObject",
    "ScanPage",
    "response_items",
    "str_field",
    "parse_scan_page",
    "parse_listing",
    "fold_objects",
    "collect_keys",
]
