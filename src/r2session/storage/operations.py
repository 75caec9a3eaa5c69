# src/r2session/storage/operations.py
"""
Storage operations over the session's S3 client.

Every method borrows the current client from ``StorageSession`` (returning
``Failure(NotInitialized())`` before any network call when there is none),
performs one or more remote exchanges, and returns
``Result[T, StorageFailure]``. Nothing is retried.

Listing asymmetry:
    ``list_objects`` returns exactly one page and hands the continuation token
    back to the caller. ``delete_prefix`` and ``get_bucket_stats`` always scan
    to the end of the listing.
"""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path
from typing import Sequence, TypeVar

from ..keys import folder_key, join_key, sanitize_name
from ..result import Failure, Result, Success
from .errors import (
    InvalidArgument,
    LocalIOFailure,
    MalformedResponse,
    NotValidText,
    PartialDeletion,
    PreviewTooLarge,
    StorageFailure,
)
from .models import (
    MAX_DELETE_BATCH,
    MAX_PREVIEW_BYTES,
    PRESIGNED_URL_EXPIRY_SECONDS,
    BucketStats,
    DeleteOutcome,
    ObjectListing,
    UploadReport,
)
from .pagination import (
    ScannedObject,
    collect_keys,
    fold_objects,
    parse_listing,
    response_items,
    str_field,
)
from .protocols import S3ClientProtocol, S3Response, StreamingBodyProtocol
from .s3_errors import capture_s3_errors, classify_error_code
from .session import StorageSession


_logger = logging.getLogger(__name__)

T = TypeVar("T")


def chunk_keys(keys: Sequence[str], size: int = MAX_DELETE_BATCH) -> list[list[str]]:
    """Split keys into consecutive batches of at most ``size``, preserving order."""
    if not 0 < size <= MAX_DELETE_BATCH:
        raise ValueError(f"batch size must be between 1 and {MAX_DELETE_BATCH}, got {size}")
    return [list(keys[start : start + size]) for start in range(0, len(keys), size)]


def _io_failure(path: Path, exc: OSError) -> LocalIOFailure:
    return LocalIOFailure(path=str(path), message=exc.strerror or str(exc))


def _streaming_body(response: S3Response) -> Result[StreamingBodyProtocol, MalformedResponse]:
    body = response.get("Body")
    if not isinstance(body, StreamingBodyProtocol):
        return Failure(
            MalformedResponse(
                operation="GetObject",
                message=f"expected a streaming body, got {type(body).__name__}",
            )
        )
    return Success(body)


def _flatten(
    nested: Result[Result[T, StorageFailure], StorageFailure],
) -> Result[T, StorageFailure]:
    match nested:
        case Success(inner):
            return inner
        case Failure(err):
            return Failure(err)


async def _read_object(
    client: S3ClientProtocol, bucket: str, key: str
) -> Result[bytes, StorageFailure]:
    """GetObject and read the whole body into memory."""
    response = await client.get_object(Bucket=bucket, Key=key)
    match _streaming_body(response):
        case Failure(err):
            return Failure(err)
        case Success(body):
            async with body as stream:
                return Success(await stream.read())


async def _read_preview(
    client: S3ClientProtocol, bucket: str, key: str
) -> Result[bytes, StorageFailure]:
    """GetObject, but release the body unread when it exceeds the preview ceiling."""
    response = await client.get_object(Bucket=bucket, Key=key)
    match _streaming_body(response):
        case Failure(err):
            return Failure(err)
        case Success(body):
            async with body as stream:
                length = response.get("ContentLength")
                if isinstance(length, int) and length > MAX_PREVIEW_BYTES:
                    return Failure(PreviewTooLarge(key=key, size=length, limit=MAX_PREVIEW_BYTES))
                data = await stream.read()
    if len(data) > MAX_PREVIEW_BYTES:
        return Failure(PreviewTooLarge(key=key, size=len(data), limit=MAX_PREVIEW_BYTES))
    return Success(data)


def _add_to_stats(stats: BucketStats, obj: ScannedObject) -> BucketStats:
    return BucketStats(total_size=stats.total_size + obj.size, object_count=stats.object_count + 1)


def _merge_outcomes(done: DeleteOutcome, step: DeleteOutcome) -> DeleteOutcome:
    """Append one step of a multi-step deletion to the progress so far."""
    return DeleteOutcome(
        deleted=done.deleted + step.deleted,
        failed_batch=step.failed_batch,
        remaining=step.remaining,
        batches_sent=done.batches_sent + step.batches_sent,
    )


def _selection_failure(
    done: DeleteOutcome, error: StorageFailure, unlisted: tuple[str, ...]
) -> Result[DeleteOutcome, StorageFailure]:
    """Failure of a selection deletion; ``unlisted`` folder prefixes count as not deleted."""
    if not done.deleted:
        return Failure(error)
    outcome = DeleteOutcome(
        deleted=done.deleted,
        failed_batch=done.failed_batch,
        remaining=done.remaining + unlisted,
        batches_sent=done.batches_sent,
    )
    _logger.warning(
        "Selection deletion stopped: %d deleted, %d keys or folders not deleted",
        len(outcome.deleted),
        len(outcome.unattempted()),
    )
    return Failure(PartialDeletion(outcome=outcome, cause=error))


class StorageOperations:
    """
    Named storage operations bound to one ``StorageSession``.

    Example:
        ```python
        ops = StorageOperations(session)
        match await ops.delete_prefix("photos", "2019/"):
            case Success(outcome):
                print(f"deleted {len(outcome.deleted)} objects")
            case Failure(PartialDeletion(outcome, cause)):
                print(f"stopped; {len(outcome.unattempted())} keys left")
            case Failure(error):
                print(describe_failure(error))
        ```
    """

    def __init__(self, session: StorageSession) -> None:
        self._session = session

    async def _borrow(self, bucket: str | None = None) -> Result[S3ClientProtocol, StorageFailure]:
        """Current client; bucket (when given) must be non-empty."""
        match await self._session.require_handle():
            case Failure(err):
                return Failure(err)
            case Success(client):
                if bucket is not None and not bucket:
                    return Failure(InvalidArgument(field="bucket", message="must not be empty"))
                return Success(client)

    # -------------------------------------------------------------------------
    # Listing
    # -------------------------------------------------------------------------

    async def list_buckets(self) -> Result[list[str], StorageFailure]:
        """Names of all buckets in the account, in service order (single request)."""
        match await self._borrow():
            case Failure(err):
                return Failure(err)
            case Success(client):
                result = await capture_s3_errors(
                    client.list_buckets(), bucket="", key="", operation="ListBuckets"
                )
        return result.map(
            lambda response: [
                str_field(item, "Name") or ""
                for item in response_items(response, "Buckets")
            ]
        )

    async def list_objects(
        self,
        bucket: str,
        prefix: str | None = None,
        delimiter: str | None = None,
        continuation_token: str | None = None,
    ) -> Result[ObjectListing, StorageFailure]:
        """
        One page of objects and common prefixes.

        This never follows the cursor. If the returned listing has
        ``is_truncated`` set, call again with ``continuation_token=listing.next_token``
        and the same prefix and delimiter.

        Returns:
            Success(ObjectListing) with files (size defaults to 0) and folders
            Failure(MalformedResponse) if an object lacks LastModified
            Failure(S3OperationError) for remote errors
        """
        match await self._borrow(bucket):
            case Failure(err):
                return Failure(err)
            case Success(client):
                params: dict[str, object] = {"Bucket": bucket}
                if prefix is not None:
                    params["Prefix"] = prefix
                if delimiter is not None:
                    params["Delimiter"] = delimiter
                if continuation_token is not None:
                    params["ContinuationToken"] = continuation_token
                _logger.debug("Listing %s prefix=%r delimiter=%r", bucket, prefix, delimiter)
                result = await capture_s3_errors(
                    client.list_objects_v2(**params),
                    bucket=bucket,
                    key=prefix or "",
                    operation="ListObjectsV2",
                )
        match result:
            case Failure(err):
                return Failure(err)
            case Success(response):
                return parse_listing(response)

    async def get_bucket_stats(self, bucket: str) -> Result[BucketStats, StorageFailure]:
        """
        Total size and object count of a bucket.

        Scans every page of the bucket listing, so cost grows with the number
        of objects. Treat it as a long-running call, not a lookup.
        """
        match await self._borrow(bucket):
            case Failure(err):
                return Failure(err)
            case Success(client):
                return await fold_objects(
                    client,
                    bucket=bucket,
                    prefix="",
                    step=_add_to_stats,
                    initial=BucketStats(total_size=0, object_count=0),
                )

    # -------------------------------------------------------------------------
    # Mutation
    # -------------------------------------------------------------------------

    async def create_folder(self, bucket: str, key: str) -> Result[str, StorageFailure]:
        """
        Write a zero-length folder marker.

        ``"a/b"`` and ``"a/b/"`` both produce the marker key ``"a/b/"``, which
        is returned on success.
        """
        match await self._borrow(bucket):
            case Failure(err):
                return Failure(err)
            case Success(client):
                if not key:
                    return Failure(InvalidArgument(field="key", message="must not be empty"))
                marker = folder_key(key)
                result = await capture_s3_errors(
                    client.put_object(Bucket=bucket, Key=marker, Body=b""),
                    bucket=bucket,
                    key=marker,
                    operation="PutObject",
                )
        return result.map(lambda _: marker)

    async def delete_objects(
        self, bucket: str, keys: Sequence[str]
    ) -> Result[DeleteOutcome, StorageFailure]:
        """
        Delete keys in batches of at most 1000, one request per batch, in order.

        Deletion is not transactional. If a batch fails after earlier batches
        succeeded, the result is ``Failure(PartialDeletion)`` whose outcome lists
        the deleted keys, the failing batch and the keys never sent. A failure
        of the first batch is returned as the plain remote failure.
        """
        match await self._borrow(bucket):
            case Failure(err):
                return Failure(err)
            case Success(client):
                return await self._delete_batches(client, bucket, list(keys))

    async def delete_prefix(
        self, bucket: str, prefix: str
    ) -> Result[DeleteOutcome, StorageFailure]:
        """
        Delete every object whose key starts with ``prefix``.

        Lists the prefix to completion first, then deletes through the same
        batching as ``delete_objects``. No matches is a successful no-op.
        """
        match await self._borrow(bucket):
            case Failure(err):
                return Failure(err)
            case Success(client):
                return await self._delete_prefix(client, bucket, prefix)

    async def delete_selection(
        self, bucket: str, files: Sequence[str], folders: Sequence[str]
    ) -> Result[DeleteOutcome, StorageFailure]:
        """Delete selected files, then each selected folder recursively.

        Stops at the first failure. Once anything has been deleted the failure
        is ``PartialDeletion``: ``failed_batch`` holds the chunk that failed and
        ``remaining`` the keys never sent, followed by the prefixes of folders
        that were never listed.
        """
        borrowed = await self._borrow(bucket)
        if isinstance(borrowed, Failure):
            return borrowed
        client = borrowed.value

        done = DeleteOutcome()
        if files:
            done, error = await self._delete_chunks(client, bucket, list(files))
            if error is not None:
                return _selection_failure(done, error, tuple(folders))

        for position, folder in enumerate(folders):
            unlisted = tuple(folders[position + 1 :])
            match await collect_keys(client, bucket=bucket, prefix=folder):
                case Failure(err):
                    return _selection_failure(done, err, (folder, *unlisted))
                case Success(keys):
                    outcome, error = await self._delete_chunks(client, bucket, keys)
            done = _merge_outcomes(done, outcome)
            if error is not None:
                return _selection_failure(done, error, unlisted)
        return Success(done)

    async def _delete_prefix(
        self, client: S3ClientProtocol, bucket: str, prefix: str
    ) -> Result[DeleteOutcome, StorageFailure]:
        match await collect_keys(client, bucket=bucket, prefix=prefix):
            case Failure(err):
                return Failure(err)
            case Success(keys):
                if not keys:
                    _logger.debug("Nothing to delete under %s/%s", bucket, prefix)
                    return Success(DeleteOutcome())
                _logger.debug("Deleting %d objects under %s/%s", len(keys), bucket, prefix)
                return await self._delete_batches(client, bucket, keys)

    async def _delete_batches(
        self, client: S3ClientProtocol, bucket: str, keys: list[str]
    ) -> Result[DeleteOutcome, StorageFailure]:
        outcome, error = await self._delete_chunks(client, bucket, keys)
        if error is None:
            return Success(outcome)
        if not outcome.deleted:
            return Failure(error)
        _logger.warning(
            "Deletion in %s stopped at batch %d: %d deleted, %d not deleted",
            bucket,
            outcome.batches_sent,
            len(outcome.deleted),
            len(outcome.unattempted()),
        )
        return Failure(PartialDeletion(outcome=outcome, cause=error))

    async def _delete_chunks(
        self, client: S3ClientProtocol, bucket: str, keys: list[str]
    ) -> tuple[DeleteOutcome, StorageFailure | None]:
        """Send chunks in order until one fails; the outcome accounts for every key."""
        batches = chunk_keys(keys)
        deleted: list[str] = []
        for index, batch in enumerate(batches):
            match await self._delete_batch(client, bucket, batch):
                case Failure(err):
                    outcome = DeleteOutcome(
                        deleted=tuple(deleted),
                        failed_batch=tuple(batch),
                        remaining=tuple(key for later in batches[index + 1 :] for key in later),
                        batches_sent=index + 1,
                    )
                    return outcome, err
                case Success(_):
                    deleted.extend(batch)
                    _logger.debug("Deleted batch %d of %d in %s", index + 1, len(batches), bucket)
        return DeleteOutcome(deleted=tuple(deleted), batches_sent=len(batches)), None

    async def _delete_batch(
        self, client: S3ClientProtocol, bucket: str, batch: list[str]
    ) -> Result[None, StorageFailure]:
        """One DeleteObjects request; per-key errors in the response fail the batch."""
        match await capture_s3_errors(
            client.delete_objects(
                Bucket=bucket,
                Delete={"Objects": [{"Key": key} for key in batch], "Quiet": True},
            ),
            bucket=bucket,
            key="",
            operation="DeleteObjects",
        ):
            case Failure(err):
                return Failure(err)
            case Success(response):
                errors = response_items(response, "Errors")
                if not errors:
                    return Success(None)
                first = errors[0]
                first_key = str(first.get("Key", ""))
                return Failure(
                    classify_error_code(
                        str(first.get("Code", "Unknown")),
                        f"{len(errors)} of {len(batch)} keys not deleted; "
                        f"{first_key}: {first.get('Message', '')}",
                        bucket,
                        first_key,
                        "DeleteObjects",
                    )
                )

    # -------------------------------------------------------------------------
    # Transfer
    # -------------------------------------------------------------------------

    async def upload_file(
        self, bucket: str, key: str, local_path: str | os.PathLike[str]
    ) -> Result[None, StorageFailure]:
        """Stream a local file to ``key`` without reading it into memory first."""
        match await self._borrow(bucket):
            case Failure(err):
                return Failure(err)
            case Success(client):
                return await self._upload(client, bucket, key, Path(local_path))

    async def upload_files(
        self, bucket: str, prefix: str, paths: Sequence[str | os.PathLike[str]]
    ) -> Result[UploadReport, StorageFailure]:
        """
        Upload several local files under ``prefix``, one after another.

        Each file is stored at ``prefix + file name``. A failed file is
        recorded in the report and the remaining files are still uploaded.
        """
        borrowed = await self._borrow(bucket)
        if isinstance(borrowed, Failure):
            return borrowed
        client = borrowed.value

        uploaded: list[str] = []
        failed: list[tuple[str, StorageFailure]] = []
        for raw_path in paths:
            path = Path(raw_path)
            key = join_key(prefix, sanitize_name(path.name))
            match await self._upload(client, bucket, key, path):
                case Success(_):
                    uploaded.append(key)
                case Failure(err):
                    _logger.debug("Upload of %s to %s/%s failed: %s", path, bucket, key, err)
                    failed.append((str(path), err))
        return Success(UploadReport(uploaded=tuple(uploaded), failed=tuple(failed)))

    async def _upload(
        self, client: S3ClientProtocol, bucket: str, key: str, path: Path
    ) -> Result[None, StorageFailure]:
        try:
            handle = path.open("rb")
        except OSError as exc:
            return Failure(_io_failure(path, exc))

        with handle:
            try:
                size = os.fstat(handle.fileno()).st_size
                _logger.debug("Uploading %s (%d bytes) to %s/%s", path, size, bucket, key)
                result = await capture_s3_errors(
                    client.put_object(Bucket=bucket, Key=key, Body=handle, ContentLength=size),
                    bucket=bucket,
                    key=key,
                    operation="PutObject",
                )
            except OSError as exc:
                return Failure(_io_failure(path, exc))
        return result.map(lambda _: None)

    async def download_file(
        self, bucket: str, key: str, save_path: str | os.PathLike[str]
    ) -> Result[None, StorageFailure]:
        """Fetch the whole object and write it to ``save_path``, replacing any existing file."""
        match await self._borrow(bucket):
            case Failure(err):
                return Failure(err)
            case Success(client):
                fetched = _flatten(
                    await capture_s3_errors(
                        _read_object(client, bucket, key),
                        bucket=bucket,
                        key=key,
                        operation="GetObject",
                    )
                )

        match fetched:
            case Failure(err):
                return Failure(err)
            case Success(data):
                path = Path(save_path)
                try:
                    await asyncio.to_thread(path.write_bytes, data)
                except OSError as exc:
                    return Failure(_io_failure(path, exc))
                _logger.debug("Downloaded %s/%s to %s (%d bytes)", bucket, key, path, len(data))
                return Success(None)

    # -------------------------------------------------------------------------
    # Preview and sharing
    # -------------------------------------------------------------------------

    async def read_text_file(self, bucket: str, key: str) -> Result[str, StorageFailure]:
        """
        Object content as text, for preview.

        Returns:
            Success(str) for UTF-8 content up to 5 MiB
            Failure(PreviewTooLarge) when ContentLength exceeds 5 MiB; the body
            is never read
            Failure(NotValidText) when the bytes are not valid UTF-8
        """
        match await self._borrow(bucket):
            case Failure(err):
                return Failure(err)
            case Success(client):
                fetched = _flatten(
                    await capture_s3_errors(
                        _read_preview(client, bucket, key),
                        bucket=bucket,
                        key=key,
                        operation="GetObject",
                    )
                )

        match fetched:
            case Failure(err):
                return Failure(err)
            case Success(data):
                try:
                    return Success(data.decode("utf-8"))
                except UnicodeDecodeError:
                    return Failure(NotValidText(key=key))

    async def get_presigned_url(self, bucket: str, key: str) -> Result[str, StorageFailure]:
        """Signed GET URL for ``key``, valid for one hour. Credentials are not embedded."""
        match await self._borrow(bucket):
            case Failure(err):
                return Failure(err)
            case Success(client):
                return await capture_s3_errors(
                    client.generate_presigned_url(
                        "get_object",
                        Params={"Bucket": bucket, "Key": key},
                        ExpiresIn=PRESIGNED_URL_EXPIRY_SECONDS,
                    ),
                    bucket=bucket,
                    key=key,
                    operation="GetObject",
                )


__all__ = ["StorageOperations", "chunk_keys"]
