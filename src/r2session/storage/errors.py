"""ADTs for storage session failures.

``StorageFailure`` is the closed set of everything a storage operation can fail
with. ``describe_failure`` renders any variant as the prose a shell shows its
user; callers must not parse that text, they match on the variant instead.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from .models import DeleteOutcome
from .s3_errors import (
    S3AccessDenied,
    S3BucketNotFound,
    S3NetworkError,
    S3ObjectNotFound,
    S3OperationError,
    S3UnknownError,
)


@dataclass(frozen=True)
class NotInitialized:
    """No client handle: ``initialize`` has not succeeded yet, or the session was closed."""

    message: str = "Client not initialized"
    kind: Literal["NotInitialized"] = "NotInitialized"


@dataclass(frozen=True)
class LocalIOFailure:
    """Reading an upload source or writing a download target failed."""

    path: str
    message: str
    kind: Literal["LocalIOFailure"] = "LocalIOFailure"


@dataclass(frozen=True)
class InvalidArgument:
    """Caller supplied an empty or otherwise unusable argument."""

    field: str
    message: str
    kind: Literal["InvalidArgument"] = "InvalidArgument"


@dataclass(frozen=True)
class PreviewTooLarge:
    """Object exceeds the preview ceiling; its body was never read."""

    key: str
    size: int
    limit: int
    kind: Literal["PreviewTooLarge"] = "PreviewTooLarge"


@dataclass(frozen=True)
class NotValidText:
    """Object body is not valid UTF-8."""

    key: str
    kind: Literal["NotValidText"] = "NotValidText"


@dataclass(frozen=True)
class MalformedResponse:
    """Service response is missing a field every real response carries."""

    operation: str
    message: str
    kind: Literal["MalformedResponse"] = "MalformedResponse"


@dataclass(frozen=True)
class PaginationLoop:
    """Listing returned the same continuation token twice in a row."""

    bucket: str
    prefix: str
    token: str
    kind: Literal["PaginationLoop"] = "PaginationLoop"


@dataclass(frozen=True)
class PartialDeletion:
    """A chunked deletion stopped part-way.

    Attributes:
        outcome: Which keys were deleted, which chunk failed, which were never sent
        cause: Failure of the chunk that stopped the run
    """

    outcome: DeleteOutcome
    cause: StorageFailure
    kind: Literal["PartialDeletion"] = "PartialDeletion"


ValidationFailure = InvalidArgument | PreviewTooLarge | NotValidText

ProtocolFailure = MalformedResponse | PaginationLoop

StorageFailure = (
    NotInitialized
    | S3OperationError
    | LocalIOFailure
    | ValidationFailure
    | ProtocolFailure
    | PartialDeletion
)


def _format_mib(size: int) -> str:
    return f"{size / (1024 * 1024):.1f} MiB"


def describe_failure(error: StorageFailure) -> str:
    """Render a failure as a single human-readable line."""
    match error:
        case NotInitialized(message):
            return message
        case S3BucketNotFound(bucket, msg):
            return f"Bucket not found: {bucket} ({msg})"
        case S3ObjectNotFound(bucket, key, msg):
            return f"Object not found in bucket {bucket}: {key} ({msg})"
        case S3AccessDenied(bucket, operation, msg):
            return f"Access denied for {operation} on bucket {bucket or '<account>'}: {msg}"
        case S3NetworkError(msg, _):
            return f"Network error: {msg}"
        case S3UnknownError(code, msg):
            return f"Storage service error ({code}): {msg}"
        case LocalIOFailure(path, msg):
            return f"Local file error for {path}: {msg}"
        case InvalidArgument(name, msg):
            return f"Invalid {name}: {msg}"
        case PreviewTooLarge(key, size, limit):
            return (
                f"File too large for preview: {key} is {_format_mib(size)}, "
                f"limit is {_format_mib(limit)}"
            )
        case NotValidText(key):
            return f"File is not valid text: {key}"
        case MalformedResponse(operation, msg):
            return f"Malformed {operation} response: {msg}"
        case PaginationLoop(bucket, prefix, token):
            return (
                f"Listing of {bucket}/{prefix} repeated continuation token {token!r}; "
                "aborting to avoid an endless scan"
            )
        case PartialDeletion(outcome, cause):
            return (
                f"Deletion stopped after {len(outcome.deleted)} keys; "
                f"{len(outcome.unattempted())} keys not deleted: {describe_failure(cause)}"
            )
        case _:
            raise AssertionError(f"Unhandled failure: {error!r}")


__all__ = [
    "NotInitialized",
    "LocalIOFailure",
    "InvalidArgument",
    "PreviewTooLarge",
    "NotValidText",
    "MalformedResponse",
    "PaginationLoop",
    "PartialDeletion",
    "ValidationFailure",
    "ProtocolFailure",
    "StorageFailure",
    "describe_failure",
]
