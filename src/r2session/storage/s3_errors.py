"""S3 Error ADT - frozen dataclasses for remote service failures.

Every failure returned by the storage API is classified into one of these
variants so callers can pattern match on the kind of failure while still
having the service's own message text to show.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Awaitable, Literal, TypeVar

from botocore.exceptions import BotoCoreError, ClientError

from ..result import Failure, Result, Success


T = TypeVar("T")


@dataclass(frozen=True)
class S3BucketNotFound:
    """Bucket does not exist (error code ``NoSuchBucket``).

    Attributes:
        bucket_name: Name of the bucket that was not found
        message: Error message from the service
    """

    bucket_name: str
    message: str
    kind: Literal["S3BucketNotFound"] = "S3BucketNotFound"


@dataclass(frozen=True)
class S3ObjectNotFound:
    """Object key does not exist in the bucket (``NoSuchKey`` / ``404``).

    Attributes:
        bucket_name: Name of the bucket
        key: Object key that was not found
        message: Error message from the service
    """

    bucket_name: str
    key: str
    message: str
    kind: Literal["S3ObjectNotFound"] = "S3ObjectNotFound"


@dataclass(frozen=True)
class S3AccessDenied:
    """Credentials lack permission, or are rejected outright.

    Covers ``AccessDenied``, ``Forbidden``, ``InvalidAccessKeyId`` and
    ``SignatureDoesNotMatch``.

    Attributes:
        bucket_name: Name of the bucket being accessed
        operation: Operation that was denied (e.g. "GetObject", "DeleteObjects")
        message: Error message from the service
    """

    bucket_name: str
    operation: str
    message: str
    kind: Literal["S3AccessDenied"] = "S3AccessDenied"


@dataclass(frozen=True)
class S3NetworkError:
    """Transport failure or service unavailability.

    Nothing in this package retries, so ``retry_count`` is always 0; it is kept
    so a retrying caller can report how often it tried.
    """

    message: str
    retry_count: int = 0
    kind: Literal["S3NetworkError"] = "S3NetworkError"


@dataclass(frozen=True)
class S3UnknownError:
    """Any other service error code.

    Attributes:
        error_code: Error code from the response
        message: Error message from the service
    """

    error_code: str
    message: str
    kind: Literal["S3UnknownError"] = "S3UnknownError"


S3OperationError = (
    S3BucketNotFound | S3ObjectNotFound | S3AccessDenied | S3NetworkError | S3UnknownError
)


def classify_error_code(
    error_code: str, message: str, bucket: str, key: str, operation: str
) -> S3OperationError:
    """Map a service error code to its S3OperationError variant.

    Args:
        error_code: Code from the error response (or a DeleteObjects ``Errors`` entry)
        message: Message from the service
        bucket: Bucket name (may be empty for account-level operations)
        key: Object key (may be empty for bucket-level operations)
        operation: Operation that failed (e.g. "GetObject", "PutObject")
    """
    match error_code:
        case "NoSuchBucket":
            return S3BucketNotFound(bucket_name=bucket, message=message)

        case "NoSuchKey" | "404" | "NotFound":
            return S3ObjectNotFound(bucket_name=bucket, key=key, message=message)

        case "AccessDenied" | "Forbidden" | "403" | "InvalidAccessKeyId" | "SignatureDoesNotMatch":
            return S3AccessDenied(bucket_name=bucket, operation=operation, message=message)

        case "RequestTimeout" | "ServiceUnavailable" | "SlowDown" | "InternalError":
            return S3NetworkError(message=message)

        case _:
            return S3UnknownError(error_code=error_code, message=message)


def classify_client_error(
    error: ClientError, bucket: str, key: str, operation: str
) -> S3OperationError:
    """Classify a botocore ClientError into a specific S3OperationError."""
    details = error.response.get("Error", {})
    error_code = str(details.get("Code", "Unknown"))
    message = str(details.get("Message") or error)
    return classify_error_code(error_code, message, bucket, key, operation)


def classify_transport_error(error: BotoCoreError) -> S3NetworkError:
    """Wrap a botocore transport-level failure (DNS, connect, read timeout)."""
    return S3NetworkError(message=str(error))


async def capture_s3_errors(
    call: Awaitable[T], *, bucket: str, key: str, operation: str
) -> Result[T, S3OperationError]:
    """Await one remote exchange, converting botocore exceptions to Failure.

    Nothing is retried: the first error is the result.
    """
    try:
        return Success(await call)
    except ClientError as e:
        return Failure(classify_client_error(e, bucket, key, operation))
    except BotoCoreError as e:
        return Failure(classify_transport_error(e))


__all__ = [
    "S3BucketNotFound",
    "S3ObjectNotFound",
    "S3AccessDenied",
    "S3NetworkError",
    "S3UnknownError",
    "S3OperationError",
    "classify_error_code",
    "classify_client_error",
    "classify_transport_error",
    "capture_s3_errors",
]
