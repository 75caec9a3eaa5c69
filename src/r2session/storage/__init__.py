# src/r2session/storage/__init__.py
"""
Session-scoped access to an S3-compatible object store.

``StorageSession`` holds the one authenticated client; ``StorageOperations``
runs listing, transfer, deletion, preview and signing against it. Every
operation returns a ``Result`` whose failure side is a ``StorageFailure``.
"""

from __future__ import annotations

from .errors import (
    InvalidArgument,
    LocalIOFailure,
    MalformedResponse,
    NotInitialized,
    NotValidText,
    PaginationLoop,
    PartialDeletion,
    PreviewTooLarge,
    StorageFailure,
    describe_failure,
)
from .models import (
    MAX_DELETE_BATCH,
    MAX_PREVIEW_BYTES,
    PRESIGNED_URL_EXPIRY_SECONDS,
    BucketStats,
    DeleteOutcome,
    FolderEntry,
    ObjectEntry,
    ObjectListing,
    UploadReport,
)
from .operations import StorageOperations, chunk_keys
from .s3_errors import (
    S3AccessDenied,
    S3BucketNotFound,
    S3NetworkError,
    S3ObjectNotFound,
    S3OperationError,
    S3UnknownError,
)
from .session import StorageSession, aioboto3_client_factory


__all__ = [
    # Session
    "StorageSession",
    "aioboto3_client_factory",
    # Operations
    "StorageOperations",
    "chunk_keys",
    # Values
    "ObjectEntry",
    "FolderEntry",
    "ObjectListing",
    "BucketStats",
    "DeleteOutcome",
    "UploadReport",
    "MAX_DELETE_BATCH",
    "MAX_PREVIEW_BYTES",
    "PRESIGNED_URL_EXPIRY_SECONDS",
    # Failures
    "StorageFailure",
    "NotInitialized",
    "LocalIOFailure",
    "InvalidArgument",
    "PreviewTooLarge",
    "NotValidText",
    "MalformedResponse",
    "PaginationLoop",
    "PartialDeletion",
    "S3OperationError",
    "S3BucketNotFound",
    "S3ObjectNotFound",
    "S3AccessDenied",
    "S3NetworkError",
    "S3UnknownError",
    "describe_failure",
]
