"""Value types returned by storage operations."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Literal

if TYPE_CHECKING:
    from .errors import StorageFailure


# Hard per-request limit of the DeleteObjects API.
MAX_DELETE_BATCH = 1000

# Largest object read_text_file will download (5 MiB).
MAX_PREVIEW_BYTES = 5 * 1024 * 1024

PRESIGNED_URL_EXPIRY_SECONDS = 3600


@dataclass(frozen=True)
class ObjectEntry:
    """A stored object as reported by a listing call."""

    key: str
    size: int
    last_modified: datetime
    kind: Literal["file"] = "file"


@dataclass(frozen=True)
class FolderEntry:
    """A common prefix grouped by the listing delimiter (virtual folder)."""

    key: str
    kind: Literal["folder"] = "folder"


@dataclass(frozen=True)
class ObjectListing:
    """One page of a delimiter listing.

    ``list_objects`` never follows the cursor itself. When ``is_truncated`` is
    true, pass ``next_token`` back as ``continuation_token`` to get the next page.
    """

    files: tuple[ObjectEntry, ...]
    folders: tuple[FolderEntry, ...]
    is_truncated: bool = False
    next_token: str | None = None


@dataclass(frozen=True)
class BucketStats:
    total_size: int
    object_count: int


@dataclass(frozen=True)
class DeleteOutcome:
    """Progress of a chunked deletion.

    Chunks run in order and deletion stops at the first failing chunk; chunks
    before it stay deleted. ``failed_batch`` and ``remaining`` are empty when
    every chunk succeeded.

    Attributes:
        deleted: Keys from chunks the service accepted
        failed_batch: Keys of the chunk that failed (not known to be deleted)
        remaining: Keys from chunks that were never sent; for a selection
            deletion, followed by the prefixes of folders that were never listed
        batches_sent: Number of DeleteObjects requests issued
    """

    deleted: tuple[str, ...] = ()
    failed_batch: tuple[str, ...] = ()
    remaining: tuple[str, ...] = ()
    batches_sent: int = 0

    @property
    def complete(self) -> bool:
        return not self.failed_batch and not self.remaining

    def unattempted(self) -> tuple[str, ...]:
        """Keys a caller would need to resubmit to finish the deletion."""
        return self.failed_batch + self.remaining


@dataclass(frozen=True)
class UploadReport:
    """Tally of a multi-file upload; one failed file never aborts the rest."""

    uploaded: tuple[str, ...] = ()
    failed: tuple[tuple[str, StorageFailure], ...] = ()

    @property
    def complete(self) -> bool:
        return not self.failed


__all__ = [
    "MAX_DELETE_BATCH",
    "MAX_PREVIEW_BYTES",
    "PRESIGNED_URL_EXPIRY_SECONDS",
    "ObjectEntry",
    "FolderEntry",
    "ObjectListing",
    "BucketStats",
    "DeleteOutcome",
    "UploadReport",
]
