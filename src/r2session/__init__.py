"""Storage session manager and command layer for S3-compatible object storage."""

__version__ = "0.1.0"
