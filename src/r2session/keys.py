"""Helpers for ``/``-delimited object keys.

Object stores have no directories; a "folder" is a key prefix ending in ``/``,
optionally with a zero-length marker object stored at exactly that key.
"""

from __future__ import annotations

DELIMITER = "/"

_SIZE_UNITS = ("B", "KB", "MB", "GB", "TB")


def folder_key(key: str) -> str:
    """Append the trailing delimiter if the key lacks one.

    >>> folder_key("a/b") == folder_key("a/b/") == "a/b/"
    True
    """
    return key if key.endswith(DELIMITER) else key + DELIMITER


def parent_prefix(prefix: str) -> str:
    """Prefix one level up ("a/b/c/" -> "a/b/", "a/" -> "", "" -> "")."""
    parts = [part for part in prefix.split(DELIMITER) if part]
    if len(parts) <= 1:
        return ""
    return DELIMITER.join(parts[:-1]) + DELIMITER


def basename(key: str) -> str:
    """Last path segment of a key; folders keep no trailing delimiter."""
    parts = [part for part in key.split(DELIMITER) if part]
    return parts[-1] if parts else ""


def sanitize_name(name: str) -> str:
    """Strip path separators so a user-typed name stays a single segment."""
    return name.replace("/", "").replace("\\", "")


def join_key(prefix: str, name: str) -> str:
    if not prefix:
        return name
    return folder_key(prefix) + name


def format_bytes(size: int) -> str:
    """Human-readable size in 1024-based units, e.g. ``1536 -> "1.5 KB"``."""
    if size <= 0:
        return "0 B"
    exponent = 0
    while size >= 1024 ** (exponent + 1) and exponent < len(_SIZE_UNITS) - 1:
        exponent += 1
    value = round(size / 1024**exponent, 2)
    return f"{value:g} {_SIZE_UNITS[exponent]}"


__all__ = [
    "DELIMITER",
    "folder_key",
    "parent_prefix",
    "basename",
    "sanitize_name",
    "join_key",
    "format_bytes",
]
