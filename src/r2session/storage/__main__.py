# src/r2session/storage/__main__.py
"""Command-line shell over the storage operations.

Credentials come from the environment (R2_ACCOUNT_ID, R2_ACCESS_KEY_ID,
R2_SECRET_ACCESS_KEY); endpoint overrides from R2_ENDPOINT_DOMAIN and friends.

Usage:
    python -m r2session.storage [--json] [--log-level LEVEL] <command> ...

Commands:
    buckets                              List buckets
    ls <bucket> [prefix] [--token T]     List one page of a folder
    mkdir <bucket> <key>                 Create a folder marker
    rm <bucket> [key...] [--folder P]    Delete objects and whole folders
    rm-prefix <bucket> <prefix>          Delete everything under a prefix
    stats <bucket>                       Total size and object count (full scan)
    put <bucket> <key> <path>            Upload a file
    put-many <bucket> <prefix> <path>... Upload several files under a prefix
    get <bucket> <key> [path]            Download an object
    cat <bucket> <key>                   Print a text object (5 MiB max)
    url <bucket> <key>                   Presigned download URL (1 hour)

Exit codes:
    0: Success
    1: Partial success (some objects deleted or uploaded, some not)
    2: Any other failure
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import NoReturn, Sequence

from pydantic import ValidationError

from ..config import ClientSettings, Credentials
from ..keys import DELIMITER, basename, format_bytes, parent_prefix
from ..result import Failure, Success
from .errors import PartialDeletion, StorageFailure, describe_failure
from .models import DeleteOutcome, ObjectListing
from .operations import StorageOperations
from .session import StorageSession


def _report_failure(error: StorageFailure) -> int:
    print(f"✗ Error: {describe_failure(error)}", file=sys.stderr)
    match error:
        case PartialDeletion(outcome, _):
            for key in outcome.unattempted():
                print(f"  not deleted: {key}", file=sys.stderr)
            return 1
        case _:
            return 2


def _print_json(payload: object) -> None:
    print(json.dumps(payload, indent=2))


def _listing_payload(listing: ObjectListing, prefix: str) -> dict[str, object]:
    return {
        "folders": [{"key": folder.key, "type": folder.kind} for folder in listing.folders],
        "files": [
            {
                "key": entry.key,
                "size": entry.size,
                "last_modified": entry.last_modified.isoformat(),
                "type": entry.kind,
            }
            for entry in listing.files
            if entry.key != prefix
        ],
        "parent": parent_prefix(prefix) if prefix else None,
        "is_truncated": listing.is_truncated,
        "next_token": listing.next_token,
    }


def _report_deletion(outcome: DeleteOutcome, as_json: bool) -> int:
    if as_json:
        _print_json({"deleted": list(outcome.deleted), "batches": outcome.batches_sent})
    else:
        print(f"✓ Deleted {len(outcome.deleted)} objects in {outcome.batches_sent} batches")
    return 0


async def cmd_buckets(ops: StorageOperations, as_json: bool = False) -> int:
    match await ops.list_buckets():
        case Success(names) if as_json:
            _print_json(names)
            return 0
        case Success(names):
            for name in names:
                print(name)
            return 0
        case Failure(error):
            return _report_failure(error)


async def cmd_ls(
    ops: StorageOperations,
    bucket: str,
    prefix: str = "",
    token: str | None = None,
    recursive: bool = False,
    as_json: bool = False,
) -> int:
    """
    List one page of ``prefix``.

    The folder's own marker object (key equal to the prefix) is hidden. When
    the page is truncated, the token for the next page is printed to stderr,
    and below the bucket root the parent folder is printed there too.
    """
    delimiter = None if recursive else DELIMITER
    match await ops.list_objects(bucket, prefix, delimiter, token):
        case Success(listing) if as_json:
            _print_json(_listing_payload(listing, prefix))
            return 0
        case Success(listing):
            for folder in listing.folders:
                print(f"{'DIR':>10}  {'':25}  {folder.key}")
            for entry in listing.files:
                if entry.key == prefix:
                    continue
                modified = entry.last_modified.strftime("%Y-%m-%d %H:%M:%S")
                print(f"{format_bytes(entry.size):>10}  {modified:25}  {entry.key}")
            if listing.is_truncated and listing.next_token:
                print(f"More results: --token {listing.next_token}", file=sys.stderr)
            if prefix:
                print(f"Parent folder: {parent_prefix(prefix) or DELIMITER}", file=sys.stderr)
            return 0
        case Failure(error):
            return _report_failure(error)


async def cmd_mkdir(ops: StorageOperations, bucket: str, key: str) -> int:
    match await ops.create_folder(bucket, key):
        case Success(marker):
            print(f"✓ Created folder {marker}")
            return 0
        case Failure(error):
            return _report_failure(error)


async def cmd_rm(
    ops: StorageOperations,
    bucket: str,
    keys: Sequence[str],
    folders: Sequence[str] = (),
    as_json: bool = False,
) -> int:
    """Delete keys; with ``folders``, also everything under each folder prefix."""
    if not keys and not folders:
        print("✗ Error: nothing to delete; give keys or --folder", file=sys.stderr)
        return 2
    if folders:
        result = await ops.delete_selection(bucket, keys, folders)
    else:
        result = await ops.delete_objects(bucket, keys)
    match result:
        case Success(outcome):
            return _report_deletion(outcome, as_json)
        case Failure(error):
            return _report_failure(error)


async def cmd_rm_prefix(
    ops: StorageOperations, bucket: str, prefix: str, as_json: bool = False
) -> int:
    match await ops.delete_prefix(bucket, prefix):
        case Success(outcome):
            return _report_deletion(outcome, as_json)
        case Failure(error):
            return _report_failure(error)


async def cmd_stats(ops: StorageOperations, bucket: str, as_json: bool = False) -> int:
    match await ops.get_bucket_stats(bucket):
        case Success(stats) if as_json:
            _print_json({"size": stats.total_size, "count": stats.object_count})
            return 0
        case Success(stats):
            print(f"{bucket}: {stats.object_count} objects, {format_bytes(stats.total_size)}")
            return 0
        case Failure(error):
            return _report_failure(error)


async def cmd_put(ops: StorageOperations, bucket: str, key: str, path: str) -> int:
    match await ops.upload_file(bucket, key, path):
        case Success(_):
            print(f"✓ Uploaded {path} to {bucket}/{key}")
            return 0
        case Failure(error):
            return _report_failure(error)


async def cmd_put_many(
    ops: StorageOperations, bucket: str, prefix: str, paths: Sequence[str]
) -> int:
    match await ops.upload_files(bucket, prefix, paths):
        case Success(report) if report.complete:
            print(f"✓ Uploaded {len(report.uploaded)} files")
            return 0
        case Success(report):
            print(
                f"Uploaded {len(report.uploaded)} files. Failed: {len(report.failed)}",
                file=sys.stderr,
            )
            for path, error in report.failed:
                print(f"  {path}: {describe_failure(error)}", file=sys.stderr)
            return 1
        case Failure(error):
            return _report_failure(error)


async def cmd_get(
    ops: StorageOperations, bucket: str, key: str, path: str | None = None
) -> int:
    target = path or basename(key)
    if not target:
        print(f"✗ Error: cannot derive a file name from key {key!r}", file=sys.stderr)
        return 2
    match await ops.download_file(bucket, key, target):
        case Success(_):
            print(f"✓ Downloaded {bucket}/{key} to {target}")
            return 0
        case Failure(error):
            return _report_failure(error)


async def cmd_cat(ops: StorageOperations, bucket: str, key: str) -> int:
    match await ops.read_text_file(bucket, key):
        case Success(text):
            sys.stdout.write(text)
            return 0
        case Failure(error):
            return _report_failure(error)


async def cmd_url(ops: StorageOperations, bucket: str, key: str) -> int:
    match await ops.get_presigned_url(bucket, key):
        case Success(url):
            print(url)
            return 0
        case Failure(error):
            return _report_failure(error)


async def dispatch(args: argparse.Namespace, ops: StorageOperations) -> int:
    """Run the parsed subcommand against an initialized session."""
    as_json: bool = args.json
    match args.command:
        case "buckets":
            return await cmd_buckets(ops, as_json)
        case "ls":
            return await cmd_ls(ops, args.bucket, args.prefix, args.token, args.recursive, as_json)
        case "mkdir":
            return await cmd_mkdir(ops, args.bucket, args.key)
        case "rm":
            return await cmd_rm(ops, args.bucket, args.keys, args.folders, as_json)
        case "rm-prefix":
            return await cmd_rm_prefix(ops, args.bucket, args.prefix, as_json)
        case "stats":
            return await cmd_stats(ops, args.bucket, as_json)
        case "put":
            return await cmd_put(ops, args.bucket, args.key, args.path)
        case "put-many":
            return await cmd_put_many(ops, args.bucket, args.prefix, args.paths)
        case "get":
            return await cmd_get(ops, args.bucket, args.key, args.path)
        case "cat":
            return await cmd_cat(ops, args.bucket, args.key)
        case "url":
            return await cmd_url(ops, args.bucket, args.key)
        case _:
            raise AssertionError(f"Unhandled command: {args.command}")


async def run(args: argparse.Namespace) -> int:
    """Initialize a session from the environment and run one command."""
    try:
        credentials = Credentials.from_env()
        settings = ClientSettings.from_env()
    except ValidationError as e:
        print(f"✗ Error: invalid configuration:\n{e}", file=sys.stderr)
        return 2

    async with StorageSession(settings) as session:
        match await session.initialize(
            credentials.account_id,
            credentials.access_key,
            credentials.secret_key.get_secret_value(),
        ):
            case Failure(error):
                return _report_failure(error)
            case Success(_):
                return await dispatch(args, StorageOperations(session))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="r2session",
        description="S3-compatible object storage shell",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--json", action="store_true", help="Machine-readable output")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: WARNING)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("buckets", help="List buckets")

    ls_parser = subparsers.add_parser("ls", help="List one page of objects")
    ls_parser.add_argument("bucket", help="Bucket name")
    ls_parser.add_argument("prefix", nargs="?", default="", help="Folder prefix (e.g. 'logs/')")
    ls_parser.add_argument("--token", default=None, help="Continuation token of the next page")
    ls_parser.add_argument(
        "--recursive", action="store_true", help="List keys without grouping by '/'"
    )

    mkdir_parser = subparsers.add_parser("mkdir", help="Create a folder marker")
    mkdir_parser.add_argument("bucket", help="Bucket name")
    mkdir_parser.add_argument("key", help="Folder key; a trailing '/' is added if missing")

    rm_parser = subparsers.add_parser("rm", help="Delete objects")
    rm_parser.add_argument("bucket", help="Bucket name")
    rm_parser.add_argument("keys", nargs="*", help="Object keys")
    rm_parser.add_argument(
        "--folder",
        dest="folders",
        action="append",
        default=[],
        metavar="PREFIX",
        help="Also delete everything under PREFIX (repeatable)",
    )

    rm_prefix_parser = subparsers.add_parser("rm-prefix", help="Delete everything under a prefix")
    rm_prefix_parser.add_argument("bucket", help="Bucket name")
    rm_prefix_parser.add_argument("prefix", help="Key prefix")

    stats_parser = subparsers.add_parser("stats", help="Bucket size and object count")
    stats_parser.add_argument("bucket", help="Bucket name")

    put_parser = subparsers.add_parser("put", help="Upload a file")
    put_parser.add_argument("bucket", help="Bucket name")
    put_parser.add_argument("key", help="Destination key")
    put_parser.add_argument("path", help="Local file")

    put_many_parser = subparsers.add_parser("put-many", help="Upload files under a prefix")
    put_many_parser.add_argument("bucket", help="Bucket name")
    put_many_parser.add_argument("prefix", help="Destination prefix ('' for bucket root)")
    put_many_parser.add_argument("paths", nargs="+", help="Local files")

    get_parser = subparsers.add_parser("get", help="Download an object")
    get_parser.add_argument("bucket", help="Bucket name")
    get_parser.add_argument("key", help="Object key")
    get_parser.add_argument(
        "path", nargs="?", default=None, help="Local destination (default: key file name)"
    )

    cat_parser = subparsers.add_parser("cat", help="Print a text object")
    cat_parser.add_argument("bucket", help="Bucket name")
    cat_parser.add_argument("key", help="Object key")

    url_parser = subparsers.add_parser("url", help="Presigned download URL")
    url_parser.add_argument("bucket", help="Bucket name")
    url_parser.add_argument("key", help="Object key")

    return parser


def main(argv: Sequence[str] | None = None) -> NoReturn:
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
