"""objstore CLI - inspect and modify object stores from the shell.

Usage:
    python -m objstore [--url URL] [--extension EXT] [--compression SCHEME] ls [PREFIX]
    python -m objstore cat NAME
    python -m objstore put NAME [FILE] [--push]
    python -m objstore rm NAME
    python -m objstore exists NAME
    python -m objstore url NAME

The store URL defaults to OBJSTORE_URL; the other options default to their
OBJSTORE_* environment variables.

Exit codes:
    0: Success
    1: Internal error
    2: Object not found / invalid usage
"""

from __future__ import annotations

import argparse
import json
import os
import shutil
import sys
from typing import Any

from pydantic import ValidationError

from objstore.observability.tracing import configure_tracing, get_env_bool
from objstore.storage.config import (
    OBJSTORE_COMPRESSION_ENV,
    OBJSTORE_EXTENSION_ENV,
    OBJSTORE_OVERWRITE_ENV,
    OBJSTORE_URL_ENV,
    StoreConfig,
)
from objstore.storage.errors import (
    ObjectNotFoundError,
    ObjectStorageError,
    StopWalk,
    UnsupportedSchemeError,
)
from objstore.storage.factory import new_store_from_config
from objstore.storage.object_store import ObjectStore
from objstore.storage.walk import DEFAULT_LIST_LIMIT

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_NOT_FOUND = 2
EXIT_USAGE = 2


def _output_json(data: dict[str, Any]) -> None:
    """Output JSON to stdout with deterministic ordering."""
    print(json.dumps(data, sort_keys=True, indent=2))


def _error(code: str, message: str) -> dict[str, Any]:
    return {"error": {"code": code, "message": message}}


def _config_from_args(args: argparse.Namespace) -> StoreConfig:
    overwrite = args.overwrite or get_env_bool(OBJSTORE_OVERWRITE_ENV, False)
    return StoreConfig(
        url=args.url or os.environ.get(OBJSTORE_URL_ENV, ""),
        extension=(
            args.extension
            if args.extension is not None
            else os.environ.get(OBJSTORE_EXTENSION_ENV, "")
        ),
        compression=(
            args.compression
            if args.compression is not None
            else os.environ.get(OBJSTORE_COMPRESSION_ENV, "")
        ),
        overwrite=overwrite,
    )


def cmd_ls(store: ObjectStore, args: argparse.Namespace) -> int:
    """List object names, one per line."""
    if args.start:
        names: list[str] = []

        def collect(name: str) -> None:
            names.append(name)
            if len(names) >= args.limit:
                raise StopWalk()

        if args.limit > 0:
            store.walk_from(args.prefix, args.start, collect)
    else:
        names = store.list(args.prefix, args.limit)

    for name in names:
        print(name)
    return EXIT_OK


def cmd_cat(store: ObjectStore, args: argparse.Namespace) -> int:
    """Write an object's decompressed body to stdout."""
    with store.open(args.name) as reader:
        shutil.copyfileobj(reader, sys.stdout.buffer)
    sys.stdout.buffer.flush()
    return EXIT_OK


def cmd_put(store: ObjectStore, args: argparse.Namespace) -> int:
    """Store a local file (or stdin) under NAME."""
    if args.push:
        if not args.file:
            print("put --push requires FILE", file=sys.stderr)
            return EXIT_USAGE
        store.push_local_file(args.file, args.name)
        _output_json({"name": args.name, "pushed": True, "url": store.object_url(args.name)})
        return EXIT_OK
    if args.file:
        with open(args.file, "rb") as f:
            written = store.write(args.name, f)
    else:
        written = store.write(args.name, sys.stdin.buffer)
    _output_json({"name": args.name, "url": store.object_url(args.name), "written": written})
    return EXIT_OK


def cmd_rm(store: ObjectStore, args: argparse.Namespace) -> int:
    store.delete(args.name)
    return EXIT_OK


def cmd_exists(store: ObjectStore, args: argparse.Namespace) -> int:
    """Print whether NAME exists; exit 2 when it does not."""
    found = store.exists(args.name)
    _output_json({"exists": found, "name": args.name})
    return EXIT_OK if found else EXIT_NOT_FOUND


def cmd_url(store: ObjectStore, args: argparse.Namespace) -> int:
    print(store.object_url(args.name))
    return EXIT_OK


COMMAND_DISPATCH = {
    "ls": cmd_ls,
    "cat": cmd_cat,
    "put": cmd_put,
    "rm": cmd_rm,
    "exists": cmd_exists,
    "url": cmd_url,
}


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="objstore",
        description="objstore - backend-agnostic object storage CLI",
    )
    parser.add_argument(
        "--url",
        default=None,
        metavar="URL",
        help=f"Store base location (default: ${OBJSTORE_URL_ENV})",
    )
    parser.add_argument(
        "--extension",
        default=None,
        metavar="EXT",
        help="Suffix appended to object names (e.g. .json)",
    )
    parser.add_argument(
        "--compression",
        default=None,
        choices=["none", "gzip", "zstd"],
        help="Object body compression",
    )
    parser.add_argument(
        "--overwrite",
        action="store_true",
        default=False,
        help="Allow writes to replace existing objects",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    ls_parser = subparsers.add_parser("ls", help="List object names")
    ls_parser.add_argument("prefix", nargs="?", default="", help="Listing prefix")
    ls_parser.add_argument(
        "--limit",
        type=int,
        default=DEFAULT_LIST_LIMIT,
        help=f"Maximum names to print (default: {DEFAULT_LIST_LIMIT})",
    )
    ls_parser.add_argument(
        "--start",
        default="",
        metavar="NAME",
        help="Resume the listing at NAME (inclusive)",
    )

    cat_parser = subparsers.add_parser("cat", help="Print an object's body")
    cat_parser.add_argument("name")

    put_parser = subparsers.add_parser("put", help="Store a file or stdin")
    put_parser.add_argument("name")
    put_parser.add_argument("file", nargs="?", default=None, help="Local file (default: stdin)")
    put_parser.add_argument(
        "--push",
        action="store_true",
        default=False,
        help="Delete FILE after it was stored",
    )

    rm_parser = subparsers.add_parser("rm", help="Delete an object")
    rm_parser.add_argument("name")

    exists_parser = subparsers.add_parser("exists", help="Check whether an object exists")
    exists_parser.add_argument("name")

    url_parser = subparsers.add_parser("url", help="Print an object's URL")
    url_parser.add_argument("name")

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point.

    Exit codes:
        0: Success
        1: Internal error (unexpected)
        2: Object not found / invalid usage
    """
    try:
        parser = create_parser()
        args = parser.parse_args(argv)

        if args.command is None:
            parser.print_help()
            return EXIT_OK

        configure_tracing()

        try:
            config = _config_from_args(args)
        except ValidationError as e:
            _output_json(_error("INVALID_CONFIG", str(e)))
            return EXIT_USAGE

        store = new_store_from_config(config)
        return COMMAND_DISPATCH[args.command](store, args)

    except ObjectNotFoundError as e:
        _output_json(_error("NOT_FOUND", str(e)))
        return EXIT_NOT_FOUND
    except (UnsupportedSchemeError, FileNotFoundError) as e:
        _output_json(_error("INVALID_ARGUMENT", str(e)))
        return EXIT_USAGE
    except ObjectStorageError as e:
        _output_json(_error("STORAGE_ERROR", str(e)))
        return EXIT_ERROR
    except Exception as e:
        # Fail-closed: unexpected errors return exit code 1
        _output_json(_error("INTERNAL_ERROR", str(e)))
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
