"""Argument parsing for the mediashelf command line interface."""

from __future__ import annotations

import argparse


def _add_shared_arguments(parser: argparse.ArgumentParser) -> argparse.ArgumentParser:
    parser.add_argument(
        "--config",
        dest="config_file",
        help="Path to a JSON configuration overriding conf/config.local.json.",
    )
    parser.add_argument(
        "--database-url",
        dest="database_url",
        help="SQLAlchemy URL of the catalog database (overrides configuration).",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging.",
    )
    return parser


def build_cli_parser() -> argparse.ArgumentParser:
    """Build the CLI parser with explicit sub-commands."""

    parser = argparse.ArgumentParser(
        description="mediashelf cache and storage maintenance", allow_abbrev=False
    )
    _add_shared_arguments(parser)
    subparsers = parser.add_subparsers(dest="command", required=True)

    upload_parser = subparsers.add_parser(
        "upload",
        help="Upload local catalog sources of one item type to object storage",
        allow_abbrev=False,
    )
    upload_parser.add_argument("item_type", help="Catalog item type, e.g. ebook or magazine.")
    upload_parser.add_argument(
        "--limit", type=int, default=None, help="Stop after this many items."
    )
    upload_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="List the object keys that would be uploaded without uploading.",
    )

    file_parser = subparsers.add_parser(
        "upload-file",
        help="Upload a single file, using multipart transfer for large files",
        allow_abbrev=False,
    )
    file_parser.add_argument("path", help="Local file to upload.")
    file_parser.add_argument("key", help="Destination object key.")
    file_parser.add_argument("--content-type", dest="content_type", default=None)

    preprocess_parser = subparsers.add_parser(
        "preprocess",
        help="Render missing artifacts for every item of a type and wait for completion",
        allow_abbrev=False,
    )
    preprocess_parser.add_argument("item_type", help="Catalog item type to preprocess.")
    preprocess_parser.add_argument(
        "--force",
        action="store_true",
        help="Include items already marked complete.",
    )
    preprocess_parser.add_argument(
        "--item-id",
        dest="item_ids",
        type=int,
        action="append",
        help="Only process these catalog ids (repeatable).",
    )

    migrate_parser = subparsers.add_parser(
        "migrate-cache",
        help="Rename cache files named after catalog ids to content-derived names",
        allow_abbrev=False,
    )
    migrate_parser.add_argument("item_type", help="Catalog item type whose cache to migrate.")

    sweep_parser = subparsers.add_parser(
        "sweep-cache",
        help="List (or delete) cache files that no catalog item maps to",
        allow_abbrev=False,
    )
    sweep_parser.add_argument("item_type", help="Catalog item type whose cache to sweep.")
    sweep_parser.add_argument(
        "--delete",
        action="store_true",
        help="Delete the orphaned files instead of only listing them.",
    )
    return parser


__all__ = ["build_cli_parser"]
