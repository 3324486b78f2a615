"""Sub-command implementations for the mediashelf CLI."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Optional

from .. import config_manager as cfg
from .. import logging_manager as log_mgr
from ..cache import LocalArtifactCache, derive_cache_key
from ..cache.naming import legacy_base
from ..catalog import SqlCatalog
from ..preprocessing import PreprocessingScheduler
from ..rendering import CoverExtractor, PageRenderer, default_registry
from ..storage import MultipartUploader, ObjectStorageGateway, StorageError, UploadProgress
from ..storage.migration import StorageMigrator

LOGGER = log_mgr.get_logger().getChild("cli")


class CommandContext:
    """Services assembled from the loaded settings for one CLI invocation."""

    def __init__(self, settings: cfg.MediaShelfSettings, catalog: Optional[Any] = None) -> None:
        self.settings = settings
        self.catalog = catalog if catalog is not None else SqlCatalog()
        self._cache: Optional[LocalArtifactCache] = None
        self._gateway: Optional[ObjectStorageGateway] = None

    @property
    def cache(self) -> LocalArtifactCache:
        if self._cache is None:
            self._cache = LocalArtifactCache(Path(self.settings.cache_root).expanduser())
        return self._cache

    @property
    def gateway(self) -> ObjectStorageGateway:
        if self._gateway is None:
            self._gateway = ObjectStorageGateway.from_settings(self.settings)
        return self._gateway

    def uploader(self) -> MultipartUploader:
        return MultipartUploader(
            self.gateway,
            threshold_bytes=self.settings.multipart_threshold_bytes,
            part_size_bytes=self.settings.multipart_part_size_bytes,
        )

    def scheduler(self) -> PreprocessingScheduler:
        registry = default_registry(
            PageRenderer.from_settings(self.settings, self.cache, gateway=self.gateway),
            CoverExtractor(self.cache, gateway=self.gateway),
        )
        return PreprocessingScheduler(
            catalog=self.catalog,
            registry=registry,
            cache=self.cache,
            item_delay_seconds=self.settings.preprocess_item_delay_seconds,
        )


def _emit(payload: Dict[str, Any]) -> None:
    print(json.dumps(payload, indent=2, sort_keys=True))


def _require_storage(context: CommandContext) -> bool:
    if context.gateway.configured:
        return True
    LOGGER.error(
        "Object storage is not configured; set R2_ACCOUNT_ID or S3_ENDPOINT_URL and access keys.",
        extra={"event": "cli.storage.unconfigured"},
    )
    return False


def run_upload(args, context: CommandContext) -> int:
    """Upload every local source of an item type, skipping keys that already exist."""

    if not args.dry_run and not _require_storage(context):
        return 1
    migrator = StorageMigrator(
        context.catalog,
        context.gateway,
        context.uploader(),
        media_roots=context.settings.media_roots,
    )
    report = migrator.migrate(args.item_type, limit=args.limit, dry_run=args.dry_run)
    _emit(report.to_dict())
    return 1 if report.failed else 0


def run_upload_file(args, context: CommandContext) -> int:
    if not _require_storage(context):
        return 1
    path = Path(args.path).expanduser()
    if not path.is_file():
        LOGGER.error("File not found: %s", path, extra={"event": "cli.upload.missing"})
        return 1

    def _report(progress: UploadProgress) -> None:
        LOGGER.info(
            "Uploaded part %d/%d (%.0f%%)",
            progress.part_number,
            progress.total_parts,
            progress.fraction * 100,
            extra={"event": "cli.upload.progress"},
        )

    try:
        reference = context.uploader().upload_large(
            path, args.key, args.content_type, progress_callback=_report
        )
    except (OSError, StorageError) as exc:
        LOGGER.error("Upload failed: %s", exc, extra={"event": "cli.upload.failed"})
        return 1
    _emit({"key": args.key, "reference": reference})
    return 0


def run_preprocess(args, context: CommandContext) -> int:
    """Run a preprocessing job in the foreground and print its final snapshot."""

    scheduler = context.scheduler()
    selected = set(args.item_ids or ())
    predicate = (lambda item: item.id in selected) if selected else None
    try:
        scheduler.start(args.item_type, force=args.force, filter_predicate=predicate)
        final = scheduler.wait(args.item_type)
    finally:
        scheduler.shutdown(wait=True)
    _emit(final.to_payload())
    return 1 if final.failed else 0


def run_migrate_cache(args, context: CommandContext) -> int:
    moved = 0
    for item in context.catalog.list_items(args.item_type):
        cache_key = derive_cache_key(item.source_path, item.title)
        moved += context.cache.migrate_legacy(item.id, cache_key, item_type=args.item_type)
    _emit({"item_type": args.item_type, "migrated": moved})
    return 0


def run_sweep_cache(args, context: CommandContext) -> int:
    """List cache files whose base matches no current item; delete them with ``--delete``."""

    known = set()
    for item in context.catalog.list_items(args.item_type):
        known.add(derive_cache_key(item.source_path, item.title))
        known.add(legacy_base(item.id))
    orphans = context.cache.find_orphans(args.item_type, known)
    removed = context.cache.remove(orphans) if args.delete else 0
    _emit(
        {
            "item_type": args.item_type,
            "orphans": [path.name for path in orphans],
            "removed": removed,
        }
    )
    return 0


COMMANDS = {
    "upload": run_upload,
    "upload-file": run_upload_file,
    "preprocess": run_preprocess,
    "migrate-cache": run_migrate_cache,
    "sweep-cache": run_sweep_cache,
}


__all__ = [
    "COMMANDS",
    "CommandContext",
    "run_migrate_cache",
    "run_preprocess",
    "run_sweep_cache",
    "run_upload",
    "run_upload_file",
]
