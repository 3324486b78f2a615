"""Push catalog sources that only exist locally into the object store."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import List, Mapping, Optional

from mediashelf import logging_manager
from mediashelf.catalog import Catalog, SourceItem

from .errors import StorageError
from .gateway import ObjectStorageGateway
from .multipart import MultipartUploader

logger = logging_manager.get_logger().getChild("storage.migration")


@dataclass(slots=True)
class MigrationReport:
    item_type: str
    dry_run: bool
    uploaded: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    failed: List[dict] = field(default_factory=list)
    planned: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "item_type": self.item_type,
            "dry_run": self.dry_run,
            "uploaded": list(self.uploaded),
            "skipped": list(self.skipped),
            "failed": list(self.failed),
            "planned": list(self.planned),
        }


def object_key_for(item: SourceItem, media_root: Optional[str] = None) -> str:
    """Return ``{item_type}/{path relative to the media root}``."""

    path = Path(item.source_path)
    relative: PurePosixPath
    if media_root:
        try:
            relative = PurePosixPath(path.resolve().relative_to(Path(media_root).resolve()).as_posix())
        except ValueError:
            relative = PurePosixPath(path.name)
    else:
        relative = PurePosixPath(path.name)
    return f"{item.item_type}/{relative.as_posix()}"


class StorageMigrator:
    """Upload local catalog sources and record their object-store keys."""

    def __init__(
        self,
        catalog: Catalog,
        gateway: ObjectStorageGateway,
        uploader: MultipartUploader,
        *,
        media_roots: Optional[Mapping[str, str]] = None,
    ) -> None:
        self._catalog = catalog
        self._gateway = gateway
        self._uploader = uploader
        self._media_roots = dict(media_roots or {})

    def migrate(
        self,
        item_type: str,
        *,
        limit: Optional[int] = None,
        dry_run: bool = False,
    ) -> MigrationReport:
        report = MigrationReport(item_type=item_type, dry_run=dry_run)
        processed = 0
        for item in self._catalog.list_items(item_type):
            if limit is not None and processed >= limit:
                break
            if item.is_remote_only or item.storage_key:
                continue
            source = Path(item.source_path)
            if not source.is_file():
                report.failed.append({"id": item.id, "title": item.title, "error": "source file missing"})
                continue
            processed += 1
            key = object_key_for(item, self._media_roots.get(item_type))
            if dry_run:
                report.planned.append(key)
                continue
            if self._gateway.exists(key):
                self._catalog.set_storage_key(item.id, key)
                report.skipped.append(key)
                continue
            try:
                self._uploader.upload_large(source, key)
            except (OSError, StorageError) as exc:
                logger.error(
                    "Upload of %s failed: %s",
                    source,
                    exc,
                    extra={"event": "storage.migration.failed", "item_id": item.id},
                )
                report.failed.append({"id": item.id, "title": item.title, "error": str(exc)})
                continue
            self._catalog.set_storage_key(item.id, key)
            report.uploaded.append(key)

        logger.info(
            "Migration of %s finished: %d uploaded, %d skipped, %d failed",
            item_type,
            len(report.uploaded),
            len(report.skipped),
            len(report.failed),
            extra={"event": "storage.migration.finished", "item_type": item_type},
        )
        return report


__all__ = ["MigrationReport", "StorageMigrator", "object_key_for"]
