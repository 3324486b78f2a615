"""Make a catalog item's source file available on local disk."""

from __future__ import annotations

import contextlib
import contextvars
from pathlib import Path
from typing import Iterator, Optional

from mediashelf import logging_manager
from mediashelf.cache import LocalArtifactCache
from mediashelf.catalog import SourceItem
from mediashelf.storage import ObjectStorageGateway, StorageError, StorageUnavailable

from .errors import SourceUnavailable

logger = logging_manager.get_logger().getChild("rendering.source")


_scratch_scope: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "mediashelf_scratch_scope", default=None
)


@contextlib.contextmanager
def scratch_scope(tag: str) -> Iterator[None]:
    """Tag scratch entries created inside the block with ``tag``.

    Lets the owner of the block remove exactly its own entries with
    ``cleanup_scratch(prefix=scoped_scratch_prefix(item_type, tag))``.
    """

    token = _scratch_scope.set(tag)
    try:
        yield
    finally:
        _scratch_scope.reset(token)


def scoped_scratch_prefix(item_type: str, tag: str) -> str:
    return f"{item_type}-{tag}"


def scratch_prefix(item: SourceItem) -> str:
    tag = _scratch_scope.get()
    if tag is None:
        return f"{item.item_type}-{item.id}"
    return f"{scoped_scratch_prefix(item.item_type, tag)}-{item.id}"


@contextlib.contextmanager
def materialize_source(
    item: SourceItem,
    *,
    cache: LocalArtifactCache,
    gateway: Optional[ObjectStorageGateway] = None,
) -> Iterator[Path]:
    """Yield a local path for ``item``'s source.

    Local files are yielded as-is. Otherwise the object is downloaded into the
    scratch directory and the copy is deleted on exit, including on error.
    """

    local = Path(item.source_path)
    if not item.is_remote_only and local.is_file():
        yield local
        return

    key = item.remote_key
    if key is None:
        raise SourceUnavailable(f"Source for item {item.id} not found at {item.source_path}")
    if gateway is None or not gateway.configured:
        raise SourceUnavailable(
            f"Source for item {item.id} is remote ({key}) but object storage is not configured"
        )

    destination = cache.scratch_path(item.extension or ".bin", prefix=scratch_prefix(item))
    try:
        try:
            gateway.download_to(key, destination)
        except (StorageError, StorageUnavailable) as exc:
            raise SourceUnavailable(f"Unable to fetch {key} for item {item.id}: {exc}") from exc
        logger.debug(
            "Fetched %s into scratch",
            key,
            extra={"event": "render.source.fetched", "item_id": item.id},
        )
        yield destination
    finally:
        destination.unlink(missing_ok=True)


__all__ = ["materialize_source", "scoped_scratch_prefix", "scratch_prefix", "scratch_scope"]
