"""Dependency wiring for the FastAPI application."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from .. import config_manager as cfg
from .. import logging_manager as log_mgr
from ..cache import LocalArtifactCache
from ..catalog import Catalog, SqlCatalog
from ..preprocessing import PreprocessingScheduler
from ..rendering import CoverExtractor, PageRenderer, WorkerRegistry, default_registry
from ..storage import MultipartUploader, ObjectStorageGateway
from ..streaming import RangeStreamProxy


logger = log_mgr.logger


@lru_cache
def get_app_settings() -> cfg.MediaShelfSettings:
    """Return the active :class:`MediaShelfSettings`."""

    return cfg.get_settings()


@lru_cache
def get_artifact_cache() -> LocalArtifactCache:
    """Return the process-wide :class:`LocalArtifactCache`."""

    root = Path(get_app_settings().cache_root).expanduser()
    root.mkdir(parents=True, exist_ok=True)
    return LocalArtifactCache(root)


@lru_cache
def get_storage_gateway() -> ObjectStorageGateway:
    """Return the object storage gateway; unconfigured when no credentials are set."""

    gateway = ObjectStorageGateway.from_settings(get_app_settings())
    if not gateway.configured:
        logger.info(
            "Object storage is not configured; serving from cache and local files only",
            extra={"event": "storage.unconfigured"},
        )
    return gateway


@lru_cache
def get_uploader() -> MultipartUploader:
    settings = get_app_settings()
    return MultipartUploader(
        get_storage_gateway(),
        threshold_bytes=settings.multipart_threshold_bytes,
        part_size_bytes=settings.multipart_part_size_bytes,
    )


@lru_cache
def get_catalog() -> Catalog:
    """Return the shared SQL-backed catalog."""

    return SqlCatalog()


@lru_cache
def get_page_renderer() -> PageRenderer:
    return PageRenderer.from_settings(
        get_app_settings(), get_artifact_cache(), gateway=get_storage_gateway()
    )


@lru_cache
def get_cover_extractor() -> CoverExtractor:
    return CoverExtractor(get_artifact_cache(), gateway=get_storage_gateway())


@lru_cache
def get_worker_registry() -> WorkerRegistry:
    return default_registry(get_page_renderer(), get_cover_extractor())


@lru_cache
def get_scheduler() -> PreprocessingScheduler:
    """Return the process-wide :class:`PreprocessingScheduler`."""

    return PreprocessingScheduler(
        catalog=get_catalog(),
        registry=get_worker_registry(),
        cache=get_artifact_cache(),
        item_delay_seconds=get_app_settings().preprocess_item_delay_seconds,
    )


@lru_cache
def get_range_proxy() -> RangeStreamProxy:
    return RangeStreamProxy(get_storage_gateway())


def get_item_types() -> tuple[str, ...]:
    return tuple(get_app_settings().item_types)


def shutdown_services() -> None:
    """Stop background workers started through the cached providers."""

    if get_scheduler.cache_info().currsize:
        get_scheduler().shutdown(wait=True)
        get_scheduler.cache_clear()


def reset_dependency_caches() -> None:
    """Forget every cached provider so the next request rebuilds them."""

    for provider in (
        get_app_settings,
        get_artifact_cache,
        get_storage_gateway,
        get_uploader,
        get_catalog,
        get_page_renderer,
        get_cover_extractor,
        get_worker_registry,
        get_scheduler,
        get_range_proxy,
    ):
        provider.cache_clear()


__all__ = [
    "get_app_settings",
    "get_artifact_cache",
    "get_catalog",
    "get_cover_extractor",
    "get_item_types",
    "get_page_renderer",
    "get_range_proxy",
    "get_scheduler",
    "get_storage_gateway",
    "get_uploader",
    "get_worker_registry",
    "reset_dependency_caches",
    "shutdown_services",
]
