"""Rendering workers that derive cache artifacts from source files."""

from __future__ import annotations

from typing import Mapping, Optional, Protocol

from mediashelf.catalog import SourceItem

from .epub_cover import CoverExtractor
from .errors import (
    CommandExecutionError,
    PageOutOfRange,
    RenderFailure,
    RenderingError,
    SourceUnavailable,
)
from .pdf_pages import PageRenderer
from .results import RenderResult, RenderStatus
from .source import materialize_source, scoped_scratch_prefix, scratch_scope


class RenderingWorker(Protocol):
    def render_all(self, item: SourceItem) -> RenderResult:
        ...


class WorkerRegistry:
    """Pick the rendering worker for an item by its source extension."""

    def __init__(self, workers: Mapping[str, RenderingWorker]) -> None:
        self._workers = {extension.lower(): worker for extension, worker in workers.items()}

    def for_item(self, item: SourceItem) -> Optional[RenderingWorker]:
        return self._workers.get(item.extension)

    @property
    def extensions(self) -> tuple[str, ...]:
        return tuple(sorted(self._workers))


def default_registry(
    page_renderer: PageRenderer, cover_extractor: CoverExtractor
) -> WorkerRegistry:
    return WorkerRegistry({".pdf": page_renderer, ".epub": cover_extractor})


__all__ = [
    "CommandExecutionError",
    "CoverExtractor",
    "PageOutOfRange",
    "PageRenderer",
    "RenderFailure",
    "RenderResult",
    "RenderStatus",
    "RenderingError",
    "RenderingWorker",
    "SourceUnavailable",
    "WorkerRegistry",
    "default_registry",
    "materialize_source",
    "scoped_scratch_prefix",
    "scratch_scope",
]
