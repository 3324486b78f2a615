from __future__ import annotations

from pathlib import Path

from mediashelf.cache import LocalArtifactCache
from mediashelf.catalog import SourceItem
from mediashelf.rendering import CoverExtractor, PageRenderer, default_registry
from tests.helpers.poppler_stub import FakePoppler


def _item(path: str) -> SourceItem:
    return SourceItem(id=1, item_type="ebook", source_path=path, title="")


def test_default_registry_dispatches_on_extension(tmp_path: Path) -> None:
    cache = LocalArtifactCache(tmp_path / "cache")
    renderer = PageRenderer(cache, runner=FakePoppler(1))
    extractor = CoverExtractor(cache)

    registry = default_registry(renderer, extractor)

    assert registry.for_item(_item("/m/Issue.PDF")) is renderer
    assert registry.for_item(_item("s3://bucket/e/book.epub")) is extractor
    assert registry.for_item(_item("/a/track.mp3")) is None
    assert registry.extensions == (".epub", ".pdf")
