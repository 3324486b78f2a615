from __future__ import annotations

from pathlib import Path

import pytest

from mediashelf.cache import ArtifactRole, LocalArtifactCache, NamingScheme, derive_cache_key
from mediashelf.catalog import SourceItem
from mediashelf.rendering import PageOutOfRange, PageRenderer, RenderFailure, RenderStatus
from mediashelf.rendering.pdf_pages import find_rendered_page, parse_page_count
from mediashelf.storage import ObjectStorageGateway
from tests.helpers.fake_s3 import FakeS3Client
from tests.helpers.poppler_stub import FakePoppler

BUCKET = "media-test"


@pytest.fixture
def cache(tmp_path: Path) -> LocalArtifactCache:
    return LocalArtifactCache(tmp_path / "cache")


@pytest.fixture
def pdf_item(tmp_path: Path) -> SourceItem:
    source = tmp_path / "media" / "issue-12.pdf"
    source.parent.mkdir(parents=True)
    source.write_bytes(b"%PDF-1.7\n")
    return SourceItem(id=42, item_type="magazine", source_path=str(source), title="Issue 12")


def _renderer(cache: LocalArtifactCache, poppler: FakePoppler, gateway=None) -> PageRenderer:
    return PageRenderer(cache, gateway=gateway, runner=poppler)


def _key(item: SourceItem) -> str:
    return derive_cache_key(item.source_path, item.title)


def _scratch_entries(cache: LocalArtifactCache) -> list[Path]:
    scratch = cache.root / "tmp"
    return list(scratch.iterdir()) if scratch.exists() else []


def test_parse_page_count() -> None:
    assert parse_page_count("Producer: x\nPages:          12\n") == 12
    assert parse_page_count("garbage") is None


def test_find_rendered_page_probes_padding_widths(tmp_path: Path) -> None:
    (tmp_path / "page-007.png").write_bytes(b"png")

    assert find_rendered_page(tmp_path, "page", 7) == tmp_path / "page-007.png"
    assert find_rendered_page(tmp_path, "page", 8) is None


def test_find_rendered_page_handles_five_digit_padding(tmp_path: Path) -> None:
    (tmp_path / "page-00007.png").write_bytes(b"png")

    assert find_rendered_page(tmp_path, "page", 7) is None
    assert find_rendered_page(tmp_path, "page", 7, total=12000) == tmp_path / "page-00007.png"


def test_twelve_page_document_renders_once(cache, pdf_item) -> None:
    poppler = FakePoppler(12)
    renderer = _renderer(cache, poppler)

    result = renderer.render_all(pdf_item)

    assert result.status is RenderStatus.SUCCESS
    assert result.units_written == 12
    assert result.page_count == 12
    key = _key(pdf_item)
    for page in range(1, 13):
        assert (cache.root / "magazine" / f"{key}_page_{page}.png").stat().st_size > 0
    render_call = poppler.render_calls()[0]
    assert render_call[1:8] == ["-png", "-r", "150", "-f", "1", "-l", "12"]
    assert _scratch_entries(cache) == []

    again = renderer.render_all(pdf_item)

    assert again.status is RenderStatus.SKIPPED
    assert len(poppler.render_calls()) == 1


def test_known_page_count_skips_without_touching_source(cache) -> None:
    item = SourceItem(
        id=9,
        item_type="magazine",
        source_path="/nowhere/missing.pdf",
        title="Gone Issue",
        page_count=3,
    )
    for page in range(1, 4):
        cache.write(_key(item), ArtifactRole.PAGE, page, b"png", item_type="magazine")
    poppler = FakePoppler(3)

    result = _renderer(cache, poppler).render_all(item)

    assert result.status is RenderStatus.SKIPPED
    assert poppler.calls == []


def test_resume_renders_only_missing_pages(cache, pdf_item) -> None:
    key = _key(pdf_item)
    for page in range(1, 8):
        cache.write(key, ArtifactRole.PAGE, page, b"existing", item_type="magazine")
    poppler = FakePoppler(10)

    result = _renderer(cache, poppler).render_all(pdf_item)

    assert result.units_written == 3
    call = poppler.render_calls()[0]
    assert call[call.index("-f") + 1] == "8"
    assert call[call.index("-l") + 1] == "10"
    assert cache.read_path(key, ArtifactRole.PAGE, 1, item_type="magazine").read_bytes() == b"existing"


def test_legacy_set_is_used_and_completed(cache, pdf_item) -> None:
    for page in range(1, 9):
        cache.write("42", ArtifactRole.PAGE, page, b"legacy", item_type="magazine")
    poppler = FakePoppler(12)

    result = _renderer(cache, poppler).render_all(pdf_item)

    assert result.scheme is NamingScheme.LEGACY_ID
    assert result.units_written == 4
    for page in range(9, 13):
        assert cache.has("42", ArtifactRole.PAGE, page, item_type="magazine")
    assert not cache.has(_key(pdf_item), ArtifactRole.PAGE, 9, item_type="magazine")


def test_complete_legacy_set_is_skipped(cache, pdf_item) -> None:
    for page in range(1, 13):
        cache.write("42", ArtifactRole.PAGE, page, b"legacy", item_type="magazine")
    poppler = FakePoppler(12)
    item = SourceItem(
        id=42,
        item_type="magazine",
        source_path=pdf_item.source_path,
        title=pdf_item.title,
        page_count=12,
    )

    result = _renderer(cache, poppler).render_all(item)

    assert result.status is RenderStatus.SKIPPED
    assert result.scheme is NamingScheme.LEGACY_ID
    assert poppler.calls == []


def test_unusual_padding_is_found(cache, pdf_item) -> None:
    poppler = FakePoppler(12, pad_width=3)

    result = _renderer(cache, poppler).render_all(pdf_item)

    assert result.units_written == 12


def test_timeout_raises_render_failure(cache, pdf_item) -> None:
    key = _key(pdf_item)
    cache.write(key, ArtifactRole.PAGE, 1, b"png", item_type="magazine")
    poppler = FakePoppler(5, timeout=True)

    with pytest.raises(RenderFailure) as excinfo:
        _renderer(cache, poppler).render_all(pdf_item)

    assert excinfo.value.timeout
    assert excinfo.value.units_done == 1
    assert _scratch_entries(cache) == []


def test_missing_output_page_is_a_failure(cache, pdf_item) -> None:
    poppler = FakePoppler(6, skip_pages=[4])

    with pytest.raises(RenderFailure) as excinfo:
        _renderer(cache, poppler).render_all(pdf_item)

    assert excinfo.value.units_done == 5


def test_render_page_on_demand(cache, pdf_item) -> None:
    poppler = FakePoppler(12)
    item = SourceItem(
        id=pdf_item.id,
        item_type=pdf_item.item_type,
        source_path=pdf_item.source_path,
        title=pdf_item.title,
        page_count=12,
    )
    renderer = _renderer(cache, poppler)

    path = renderer.render_page(item, 3)

    assert path.name == f"{_key(item)}_page_3.png"
    call = poppler.render_calls()[0]
    assert call[call.index("-f") + 1] == "3"
    assert call[call.index("-l") + 1] == "3"

    assert renderer.render_page(item, 3) == path
    assert len(poppler.render_calls()) == 1


def test_render_page_out_of_range(cache, pdf_item) -> None:
    item = SourceItem(
        id=pdf_item.id,
        item_type=pdf_item.item_type,
        source_path=pdf_item.source_path,
        title=pdf_item.title,
        page_count=12,
    )

    with pytest.raises(PageOutOfRange):
        _renderer(cache, FakePoppler(12)).render_page(item, 13)


def test_remote_source_is_fetched_into_scratch_and_removed(cache) -> None:
    s3 = FakeS3Client()
    s3.add_object(BUCKET, "magazine/issue.pdf", b"%PDF-1.7 remote")
    gateway = ObjectStorageGateway(s3, bucket=BUCKET)
    item = SourceItem(
        id=7,
        item_type="magazine",
        source_path=f"s3://{BUCKET}/magazine/issue.pdf",
        title="Remote Issue",
    )
    poppler = FakePoppler(2)

    result = _renderer(cache, poppler, gateway).render_all(item)

    assert result.units_written == 2
    info_call = poppler.info_calls()[0]
    assert Path(info_call[1]).parent == cache.root / "tmp"
    assert _scratch_entries(cache) == []
