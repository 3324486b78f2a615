"""Cover extraction for EPUB packages."""

from __future__ import annotations

import contextlib
import shutil
import warnings
import zipfile
from io import BytesIO
from pathlib import Path, PurePosixPath
from typing import Callable, Iterator, List, Optional, Tuple

import ebooklib
from ebooklib import epub
from PIL import Image, UnidentifiedImageError

from mediashelf import logging_manager
from mediashelf.cache import ArtifactRole, LocalArtifactCache, derive_cache_key
from mediashelf.catalog import SourceItem
from mediashelf.storage import ObjectStorageGateway

from .results import RenderResult, RenderStatus
from .source import materialize_source, scratch_prefix

warnings.filterwarnings("ignore", category=UserWarning, module="ebooklib.epub")
warnings.filterwarnings("ignore", category=FutureWarning, module="ebooklib.epub")

logger = logging_manager.get_logger().getChild("rendering.epub")

IMAGE_SUFFIXES = {".jpg", ".jpeg", ".png", ".gif", ".webp", ".bmp"}
MAX_SEARCH_DEPTH = 8
JPEG_QUALITY = 90

Candidate = Tuple[str, bytes]


def normalize_cover(data: bytes) -> Optional[bytes]:
    """Return ``data`` re-encoded as RGB JPEG, or ``None`` if it is not a readable image."""

    try:
        with Image.open(BytesIO(data)) as probe:
            probe.verify()
        with Image.open(BytesIO(data)) as image:
            converted = image.convert("RGB")
            buffer = BytesIO()
            converted.save(buffer, format="JPEG", quality=JPEG_QUALITY)
    except (UnidentifiedImageError, OSError, ValueError, SyntaxError):
        return None
    return buffer.getvalue()


def _is_image(item: epub.EpubItem) -> bool:
    media_type = getattr(item, "media_type", "") or ""
    if media_type.startswith("image/"):
        return True
    return PurePosixPath(item.get_name() or "").suffix.lower() in IMAGE_SUFFIXES


def _item_candidate(item: Optional[epub.EpubItem]) -> Optional[Candidate]:
    if item is None or not _is_image(item):
        return None
    try:
        content = item.get_content()
    except (KeyError, OSError):
        return None
    if not content:
        return None
    return item.get_name(), content


def meta_cover_candidates(book: epub.EpubBook) -> Iterator[Candidate]:
    """Tier 1: ``<meta name="cover" content="{manifest id}"/>``."""

    for _value, attributes in book.get_metadata("OPF", "cover"):
        cover_id = (attributes or {}).get("content")
        if not cover_id:
            continue
        candidate = _item_candidate(book.get_item_with_id(cover_id))
        if candidate is not None:
            yield candidate


def manifest_id_candidates(book: epub.EpubBook) -> Iterator[Candidate]:
    """Tier 2: a manifest image whose id mentions ``cover``."""

    for item in book.get_items():
        item_id = (item.get_id() or "").lower()
        if "cover" not in item_id:
            continue
        candidate = _item_candidate(item)
        if candidate is not None:
            yield candidate


def cover_property_candidates(book: epub.EpubBook) -> Iterator[Candidate]:
    """Tier 3: a manifest item flagged with the ``cover-image`` property."""

    for item in book.get_items():
        properties = getattr(item, "properties", None) or []
        if item.get_type() != ebooklib.ITEM_COVER and "cover-image" not in properties:
            continue
        candidate = _item_candidate(item)
        if candidate is not None:
            yield candidate


def _safe_extract(archive: zipfile.ZipFile, destination: Path) -> None:
    root = destination.resolve()
    for member in archive.infolist():
        target = (destination / member.filename).resolve()
        if target != root and root not in target.parents:
            logger.warning(
                "Skipping archive member outside extraction root: %s",
                member.filename,
                extra={"event": "render.epub.unsafe_member"},
            )
            continue
        if member.is_dir():
            target.mkdir(parents=True, exist_ok=True)
            continue
        target.parent.mkdir(parents=True, exist_ok=True)
        with archive.open(member) as source, target.open("wb") as sink:
            shutil.copyfileobj(source, sink)


def walk_for_cover_files(root: Path, max_depth: int = MAX_SEARCH_DEPTH) -> Iterator[Path]:
    """Yield image files named like a cover, at most ``max_depth`` directories deep."""

    stack: List[Tuple[Path, int]] = [(root, 0)]
    while stack:
        directory, depth = stack.pop()
        try:
            entries = sorted(directory.iterdir(), key=lambda entry: entry.name)
        except OSError:
            continue
        subdirectories: List[Path] = []
        for entry in entries:
            if entry.is_symlink():
                continue
            if entry.is_dir():
                subdirectories.append(entry)
            elif (
                entry.suffix.lower() in IMAGE_SUFFIXES
                and "cover" in entry.name.lower()
            ):
                yield entry
        if depth + 1 <= max_depth:
            for subdirectory in reversed(subdirectories):
                stack.append((subdirectory, depth + 1))


class CoverExtractor:
    """Extract an EPUB cover into the cache as ``{key}_cover_0.jpg``."""

    role = ArtifactRole.COVER

    def __init__(
        self,
        cache: LocalArtifactCache,
        *,
        gateway: Optional[ObjectStorageGateway] = None,
        max_depth: int = MAX_SEARCH_DEPTH,
    ) -> None:
        self._cache = cache
        self._gateway = gateway
        self.max_depth = max_depth

    def _load_book(self, path: Path) -> Optional[epub.EpubBook]:
        try:
            return epub.read_epub(str(path), options={"ignore_ncx": True})
        except Exception as exc:  # noqa: BLE001
            logger.debug(
                "Unable to parse %s as EPUB: %s",
                path,
                exc,
                extra={"event": "render.epub.parse_failed"},
            )
            return None

    def _brute_force_candidates(self, item: SourceItem, path: Path) -> Iterator[Candidate]:
        """Tier 4: unpack the archive into scratch and search its tree."""

        extract_dir = self._cache.scratch_path(prefix=scratch_prefix(item))
        try:
            try:
                with zipfile.ZipFile(path) as archive:
                    _safe_extract(archive, extract_dir)
            except (zipfile.BadZipFile, OSError) as exc:
                logger.warning(
                    "Unable to unpack %s: %s",
                    path.name,
                    exc,
                    extra={"event": "render.epub.unpack_failed", "item_id": item.id},
                )
                return
            for found in walk_for_cover_files(extract_dir, self.max_depth):
                yield found.relative_to(extract_dir).as_posix(), found.read_bytes()
        finally:
            shutil.rmtree(extract_dir, ignore_errors=True)

    def _tiers(
        self, item: SourceItem, path: Path
    ) -> Iterator[Tuple[str, Callable[[], Iterator[Candidate]]]]:
        book = self._load_book(path)
        if book is not None:
            yield "meta", lambda: meta_cover_candidates(book)
            yield "manifest_id", lambda: manifest_id_candidates(book)
            yield "cover_property", lambda: cover_property_candidates(book)
        yield "archive_scan", lambda: self._brute_force_candidates(item, path)

    def find_cover(self, item: SourceItem, path: Path) -> Optional[Tuple[str, bytes]]:
        """Return ``(tier, jpeg_bytes)`` for the first candidate Pillow accepts."""

        for tier, candidates in self._tiers(item, path):
            with contextlib.closing(candidates()) as stream:
                for name, content in stream:
                    normalized = normalize_cover(content)
                    if normalized is None:
                        logger.debug(
                            "Rejected cover candidate %s (%s)",
                            name,
                            tier,
                            extra={"event": "render.epub.candidate_rejected", "item_id": item.id},
                        )
                        continue
                    return tier, normalized
        return None

    def render_all(self, item: SourceItem) -> RenderResult:
        cache_key = derive_cache_key(item.source_path, item.title)
        report = self._cache.completeness(
            cache_key, self.role, 1, item_type=item.item_type, legacy_id=item.id
        )
        if report.complete:
            return RenderResult(
                status=RenderStatus.SKIPPED,
                units_written=0,
                total_units=1,
                scheme=report.scheme,
                cover_found=True,
            )

        with materialize_source(item, cache=self._cache, gateway=self._gateway) as epub_path:
            found = self.find_cover(item, epub_path)

        if found is None:
            logger.info(
                "No cover found in %s",
                item.display_label,
                extra={"event": "render.epub.no_cover", "item_id": item.id},
            )
            return RenderResult(
                status=RenderStatus.SUCCESS,
                units_written=0,
                total_units=1,
                scheme=report.scheme,
                cover_found=False,
            )

        tier, data = found
        self._cache.write(report.base, self.role, 0, data, item_type=item.item_type)
        logger.info(
            "Extracted cover for %s via %s",
            item.display_label,
            tier,
            extra={"event": "render.epub.cover_written", "item_id": item.id},
        )
        return RenderResult(
            status=RenderStatus.SUCCESS,
            units_written=1,
            total_units=1,
            scheme=report.scheme,
            cover_found=True,
        )


__all__ = [
    "CoverExtractor",
    "cover_property_candidates",
    "manifest_id_candidates",
    "meta_cover_candidates",
    "normalize_cover",
    "walk_for_cover_files",
]
