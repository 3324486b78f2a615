"""PDF page rendering with poppler's ``pdftoppm``."""

from __future__ import annotations

import re
import shutil
from pathlib import Path
from typing import Dict, Iterable, Optional

from mediashelf import logging_manager
from mediashelf.cache import ArtifactRole, LocalArtifactCache, derive_cache_key
from mediashelf.catalog import SourceItem
from mediashelf.config_manager import MediaShelfSettings
from mediashelf.storage import ObjectStorageGateway

from .command_runner import CommandRunner, run_command
from .errors import CommandExecutionError, PageOutOfRange, RenderFailure
from .results import RenderResult, RenderStatus
from .source import materialize_source, scratch_prefix

logger = logging_manager.get_logger().getChild("rendering.pdf")

_PAGES_PATTERN = re.compile(r"^Pages:\s*(\d+)", re.MULTILINE)
_MIN_PROBE_WIDTH = 4


def parse_page_count(pdfinfo_output: str) -> Optional[int]:
    match = _PAGES_PATTERN.search(pdfinfo_output or "")
    if not match:
        return None
    return int(match.group(1))


def find_rendered_page(
    output_dir: Path, stem: str, page: int, total: Optional[int] = None
) -> Optional[Path]:
    """Return the file ``pdftoppm`` wrote for ``page``.

    The tool zero-pads page numbers to the width of the document's page count,
    so every width from 1 up to the digits of ``total`` (at least 4) is probed.
    """

    widest = max(_MIN_PROBE_WIDTH, len(str(total)) if total else 0)
    for width in range(1, widest + 1):
        candidate = output_dir / f"{stem}-{page:0{width}d}.png"
        if candidate.is_file() and candidate.stat().st_size > 0:
            return candidate
    return None


class PageRenderer:
    """Render PDF pages into the artifact cache as ``{key}_page_{n}.png``."""

    role = ArtifactRole.PAGE

    def __init__(
        self,
        cache: LocalArtifactCache,
        *,
        gateway: Optional[ObjectStorageGateway] = None,
        dpi: int = 150,
        timeout_seconds: float = 600.0,
        pdftoppm_path: str = "pdftoppm",
        pdfinfo_path: str = "pdfinfo",
        runner: CommandRunner = run_command,
    ) -> None:
        self._cache = cache
        self._gateway = gateway
        self.dpi = int(dpi)
        self.timeout_seconds = float(timeout_seconds)
        self.pdftoppm_path = pdftoppm_path
        self.pdfinfo_path = pdfinfo_path
        self._run = runner

    @classmethod
    def from_settings(
        cls,
        settings: MediaShelfSettings,
        cache: LocalArtifactCache,
        gateway: Optional[ObjectStorageGateway] = None,
        runner: CommandRunner = run_command,
    ) -> "PageRenderer":
        return cls(
            cache,
            gateway=gateway,
            dpi=settings.render_dpi,
            timeout_seconds=settings.render_timeout_seconds,
            pdftoppm_path=settings.pdftoppm_path,
            pdfinfo_path=settings.pdfinfo_path,
            runner=runner,
        )

    # ------------------------------------------------------------------
    # Tool invocations
    # ------------------------------------------------------------------
    def page_count(self, pdf_path: Path) -> int:
        try:
            result = self._run(
                [self.pdfinfo_path, str(pdf_path)],
                timeout=self.timeout_seconds,
            )
        except CommandExecutionError as exc:
            raise RenderFailure(f"pdfinfo failed for {pdf_path.name}: {exc}", cause=exc) from exc
        stdout = result.stdout if isinstance(result.stdout, str) else (result.stdout or b"").decode(
            "utf-8", "replace"
        )
        count = parse_page_count(stdout)
        if count is None:
            raise RenderFailure(f"Could not determine page count for {pdf_path.name}")
        return count

    def _render_span(self, pdf_path: Path, first: int, last: int, output_prefix: Path) -> None:
        self._run(
            [
                self.pdftoppm_path,
                "-png",
                "-r",
                str(self.dpi),
                "-f",
                str(first),
                "-l",
                str(last),
                str(pdf_path),
                str(output_prefix),
            ],
            timeout=self.timeout_seconds,
        )

    def _scratch_dir(self, item: SourceItem) -> Path:
        directory = self._cache.scratch_path(prefix=scratch_prefix(item))
        directory.mkdir(parents=True, exist_ok=False)
        return directory

    def _units_present(self, item: SourceItem, cache_key: str, total: int) -> int:
        return self._cache.completeness(
            cache_key, self.role, total, item_type=item.item_type, legacy_id=item.id
        ).done

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def render_page(self, item: SourceItem, page: int) -> Path:
        """Return the cached image for one page, rendering it if needed."""

        if page < 1 or (item.page_count is not None and page > item.page_count):
            raise PageOutOfRange(f"Page {page} is outside 1..{item.page_count or '?'}")

        cache_key = derive_cache_key(item.source_path, item.title)
        cached = self._cache.resolve_unit(
            cache_key, self.role, page, item_type=item.item_type, legacy_id=item.id
        )
        if cached is not None:
            return cached

        with materialize_source(item, cache=self._cache, gateway=self._gateway) as pdf_path:
            total = item.page_count
            if total is None:
                total = self.page_count(pdf_path)
                if page > total:
                    raise PageOutOfRange(f"Page {page} is outside 1..{total}")
            scratch = self._scratch_dir(item)
            try:
                stem = f"page_{page}"
                try:
                    self._render_span(pdf_path, page, page, scratch / stem)
                except CommandExecutionError as exc:
                    raise RenderFailure(
                        f"Rendering page {page} of item {item.id} failed: {exc}",
                        item_id=item.id,
                        cause=exc,
                    ) from exc
                rendered = find_rendered_page(scratch, stem, page, total)
                if rendered is None:
                    raise RenderFailure(
                        f"pdftoppm produced no image for page {page} of item {item.id}",
                        item_id=item.id,
                    )
                return self._cache.install(
                    rendered, cache_key, self.role, page, item_type=item.item_type
                )
            finally:
                shutil.rmtree(scratch, ignore_errors=True)

    def render_all(self, item: SourceItem) -> RenderResult:
        """Bring every page of ``item`` into the cache.

        Only missing pages are rendered: the span from the first to the last
        missing page goes through a single ``pdftoppm`` call and only the
        missing units are installed from it. A fully cached item is skipped
        without touching the source.
        """

        cache_key = derive_cache_key(item.source_path, item.title)
        total = item.page_count
        if total is not None:
            report = self._cache.completeness(
                cache_key, self.role, total, item_type=item.item_type, legacy_id=item.id
            )
            if report.complete:
                return RenderResult(
                    status=RenderStatus.SKIPPED,
                    units_written=0,
                    total_units=total,
                    scheme=report.scheme,
                    page_count=total,
                )

        with materialize_source(item, cache=self._cache, gateway=self._gateway) as pdf_path:
            if total is None:
                total = self.page_count(pdf_path)
            report = self._cache.completeness(
                cache_key, self.role, total, item_type=item.item_type, legacy_id=item.id
            )
            if report.complete:
                return RenderResult(
                    status=RenderStatus.SKIPPED,
                    units_written=0,
                    total_units=total,
                    scheme=report.scheme,
                    page_count=total,
                )

            first, last = report.missing[0], report.missing[-1]
            logger.info(
                "Rendering pages %d-%d of %s (%d missing of %d)",
                first,
                last,
                item.display_label,
                len(report.missing),
                total,
                extra={"event": "render.pdf.started", "item_id": item.id},
            )
            scratch = self._scratch_dir(item)
            try:
                try:
                    self._render_span(pdf_path, first, last, scratch / "page")
                except CommandExecutionError as exc:
                    raise RenderFailure(
                        f"Rendering item {item.id} failed: {exc}",
                        item_id=item.id,
                        units_done=self._units_present(item, cache_key, total),
                        cause=exc,
                    ) from exc
                written = self._install_missing(item, report.base, report.missing, scratch, total)
            finally:
                shutil.rmtree(scratch, ignore_errors=True)

        final = self._cache.completeness(
            cache_key, self.role, total, item_type=item.item_type, legacy_id=item.id
        )
        if not final.complete:
            raise RenderFailure(
                f"Item {item.id} still misses pages {list(final.missing)[:10]} after rendering",
                item_id=item.id,
                units_done=final.done,
            )
        return RenderResult(
            status=RenderStatus.SUCCESS,
            units_written=written,
            total_units=total,
            scheme=final.scheme,
            page_count=total,
        )

    def _install_missing(
        self,
        item: SourceItem,
        base: str,
        missing: Iterable[int],
        scratch: Path,
        total: int,
    ) -> int:
        located: Dict[int, Path] = {}
        for page in missing:
            rendered = find_rendered_page(scratch, "page", page, total)
            if rendered is not None:
                located[page] = rendered
        for page, rendered in located.items():
            self._cache.install(rendered, base, self.role, page, item_type=item.item_type)
        return len(located)


__all__ = ["PageRenderer", "find_rendered_page", "parse_page_count"]
