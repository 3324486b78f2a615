"""Filesystem store for derived artifacts (page images, covers)."""

from __future__ import annotations

import os
import shutil
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional, Sequence
from uuid import uuid4

from mediashelf import logging_manager
from mediashelf.fsutils.atomic_write import Payload, atomic_install, atomic_write

from .errors import CacheCorruption, InvalidCacheName
from .naming import (
    ArtifactRole,
    NamingScheme,
    legacy_base,
    parse_unit_filename,
    unit_filename,
)

logger = logging_manager.get_logger().getChild("cache")

SCRATCH_DIRNAME = "tmp"


@dataclass(frozen=True, slots=True)
class CompletenessReport:
    """Result of scanning the cache for one artifact set."""

    done: int
    total: int
    scheme: NamingScheme
    base: str
    missing: tuple[int, ...] = field(default_factory=tuple)

    @property
    def complete(self) -> bool:
        return self.done >= self.total


def _validate_segment(value: str, label: str) -> str:
    if not value or value in {".", ".."} or "/" in value or "\\" in value or "\x00" in value:
        raise InvalidCacheName(f"Invalid {label}: {value!r}")
    return value


class LocalArtifactCache:
    """Derived-artifact store laid out as ``{root}/{item_type}/{base}_{role}_{unit}.{ext}``.

    Completeness is never stored; it is derived by scanning for non-empty unit
    files. Every write lands in a temporary sibling first and is renamed into
    place, so concurrent readers either see the old state or the full file.
    """

    def __init__(self, cache_root: Path | str) -> None:
        self._root = Path(cache_root)

    @property
    def root(self) -> Path:
        return self._root

    def item_dir(self, item_type: str) -> Path:
        _validate_segment(item_type, "item type")
        if item_type == SCRATCH_DIRNAME:
            raise InvalidCacheName(f"Item type {item_type!r} collides with the scratch directory")
        return self._root / item_type

    def unit_path(
        self,
        base: str,
        role: ArtifactRole | str,
        unit_index: int,
        *,
        item_type: str,
    ) -> Path:
        _validate_segment(base, "cache base")
        return self.item_dir(item_type) / unit_filename(base, role, unit_index)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------
    @staticmethod
    def _usable(path: Path) -> bool:
        try:
            return path.is_file() and path.stat().st_size > 0
        except OSError:
            return False

    def has(
        self,
        base: str,
        role: ArtifactRole | str,
        unit_index: int,
        *,
        item_type: str,
    ) -> bool:
        """Return whether the unit exists and is non-empty.

        A zero-length or unreadable file counts as absent so it is rewritten.
        """

        return self._usable(self.unit_path(base, role, unit_index, item_type=item_type))

    def read_path(
        self,
        base: str,
        role: ArtifactRole | str,
        unit_index: int,
        *,
        item_type: str,
    ) -> Path:
        """Return the on-disk path of a usable unit.

        Raises ``FileNotFoundError`` when the unit is missing and
        :class:`CacheCorruption` when it exists but is empty or unreadable.
        """

        path = self.unit_path(base, role, unit_index, item_type=item_type)
        try:
            size = path.stat().st_size
        except FileNotFoundError:
            raise
        except OSError as exc:
            raise CacheCorruption(path, str(exc)) from exc
        if size <= 0:
            raise CacheCorruption(path, "zero-length file")
        return path

    def resolve_unit(
        self,
        cache_key: str,
        role: ArtifactRole | str,
        unit_index: int,
        *,
        item_type: str,
        legacy_id: Optional[int | str] = None,
    ) -> Optional[Path]:
        """Return the usable unit under the current name, else the legacy name."""

        candidates = [cache_key]
        if legacy_id is not None:
            candidates.append(legacy_base(legacy_id))
        for base in candidates:
            path = self.unit_path(base, role, unit_index, item_type=item_type)
            if self._usable(path):
                return path
        return None

    def locate(self, filename: str, *, item_type: Optional[str] = None) -> Optional[Path]:
        """Find a cache file by name, optionally restricted to one item type."""

        _validate_segment(filename, "cache file name")
        if item_type is not None:
            directories: Iterable[Path] = [self.item_dir(item_type)]
        else:
            try:
                directories = sorted(
                    child
                    for child in self._root.iterdir()
                    if child.is_dir() and child.name != SCRATCH_DIRNAME
                )
            except FileNotFoundError:
                return None
        for directory in directories:
            candidate = directory / filename
            if self._usable(candidate):
                return candidate
        return None

    def _coverage(
        self,
        base: str,
        role: ArtifactRole,
        expected_count: int,
        item_type: str,
    ) -> tuple[int, tuple[int, ...]]:
        first = role.first_unit
        missing = [
            index
            for index in range(first, first + expected_count)
            if not self.has(base, role, index, item_type=item_type)
        ]
        return expected_count - len(missing), tuple(missing)

    def completeness(
        self,
        cache_key: str,
        role: ArtifactRole | str,
        expected_count: int,
        *,
        item_type: str,
        legacy_id: Optional[int | str] = None,
    ) -> CompletenessReport:
        """Scan for the units ``[first, first + expected_count)`` of an artifact set.

        When ``legacy_id`` is given the legacy id naming is scanned as well and
        whichever scheme covers more units is reported; ties go to the current
        naming.
        """

        resolved_role = ArtifactRole(role)
        expected = max(int(expected_count), 0)
        done, missing = self._coverage(cache_key, resolved_role, expected, item_type)
        report = CompletenessReport(
            done=done,
            total=expected,
            scheme=NamingScheme.CURRENT,
            base=cache_key,
            missing=missing,
        )
        if legacy_id is None or report.complete:
            return report

        old_base = legacy_base(legacy_id)
        legacy_done, legacy_missing = self._coverage(old_base, resolved_role, expected, item_type)
        if legacy_done > done:
            return CompletenessReport(
                done=legacy_done,
                total=expected,
                scheme=NamingScheme.LEGACY_ID,
                base=old_base,
                missing=legacy_missing,
            )
        return report

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    def write(
        self,
        base: str,
        role: ArtifactRole | str,
        unit_index: int,
        data: Payload,
        *,
        item_type: str,
    ) -> Path:
        """Atomically publish ``data`` as a cache unit and return its path."""

        destination = self.unit_path(base, role, unit_index, item_type=item_type)
        written = atomic_write(destination, data)
        logger.debug(
            "Cached %s (%d bytes)",
            destination.name,
            written,
            extra={"event": "cache.unit.written", "item_type": item_type},
        )
        return destination

    def install(
        self,
        source: Path,
        base: str,
        role: ArtifactRole | str,
        unit_index: int,
        *,
        item_type: str,
    ) -> Path:
        """Atomically move an already rendered file into its cache slot."""

        destination = self.unit_path(base, role, unit_index, item_type=item_type)
        atomic_install(Path(source), destination)
        return destination

    # ------------------------------------------------------------------
    # Scratch space
    # ------------------------------------------------------------------
    def scratch_dir(self) -> Path:
        directory = self._root / SCRATCH_DIRNAME
        directory.mkdir(parents=True, exist_ok=True)
        return directory

    def scratch_path(self, suffix: str = "", *, prefix: str = "scratch") -> Path:
        """Return a fresh, unused path inside the scratch directory."""

        _validate_segment(prefix, "scratch prefix")
        return self.scratch_dir() / f"{prefix}-{uuid4().hex}{suffix}"

    def cleanup_scratch(
        self,
        *,
        prefix: Optional[str] = None,
        older_than_seconds: Optional[float] = None,
    ) -> int:
        """Remove scratch entries, best-effort. Returns the number removed."""

        directory = self._root / SCRATCH_DIRNAME
        if not directory.is_dir():
            return 0
        cutoff = time.time() - older_than_seconds if older_than_seconds is not None else None
        removed = 0
        for entry in directory.iterdir():
            if prefix is not None and not entry.name.startswith(f"{prefix}-"):
                continue
            try:
                if cutoff is not None and entry.stat().st_mtime > cutoff:
                    continue
                if entry.is_dir() and not entry.is_symlink():
                    shutil.rmtree(entry)
                else:
                    entry.unlink()
                removed += 1
            except OSError as exc:
                logger.warning(
                    "Unable to remove scratch entry %s: %s",
                    entry,
                    exc,
                    extra={"event": "cache.scratch.cleanup_failed"},
                )
        if removed:
            logger.debug(
                "Removed %d scratch entries",
                removed,
                extra={"event": "cache.scratch.cleaned"},
            )
        return removed

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------
    def migrate_legacy(
        self,
        item_id: int | str,
        cache_key: str,
        *,
        item_type: str,
    ) -> int:
        """Rename units named after the catalog id to the content-addressed name.

        Existing current-scheme units are never overwritten; the legacy copy is
        left in place in that case. Returns the number of renamed units.
        """

        directory = self.item_dir(item_type)
        if not directory.is_dir():
            return 0
        old_base = legacy_base(item_id)
        moved = 0
        for entry in sorted(directory.iterdir()):
            parsed = parse_unit_filename(entry.name)
            if parsed is None or parsed.base != old_base:
                continue
            if not self._usable(entry):
                continue
            destination = self.unit_path(
                cache_key, parsed.role, parsed.unit_index, item_type=item_type
            )
            if self._usable(destination):
                continue
            os.replace(entry, destination)
            moved += 1
        if moved:
            logger.info(
                "Migrated %d legacy cache units for item %s",
                moved,
                item_id,
                extra={"event": "cache.legacy.migrated", "item_type": item_type},
            )
        return moved

    def find_orphans(self, item_type: str, known_bases: Iterable[str]) -> List[Path]:
        """List unit files whose base matches no known cache key or legacy id."""

        directory = self.item_dir(item_type)
        if not directory.is_dir():
            return []
        known = set(known_bases)
        orphans: List[Path] = []
        for entry in sorted(directory.iterdir()):
            parsed = parse_unit_filename(entry.name)
            if parsed is None:
                continue
            if parsed.base not in known:
                orphans.append(entry)
        return orphans

    def remove(self, paths: Sequence[Path]) -> int:
        removed = 0
        for path in paths:
            try:
                Path(path).unlink()
                removed += 1
            except FileNotFoundError:
                continue
        return removed


__all__ = ["CompletenessReport", "LocalArtifactCache", "SCRATCH_DIRNAME"]
