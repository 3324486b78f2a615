"""Value types describing catalog items seen by the artifact pipeline."""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from pathlib import PurePosixPath
from typing import Any, Optional


class ArtifactState(str, Enum):
    """Derived-artifact state recorded per catalog item."""

    ABSENT = "absent"
    PARTIAL = "partial"
    COMPLETE = "complete"


REMOTE_SCHEMES = ("s3://", "r2://")


def parse_remote_reference(reference: str) -> Optional[tuple[str, str]]:
    """Split ``s3://bucket/key`` (or ``r2://``) into ``(bucket, key)``."""

    for scheme in REMOTE_SCHEMES:
        if reference.startswith(scheme):
            remainder = reference[len(scheme):]
            bucket, _, key = remainder.partition("/")
            if bucket and key:
                return bucket, key
            return None
    return None


@dataclass(frozen=True, slots=True)
class SourceItem:
    """A catalog entry with enough fields to locate and name its artifacts."""

    id: int
    item_type: str
    source_path: str
    title: str
    artifact_state: ArtifactState = ArtifactState.ABSENT
    storage_key: Optional[str] = None
    page_count: Optional[int] = None
    cover_missing: bool = False

    @property
    def extension(self) -> str:
        return PurePosixPath(self.source_path).suffix.lower()

    @property
    def display_label(self) -> str:
        return self.title or PurePosixPath(self.source_path).name

    @property
    def remote_key(self) -> Optional[str]:
        """Object-store key for the source, explicit or parsed from the path."""

        if self.storage_key:
            return self.storage_key
        parsed = parse_remote_reference(self.source_path)
        if parsed is not None:
            return parsed[1]
        return None

    @property
    def is_remote_only(self) -> bool:
        return parse_remote_reference(self.source_path) is not None

    def with_state(self, state: ArtifactState) -> "SourceItem":
        return replace(self, artifact_state=state)

    @classmethod
    def from_row(cls, row: Any) -> "SourceItem":
        return cls(
            id=int(row.id),
            item_type=row.item_type,
            source_path=row.source_path,
            title=row.title or "",
            artifact_state=ArtifactState(row.artifact_state),
            storage_key=row.storage_key,
            page_count=row.page_count,
            cover_missing=bool(row.cover_missing),
        )


__all__ = ["ArtifactState", "SourceItem", "parse_remote_reference"]
