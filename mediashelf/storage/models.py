"""Value types exchanged with the object storage gateway."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterator, List, Optional


@dataclass(frozen=True, slots=True)
class ObjectMetadata:
    key: str
    size: int
    content_type: Optional[str] = None
    last_modified: Optional[datetime] = None
    etag: Optional[str] = None


@dataclass(frozen=True, slots=True)
class ObjectSummary:
    key: str
    size: int
    last_modified: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "size": self.size,
            "last_modified": self.last_modified.isoformat() if self.last_modified else None,
        }


@dataclass(slots=True)
class ObjectStream:
    """A (possibly partial) object body and the headers describing it."""

    body: Iterator[bytes]
    total_size: int
    content_length: int
    content_type: Optional[str] = None
    content_range: Optional[str] = None


@dataclass(slots=True)
class MultipartUploadSession:
    """Server-side multipart session; always completed or aborted."""

    upload_id: str
    key: str
    total_parts: int = 0
    parts: List[dict] = field(default_factory=list)

    def record_part(self, part_number: int, etag: str) -> dict:
        part = {"PartNumber": part_number, "ETag": etag}
        self.parts.append(part)
        return part

    def ordered_parts(self) -> List[dict]:
        return sorted(self.parts, key=lambda part: part["PartNumber"])


@dataclass(frozen=True, slots=True)
class UploadProgress:
    part_number: int
    total_parts: int
    bytes_done: int
    bytes_total: int

    @property
    def fraction(self) -> float:
        if self.bytes_total <= 0:
            return 1.0
        return min(self.bytes_done / self.bytes_total, 1.0)


__all__ = [
    "MultipartUploadSession",
    "ObjectMetadata",
    "ObjectStream",
    "ObjectSummary",
    "UploadProgress",
]
