"""HTTP byte-range parsing and file chunking."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Iterator, NamedTuple, Optional

CHUNK_SIZE = 1 << 16

_SINGLE_RANGE = re.compile(r"^bytes=\s*(?P<first>\d*)\s*-\s*(?P<last>\d*)$", re.IGNORECASE)


class RangeParseError(Exception):
    """Raised when the supplied Range header cannot be satisfied."""


class ByteSpan(NamedTuple):
    """Inclusive ``start``..``end`` window of an object."""

    start: int
    end: int

    @classmethod
    def whole(cls, size: int) -> "ByteSpan":
        return cls(0, size - 1)

    @property
    def length(self) -> int:
        return max(self.end - self.start + 1, 0)

    def content_range(self, size: int) -> str:
        return f"bytes {self.start}-{self.end}/{size}"


def parse_byte_range(range_value: str, file_size: int) -> ByteSpan:
    """Resolve a single ``bytes=first-last`` header against ``file_size``.

    Suffix ranges (``bytes=-N``) and open ranges (``bytes=N-``) are supported and
    the end is clamped to the last byte. A :class:`RangeParseError` is raised for
    malformed headers, multi-range requests and windows outside the object.
    """

    match = _SINGLE_RANGE.match(range_value.strip())
    if match is None or file_size <= 0:
        raise RangeParseError
    first, last = match.group("first"), match.group("last")
    last_byte = file_size - 1

    if not first:
        if not last or int(last) <= 0:
            raise RangeParseError
        return ByteSpan(max(file_size - int(last), 0), last_byte)

    start = int(first)
    end = int(last) if last else last_byte
    if start > last_byte or end < start:
        raise RangeParseError
    return ByteSpan(start, min(end, last_byte))


def effective_range_header(range_header: Optional[str]) -> Optional[str]:
    """Drop multi-range requests; those are answered with the full body."""

    if not range_header or not range_header.strip():
        return None
    if "," in range_header:
        return None
    return range_header


def iter_file_chunks(path: Path, span: ByteSpan, chunk_size: int = CHUNK_SIZE) -> Iterator[bytes]:
    """Yield the bytes of ``path`` inside ``span``, stopping early at end of file."""

    remaining = span.length
    if remaining <= 0:
        return
    with path.open("rb") as stream:
        stream.seek(span.start)
        while remaining > 0:
            chunk = stream.read(min(chunk_size, remaining))
            if not chunk:
                break
            remaining -= len(chunk)
            yield chunk


__all__ = [
    "ByteSpan",
    "CHUNK_SIZE",
    "RangeParseError",
    "effective_range_header",
    "iter_file_chunks",
    "parse_byte_range",
]
