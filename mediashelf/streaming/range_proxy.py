"""Serve artifacts and sources with HTTP byte-range semantics."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterator, Optional

from mediashelf import logging_manager
from mediashelf.content_types import DEFAULT_CONTENT_TYPE, content_type_for
from mediashelf.storage import ObjectStorageGateway, StorageError, StorageUnavailable

from .ranges import ByteSpan, RangeParseError, effective_range_header, iter_file_chunks, parse_byte_range

logger = logging_manager.get_logger().getChild("streaming")


class ObjectNotFound(LookupError):
    """Raised when no tier holds the requested object."""


class RangeNotSatisfiable(Exception):
    """Raised when the requested range does not overlap the object."""

    def __init__(self, size: int) -> None:
        super().__init__(f"Requested range not satisfiable for object of {size} bytes")
        self.size = size


class BackendStreamError(RuntimeError):
    """Raised when a resolved remote object cannot be streamed."""

    def __init__(self, message: str, *, reason: str) -> None:
        super().__init__(message)
        self.reason = reason


@dataclass(frozen=True, slots=True)
class StreamTarget:
    """Where an object may live, checked in order: cache, object store, local disk."""

    cache_path: Optional[Path] = None
    remote_key: Optional[str] = None
    local_path: Optional[Path] = None
    content_type: Optional[str] = None
    name: Optional[str] = None


@dataclass(slots=True)
class ProxyResponse:
    status: int
    headers: Dict[str, str]
    body: Iterator[bytes]
    media_type: str
    source: str = field(default="local")


def _usable_file(path: Optional[Path]) -> Optional[Path]:
    if path is None:
        return None
    try:
        if path.is_file() and path.stat().st_size > 0:
            return path
    except OSError:
        return None
    return None


def _span(range_header: Optional[str], size: int) -> Optional[ByteSpan]:
    header = effective_range_header(range_header)
    if header is None:
        return None
    try:
        return parse_byte_range(header, size)
    except RangeParseError as exc:
        raise RangeNotSatisfiable(size) from exc


def _response(
    *,
    size: int,
    span: Optional[ByteSpan],
    body: Iterator[bytes],
    media_type: str,
    source: str,
) -> ProxyResponse:
    headers = {"Accept-Ranges": "bytes"}
    if span is None:
        status = 200
        length = size
    else:
        status = 206
        length = span.length
        headers["Content-Range"] = span.content_range(size)
    headers["Content-Length"] = str(max(length, 0))
    return ProxyResponse(status=status, headers=headers, body=body, media_type=media_type, source=source)


class RangeStreamProxy:
    """Resolve an object across cache, object store and local disk and stream it."""

    def __init__(self, gateway: Optional[ObjectStorageGateway] = None) -> None:
        self._gateway = gateway

    def _media_type(self, target: StreamTarget, path_hint: str, remote_type: Optional[str] = None) -> str:
        return (
            target.content_type
            or content_type_for(path_hint)
            or remote_type
            or DEFAULT_CONTENT_TYPE
        )

    def _serve_file(
        self, path: Path, target: StreamTarget, range_header: Optional[str], source: str
    ) -> ProxyResponse:
        size = path.stat().st_size
        span = _span(range_header, size)
        return _response(
            size=size,
            span=span,
            body=iter_file_chunks(path, span if span is not None else ByteSpan.whole(size)),
            media_type=self._media_type(target, target.name or path.name),
            source=source,
        )

    def _serve_remote(
        self, key: str, size: int, remote_type: Optional[str], target: StreamTarget, range_header: Optional[str]
    ) -> ProxyResponse:
        assert self._gateway is not None
        span = _span(range_header, size)
        try:
            if span is None:
                stream = self._gateway.get_object_range(key)
            else:
                stream = self._gateway.get_object_range(key, span.start, span.end)
        except StorageError as exc:
            reason = "object_not_found" if exc.not_found else exc.reason
            logger.error(
                "Streaming %s from object storage failed: %s",
                key,
                exc,
                extra={"event": "stream.remote.failed", "reason": reason},
            )
            raise BackendStreamError(str(exc), reason=reason) from exc
        return _response(
            size=size,
            span=span,
            body=stream.body,
            media_type=self._media_type(target, target.name or key, stream.content_type or remote_type),
            source="remote",
        )

    def serve(self, target: StreamTarget, range_header: Optional[str] = None) -> ProxyResponse:
        """Return a 200 or 206 response for ``target``.

        Raises :class:`ObjectNotFound` (404), :class:`RangeNotSatisfiable` (416)
        or :class:`BackendStreamError` (500).
        """

        cached = _usable_file(target.cache_path)
        if cached is not None:
            return self._serve_file(cached, target, range_header, "cache")

        remote_failure: Optional[StorageError] = None
        if target.remote_key and self._gateway is not None and self._gateway.configured:
            try:
                metadata = self._gateway.get_object_metadata(target.remote_key)
            except (StorageError, StorageUnavailable) as exc:
                metadata = None
                if isinstance(exc, StorageError):
                    remote_failure = exc
                logger.warning(
                    "Metadata probe for %s failed: %s",
                    target.remote_key,
                    exc,
                    extra={"event": "stream.remote.probe_failed"},
                )
            if metadata is not None:
                return self._serve_remote(
                    target.remote_key, metadata.size, metadata.content_type, target, range_header
                )

        local = _usable_file(target.local_path)
        if local is not None:
            return self._serve_file(local, target, range_header, "local")

        if remote_failure is not None:
            raise BackendStreamError(str(remote_failure), reason=remote_failure.reason)
        raise ObjectNotFound(target.name or target.remote_key or str(target.local_path))


__all__ = [
    "BackendStreamError",
    "ObjectNotFound",
    "ProxyResponse",
    "RangeNotSatisfiable",
    "RangeStreamProxy",
    "StreamTarget",
]
