"""Translate streaming results and errors into HTTP responses."""

from __future__ import annotations

import re
import urllib.parse
from typing import Mapping, Optional

from fastapi import HTTPException, status
from fastapi.responses import StreamingResponse

from ..streaming import (
    BackendStreamError,
    ObjectNotFound,
    ProxyResponse,
    RangeNotSatisfiable,
    RangeStreamProxy,
    StreamTarget,
)

IMMUTABLE_CACHE_CONTROL = "public, max-age=31536000"


def error_detail(reason: str, message: str) -> dict[str, str]:
    return {"reason": reason, "message": message}


def _content_disposition(name: str, media_type: str) -> str:
    safe_ascii = re.sub(r"[^0-9A-Za-z._-]", "_", name) or "download"
    quoted_utf8 = urllib.parse.quote(name)
    inline = media_type.startswith(("video/", "audio/", "image/")) or media_type == "application/pdf"
    disposition = "inline" if inline else "attachment"
    return f'{disposition}; filename="{safe_ascii}"; filename*=UTF-8\'\'{quoted_utf8}'


def to_streaming_response(
    result: ProxyResponse,
    *,
    name: Optional[str] = None,
    extra_headers: Optional[Mapping[str, str]] = None,
) -> StreamingResponse:
    headers = dict(result.headers)
    if name:
        headers["Content-Disposition"] = _content_disposition(name, result.media_type)
    if extra_headers:
        headers.update(extra_headers)
    return StreamingResponse(
        result.body,
        status_code=result.status,
        media_type=result.media_type,
        headers=headers,
    )


def serve_target(
    proxy: RangeStreamProxy,
    target: StreamTarget,
    range_header: Optional[str],
    *,
    extra_headers: Optional[Mapping[str, str]] = None,
) -> StreamingResponse:
    """Stream ``target`` through ``proxy`` or raise the matching :class:`HTTPException`."""

    try:
        result = proxy.serve(target, range_header)
    except ObjectNotFound as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=error_detail("not_found", "File not found"),
        ) from exc
    except RangeNotSatisfiable as exc:
        raise HTTPException(
            status_code=status.HTTP_416_REQUESTED_RANGE_NOT_SATISFIABLE,
            detail=error_detail("invalid_range", "Requested range not satisfiable"),
            headers={"Content-Range": f"bytes */{exc.size}"},
        ) from exc
    except BackendStreamError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=error_detail(exc.reason, str(exc)),
        ) from exc
    return to_streaming_response(result, name=target.name, extra_headers=extra_headers)


__all__ = [
    "IMMUTABLE_CACHE_CONTROL",
    "error_detail",
    "serve_target",
    "to_streaming_response",
]
