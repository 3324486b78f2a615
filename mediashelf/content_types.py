"""Content types for the media formats the library serves."""

from __future__ import annotations

import mimetypes
from pathlib import PurePosixPath
from typing import Optional

CONTENT_TYPES = {
    ".mp4": "video/mp4",
    ".mkv": "video/x-matroska",
    ".avi": "video/x-msvideo",
    ".mov": "video/quicktime",
    ".webm": "video/webm",
    ".ts": "video/mp2t",
    ".mp3": "audio/mpeg",
    ".m4a": "audio/mp4",
    ".m4b": "audio/mp4",
    ".wav": "audio/wav",
    ".flac": "audio/flac",
    ".aac": "audio/aac",
    ".ogg": "audio/ogg",
    ".pdf": "application/pdf",
    ".epub": "application/epub+zip",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
}

DEFAULT_CONTENT_TYPE = "application/octet-stream"


def content_type_for(path: str) -> Optional[str]:
    """Return the known content type for ``path`` based on its extension."""

    return CONTENT_TYPES.get(PurePosixPath(path).suffix.lower())


def guess_content_type(path: object) -> str:
    text = str(path)
    return content_type_for(text) or mimetypes.guess_type(text)[0] or DEFAULT_CONTENT_TYPE


__all__ = ["CONTENT_TYPES", "DEFAULT_CONTENT_TYPE", "content_type_for", "guess_content_type"]
