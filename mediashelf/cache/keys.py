"""Stable cache keys for source files."""

from __future__ import annotations

import hashlib
import re
from pathlib import PurePosixPath, PureWindowsPath

MAX_SLUG_LENGTH = 50
HASH_PREFIX_LENGTH = 8
FALLBACK_SLUG = "item"

# Everything outside ASCII lower-case letters, digits and the CJK ideograph
# blocks (Extension A, Unified, Compatibility) becomes an underscore.
_DISALLOWED = re.compile(r"[^a-z0-9\u3400-\u4dbf\u4e00-\u9fff\uf900-\ufaff]")
_UNDERSCORE_RUN = re.compile(r"_+")


def sanitize_title(title: str) -> str:
    """Return the filesystem-safe slug for ``title`` (may be empty)."""

    slug = _DISALLOWED.sub("_", (title or "").lower())
    slug = _UNDERSCORE_RUN.sub("_", slug).strip("_")
    return slug[:MAX_SLUG_LENGTH]


def _path_stem(source_path: str) -> str:
    name = PurePosixPath(source_path).name
    if "\\" in name:
        name = PureWindowsPath(source_path).name
    stem = name.rsplit(".", 1)[0] if "." in name.lstrip(".") else name
    return stem


def path_digest(source_path: str) -> str:
    """Return the hex prefix of the SHA-256 of the path string."""

    return hashlib.sha256(source_path.encode("utf-8")).hexdigest()[:HASH_PREFIX_LENGTH]


def derive_cache_key(source_path: str, title: str) -> str:
    """Derive ``<slug>_<hash8>`` for a source file.

    The hash covers the path string, never the file contents, so a key can be
    recomputed without touching the file. An empty title falls back to the file
    name without its extension.
    """

    slug = sanitize_title(title)
    if not slug:
        slug = sanitize_title(_path_stem(source_path)) or FALLBACK_SLUG
    return f"{slug}_{path_digest(source_path)}"


__all__ = ["derive_cache_key", "path_digest", "sanitize_title"]
