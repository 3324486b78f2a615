"""Exceptions raised by the local artifact cache."""

from __future__ import annotations

from pathlib import Path


class CacheCorruption(RuntimeError):
    """Raised when a cache unit exists but cannot be used (empty or unreadable)."""

    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"Cache unit {path} is unusable: {reason}")
        self.path = Path(path)
        self.reason = reason


class InvalidCacheName(ValueError):
    """Raised when a requested cache file name would escape the cache root."""


__all__ = ["CacheCorruption", "InvalidCacheName"]
