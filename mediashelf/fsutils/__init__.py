"""Filesystem helpers."""

from .atomic_write import AtomicWriteError, atomic_install, atomic_write, temp_sibling

__all__ = ["AtomicWriteError", "atomic_install", "atomic_write", "temp_sibling"]
