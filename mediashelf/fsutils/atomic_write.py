"""Same-directory atomic write and install helpers."""

from __future__ import annotations

import os
import shutil
from pathlib import Path
from typing import BinaryIO, Iterable, Union
from uuid import uuid4

Payload = Union[bytes, bytearray, memoryview, Iterable[bytes], BinaryIO]


class AtomicWriteError(RuntimeError):
    """Raised when a file cannot be published atomically."""


def temp_sibling(destination: Path) -> Path:
    """Return a hidden temporary path next to ``destination``."""

    return destination.with_name(f".tmp-{uuid4().hex}-{destination.name}")


def _iter_payload(payload: Payload) -> Iterable[bytes]:
    if isinstance(payload, (bytes, bytearray, memoryview)):
        yield bytes(payload)
        return
    read = getattr(payload, "read", None)
    if callable(read):
        for chunk in iter(lambda: read(1 << 20), b""):
            yield chunk
        return
    for chunk in payload:  # type: ignore[union-attr]
        if chunk:
            yield chunk


def _fsync_directory(directory: Path) -> None:
    try:
        fd = os.open(directory, os.O_RDONLY)
    except OSError:
        return
    try:
        os.fsync(fd)
    except OSError:
        pass
    finally:
        os.close(fd)


def atomic_write(destination: Path, payload: Payload) -> int:
    """Write ``payload`` to ``destination`` so readers never see a partial file.

    Returns the number of bytes written.
    """

    destination = Path(destination)
    destination.parent.mkdir(parents=True, exist_ok=True)
    temp_path = temp_sibling(destination)
    written = 0
    try:
        with temp_path.open("wb") as handle:
            for chunk in _iter_payload(payload):
                handle.write(chunk)
                written += len(chunk)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(temp_path, destination)
    except OSError as exc:
        temp_path.unlink(missing_ok=True)
        raise AtomicWriteError(f"Unable to write {destination}: {exc}") from exc
    except BaseException:
        temp_path.unlink(missing_ok=True)
        raise
    _fsync_directory(destination.parent)
    return written


def atomic_install(source: Path, destination: Path) -> None:
    """Publish an existing file at ``destination``.

    ``source`` is renamed into place when it lives on the same filesystem and is
    otherwise copied next to the destination first.
    """

    source = Path(source)
    destination = Path(destination)
    destination.parent.mkdir(parents=True, exist_ok=True)
    temp_path = temp_sibling(destination)
    try:
        try:
            os.replace(source, temp_path)
        except OSError:
            shutil.copyfile(source, temp_path)
            source.unlink(missing_ok=True)
        with temp_path.open("rb") as handle:
            os.fsync(handle.fileno())
        os.replace(temp_path, destination)
    except OSError as exc:
        temp_path.unlink(missing_ok=True)
        raise AtomicWriteError(f"Unable to install {source} at {destination}: {exc}") from exc
    _fsync_directory(destination.parent)


__all__ = ["AtomicWriteError", "atomic_install", "atomic_write", "temp_sibling"]
