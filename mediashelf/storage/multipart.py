"""Multipart transfer of large files to the object store."""

from __future__ import annotations

import math
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Callable, Optional

from mediashelf import logging_manager
from mediashelf.content_types import guess_content_type
from mediashelf.config_manager import (
    DEFAULT_MULTIPART_PART_SIZE,
    DEFAULT_MULTIPART_THRESHOLD,
    MIN_MULTIPART_PART_SIZE,
)

from .errors import MultipartAbortFailure
from .gateway import ObjectStorageGateway
from .models import MultipartUploadSession, UploadProgress

logger = logging_manager.get_logger().getChild("storage.multipart")

ProgressCallback = Callable[[UploadProgress], None]


class MultipartUploader:
    """Upload local files, switching to multipart transfer above a size threshold.

    Parts are sent one after another. If anything fails once a session exists
    the session is aborted exactly once before the error propagates.
    """

    def __init__(
        self,
        gateway: ObjectStorageGateway,
        *,
        threshold_bytes: int = DEFAULT_MULTIPART_THRESHOLD,
        part_size_bytes: int = DEFAULT_MULTIPART_PART_SIZE,
        min_part_size_bytes: int = MIN_MULTIPART_PART_SIZE,
    ) -> None:
        if part_size_bytes < min_part_size_bytes:
            raise ValueError(
                f"part_size_bytes must be at least {min_part_size_bytes} bytes"
            )
        self._gateway = gateway
        self.threshold_bytes = int(threshold_bytes)
        self.part_size_bytes = int(part_size_bytes)

    def part_count(self, size: int) -> int:
        return max(1, math.ceil(size / self.part_size_bytes))

    def upload_large(
        self,
        local_path: Path | str,
        key: str,
        content_type: Optional[str] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> str:
        """Upload ``local_path`` to ``key`` and return the object reference."""

        path = Path(local_path)
        size = path.stat().st_size
        resolved_type = content_type or guess_content_type(path)

        if size < self.threshold_bytes:
            with path.open("rb") as handle:
                reference = self._gateway.put_object(key, handle.read(), resolved_type)
            if progress_callback is not None:
                self._notify_inline(progress_callback, UploadProgress(1, 1, size, size))
            return reference

        total_parts = self.part_count(size)
        session = self._gateway.create_multipart_session(
            key, resolved_type, total_parts=total_parts
        )
        logger.info(
            "Started multipart upload of %s as %s (%d parts)",
            path.name,
            key,
            total_parts,
            extra={"event": "storage.multipart.started", "key": key, "upload_id": session.upload_id},
        )

        notifier: Optional[ThreadPoolExecutor] = None
        if progress_callback is not None:
            notifier = ThreadPoolExecutor(max_workers=1, thread_name_prefix="upload-progress")
        try:
            try:
                self._send_parts(path, size, session, notifier, progress_callback)
                reference = self._gateway.complete_multipart(session)
            except BaseException as exc:
                self._abort(session, exc)
                raise
        finally:
            if notifier is not None:
                notifier.shutdown(wait=True)

        logger.info(
            "Completed multipart upload %s",
            reference,
            extra={"event": "storage.multipart.completed", "key": key, "upload_id": session.upload_id},
        )
        return reference

    def _send_parts(
        self,
        path: Path,
        size: int,
        session: MultipartUploadSession,
        notifier: Optional[ThreadPoolExecutor],
        progress_callback: Optional[ProgressCallback],
    ) -> None:
        bytes_done = 0
        with path.open("rb") as handle:
            for part_number in range(1, session.total_parts + 1):
                offset = (part_number - 1) * self.part_size_bytes
                handle.seek(offset)
                chunk = handle.read(min(self.part_size_bytes, size - offset))
                self._gateway.upload_part(session, part_number, chunk)
                bytes_done += len(chunk)
                logger.debug(
                    "Uploaded part %d/%d",
                    part_number,
                    session.total_parts,
                    extra={"event": "storage.multipart.part", "key": session.key},
                )
                if notifier is not None and progress_callback is not None:
                    progress = UploadProgress(part_number, session.total_parts, bytes_done, size)
                    future = notifier.submit(progress_callback, progress)
                    future.add_done_callback(self._log_callback_failure)

    def _abort(self, session: MultipartUploadSession, cause: BaseException) -> None:
        logger.error(
            "Multipart upload of %s failed: %s",
            session.key,
            cause,
            extra={"event": "storage.multipart.failed", "upload_id": session.upload_id},
        )
        try:
            self._gateway.abort_multipart(session)
        except MultipartAbortFailure:
            logger.exception(
                "Aborting multipart upload %s failed; parts may remain on the server",
                session.upload_id,
                extra={"event": "storage.multipart.abort_failed", "key": session.key},
            )
        else:
            logger.info(
                "Aborted multipart upload %s",
                session.upload_id,
                extra={"event": "storage.multipart.aborted", "key": session.key},
            )

    @staticmethod
    def _log_callback_failure(future: Future) -> None:
        exc = future.exception()
        if exc is not None:
            logger.warning(
                "Upload progress callback raised: %s",
                exc,
                extra={"event": "storage.multipart.progress_callback_failed"},
            )

    @staticmethod
    def _notify_inline(callback: ProgressCallback, progress: UploadProgress) -> None:
        try:
            callback(progress)
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "Upload progress callback raised: %s",
                exc,
                extra={"event": "storage.multipart.progress_callback_failed"},
            )


__all__ = ["MultipartUploader", "ProgressCallback"]
