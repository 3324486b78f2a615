"""Exceptions raised by the object storage gateway."""

from __future__ import annotations

from typing import Optional


class StorageUnavailable(RuntimeError):
    """Raised when no object-store client is configured."""


class StorageError(RuntimeError):
    """Raised when the remote store rejects a request or cannot be reached."""

    NOT_FOUND = "not_found"
    RANGE_NOT_SUPPORTED = "range_not_supported"
    INVALID_RANGE = "invalid_range"
    REMOTE_ERROR = "remote_error"

    def __init__(
        self,
        message: str,
        *,
        reason: str = REMOTE_ERROR,
        key: Optional[str] = None,
        code: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.reason = reason
        self.key = key
        self.code = code

    @property
    def not_found(self) -> bool:
        return self.reason == self.NOT_FOUND


class MultipartAbortFailure(StorageError):
    """Raised when an in-progress multipart session could not be aborted."""

    def __init__(self, message: str, *, key: str, upload_id: str) -> None:
        super().__init__(message, reason=self.REMOTE_ERROR, key=key)
        self.upload_id = upload_id


__all__ = ["MultipartAbortFailure", "StorageError", "StorageUnavailable"]
