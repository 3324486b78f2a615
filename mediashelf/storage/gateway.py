"""S3-compatible object storage gateway."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Iterator, List, Optional, Union

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from mediashelf import logging_manager
from mediashelf.config_manager import MediaShelfSettings
from mediashelf.fsutils.atomic_write import atomic_write

from .errors import MultipartAbortFailure, StorageError, StorageUnavailable
from .models import (
    MultipartUploadSession,
    ObjectMetadata,
    ObjectStream,
    ObjectSummary,
)

logger = logging_manager.get_logger().getChild("storage")

STREAM_CHUNK_SIZE = 1 << 16
_NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}
_INVALID_RANGE_CODES = {"416", "InvalidRange"}

Body = Union[bytes, bytearray, Any]


def build_s3_client(settings: MediaShelfSettings) -> Any:
    """Create a boto3 S3 client from ``settings`` or return ``None`` when unconfigured."""

    if not settings.storage_configured:
        return None
    assert settings.storage_access_key_id is not None
    assert settings.storage_secret_access_key is not None
    return boto3.client(
        "s3",
        endpoint_url=settings.resolved_storage_endpoint(),
        region_name=settings.resolved_storage_region(),
        aws_access_key_id=settings.storage_access_key_id.get_secret_value(),
        aws_secret_access_key=settings.storage_secret_access_key.get_secret_value(),
        config=Config(
            signature_version="s3v4",
            connect_timeout=10,
            read_timeout=60,
            retries={"max_attempts": 3, "mode": "standard"},
        ),
    )


def _error_code(exc: ClientError) -> str:
    error = exc.response.get("Error", {}) if isinstance(exc.response, dict) else {}
    code = str(error.get("Code") or "")
    if not code:
        status = exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
        code = str(status or "")
    return code


def _translate(exc: Exception, *, key: Optional[str], action: str) -> StorageError:
    if isinstance(exc, ClientError):
        code = _error_code(exc)
        if code in _NOT_FOUND_CODES:
            reason = StorageError.NOT_FOUND
        elif code in _INVALID_RANGE_CODES:
            reason = StorageError.INVALID_RANGE
        else:
            reason = StorageError.REMOTE_ERROR
        return StorageError(f"{action} failed for {key!r}: {exc}", reason=reason, key=key, code=code)
    return StorageError(f"{action} failed for {key!r}: {exc}", key=key)


def _iter_body(body: Any, chunk_size: int = STREAM_CHUNK_SIZE) -> Iterator[bytes]:
    try:
        iter_chunks = getattr(body, "iter_chunks", None)
        if callable(iter_chunks):
            for chunk in iter_chunks(chunk_size):
                if chunk:
                    yield chunk
            return
        for chunk in iter(lambda: body.read(chunk_size), b""):
            yield chunk
    finally:
        close = getattr(body, "close", None)
        if callable(close):
            close()


def _total_from_content_range(content_range: str) -> Optional[int]:
    # "bytes 100-199/1000"
    _, _, total = content_range.rpartition("/")
    try:
        return int(total)
    except ValueError:
        return None


class ObjectStorageGateway:
    """Thin, typed facade over a boto3 S3 client.

    The client is injected (tests pass a fake) or built from settings. Without a
    client every operation except :meth:`exists` and :meth:`status` raises
    :class:`StorageUnavailable`.
    """

    def __init__(
        self,
        client: Any = None,
        *,
        bucket: str,
        endpoint_url: Optional[str] = None,
        public_url: Optional[str] = None,
        presign_expiry_seconds: int = 3600,
    ) -> None:
        self._client = client
        self.bucket = bucket
        self.endpoint_url = endpoint_url
        self.public_url = public_url.rstrip("/") if public_url else None
        self.presign_expiry_seconds = presign_expiry_seconds

    @classmethod
    def from_settings(cls, settings: MediaShelfSettings, client: Any = None) -> "ObjectStorageGateway":
        if client is None:
            client = build_s3_client(settings)
        return cls(
            client,
            bucket=settings.storage_bucket,
            endpoint_url=settings.resolved_storage_endpoint(),
            public_url=settings.storage_public_url,
            presign_expiry_seconds=settings.presigned_url_expiry_seconds,
        )

    @property
    def configured(self) -> bool:
        return self._client is not None

    def _require_client(self) -> Any:
        if self._client is None:
            raise StorageUnavailable("Object storage is not configured")
        return self._client

    def reference_for(self, key: str) -> str:
        return f"s3://{self.bucket}/{key}"

    def status(self) -> dict:
        return {
            "configured": self.configured,
            "bucket": self.bucket if self.configured else None,
            "endpoint": self.endpoint_url,
            "public_url": self.public_url,
        }

    # ------------------------------------------------------------------
    # Single-object operations
    # ------------------------------------------------------------------
    def exists(self, key: str) -> bool:
        """Return True when ``key`` is present. Never raises."""

        if self._client is None:
            return False
        try:
            self._client.head_object(Bucket=self.bucket, Key=key)
        except (ClientError, BotoCoreError) as exc:
            if isinstance(exc, ClientError) and _error_code(exc) in _NOT_FOUND_CODES:
                return False
            logger.warning(
                "Existence check for %s failed: %s",
                key,
                exc,
                extra={"event": "storage.exists.failed"},
            )
            return False
        return True

    def get_object_metadata(self, key: str) -> Optional[ObjectMetadata]:
        """Return size/type metadata for ``key`` or ``None`` when it does not exist."""

        client = self._require_client()
        try:
            response = client.head_object(Bucket=self.bucket, Key=key)
        except (ClientError, BotoCoreError) as exc:
            error = _translate(exc, key=key, action="head_object")
            if error.not_found:
                return None
            raise error from exc
        return ObjectMetadata(
            key=key,
            size=int(response.get("ContentLength", 0)),
            content_type=response.get("ContentType"),
            last_modified=response.get("LastModified"),
            etag=response.get("ETag"),
        )

    def put_object(self, key: str, data: Body, content_type: Optional[str] = None) -> str:
        client = self._require_client()
        params: dict = {"Bucket": self.bucket, "Key": key, "Body": data}
        if content_type:
            params["ContentType"] = content_type
        try:
            client.put_object(**params)
        except (ClientError, BotoCoreError) as exc:
            raise _translate(exc, key=key, action="put_object") from exc
        reference = self.reference_for(key)
        logger.info(
            "Stored object %s",
            reference,
            extra={"event": "storage.put", "key": key},
        )
        return reference

    def get_object_range(
        self,
        key: str,
        start: Optional[int] = None,
        end: Optional[int] = None,
    ) -> ObjectStream:
        """Fetch ``key`` or the inclusive byte span ``start..end`` of it.

        A ranged request whose response lacks ``ContentRange`` means the backend
        ignored the range; that raises ``StorageError(reason="range_not_supported")``
        instead of silently returning the full object.
        """

        client = self._require_client()
        params: dict = {"Bucket": self.bucket, "Key": key}
        ranged = start is not None or end is not None
        if ranged:
            first = 0 if start is None else start
            params["Range"] = f"bytes={first}-" if end is None else f"bytes={first}-{end}"
        try:
            response = client.get_object(**params)
        except (ClientError, BotoCoreError) as exc:
            raise _translate(exc, key=key, action="get_object") from exc

        body = response["Body"]
        content_length = int(response.get("ContentLength", 0))
        content_range = response.get("ContentRange")
        if ranged:
            total = _total_from_content_range(content_range) if content_range else None
            if total is None:
                close = getattr(body, "close", None)
                if callable(close):
                    close()
                raise StorageError(
                    f"Backend ignored range request for {key!r}",
                    reason=StorageError.RANGE_NOT_SUPPORTED,
                    key=key,
                )
        else:
            total = content_length

        return ObjectStream(
            body=_iter_body(body),
            total_size=total,
            content_length=content_length,
            content_type=response.get("ContentType"),
            content_range=content_range,
        )

    def download_to(self, key: str, destination: Path) -> Path:
        """Stream ``key`` into ``destination`` and return the path."""

        stream = self.get_object_range(key)
        written = atomic_write(Path(destination), stream.body)
        logger.debug(
            "Downloaded %s (%d bytes) to %s",
            key,
            written,
            destination,
            extra={"event": "storage.download", "key": key},
        )
        return Path(destination)

    def delete_object(self, key: str) -> bool:
        client = self._require_client()
        try:
            client.delete_object(Bucket=self.bucket, Key=key)
        except (ClientError, BotoCoreError) as exc:
            raise _translate(exc, key=key, action="delete_object") from exc
        logger.info("Deleted object %s", key, extra={"event": "storage.delete", "key": key})
        return True

    def list_objects(self, prefix: str = "", max_keys: int = 100) -> List[ObjectSummary]:
        client = self._require_client()
        try:
            response = client.list_objects_v2(
                Bucket=self.bucket, Prefix=prefix, MaxKeys=max(1, int(max_keys))
            )
        except (ClientError, BotoCoreError) as exc:
            raise _translate(exc, key=prefix, action="list_objects") from exc
        return [
            ObjectSummary(
                key=entry["Key"],
                size=int(entry.get("Size", 0)),
                last_modified=entry.get("LastModified"),
            )
            for entry in response.get("Contents", []) or []
        ]

    def presigned_url(self, key: str, expires_in: Optional[int] = None) -> str:
        client = self._require_client()
        try:
            return client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket, "Key": key},
                ExpiresIn=expires_in or self.presign_expiry_seconds,
            )
        except (ClientError, BotoCoreError) as exc:
            raise _translate(exc, key=key, action="presign") from exc

    def public_object_url(self, key: str) -> Optional[str]:
        if not self.public_url:
            return None
        return f"{self.public_url}/{key.lstrip('/')}"

    # ------------------------------------------------------------------
    # Multipart
    # ------------------------------------------------------------------
    def create_multipart_session(
        self, key: str, content_type: Optional[str] = None, *, total_parts: int = 0
    ) -> MultipartUploadSession:
        client = self._require_client()
        params: dict = {"Bucket": self.bucket, "Key": key}
        if content_type:
            params["ContentType"] = content_type
        try:
            response = client.create_multipart_upload(**params)
        except (ClientError, BotoCoreError) as exc:
            raise _translate(exc, key=key, action="create_multipart_upload") from exc
        return MultipartUploadSession(
            upload_id=response["UploadId"], key=key, total_parts=total_parts
        )

    def upload_part(
        self, session: MultipartUploadSession, part_number: int, body: bytes
    ) -> dict:
        client = self._require_client()
        try:
            response = client.upload_part(
                Bucket=self.bucket,
                Key=session.key,
                PartNumber=part_number,
                UploadId=session.upload_id,
                Body=body,
            )
        except (ClientError, BotoCoreError) as exc:
            raise _translate(exc, key=session.key, action=f"upload_part {part_number}") from exc
        return session.record_part(part_number, response["ETag"])

    def complete_multipart(self, session: MultipartUploadSession) -> str:
        client = self._require_client()
        try:
            client.complete_multipart_upload(
                Bucket=self.bucket,
                Key=session.key,
                UploadId=session.upload_id,
                MultipartUpload={"Parts": session.ordered_parts()},
            )
        except (ClientError, BotoCoreError) as exc:
            raise _translate(exc, key=session.key, action="complete_multipart_upload") from exc
        return self.reference_for(session.key)

    def abort_multipart(self, session: MultipartUploadSession) -> None:
        client = self._require_client()
        try:
            client.abort_multipart_upload(
                Bucket=self.bucket,
                Key=session.key,
                UploadId=session.upload_id,
            )
        except (ClientError, BotoCoreError) as exc:
            raise MultipartAbortFailure(
                f"Unable to abort multipart upload {session.upload_id} for {session.key!r}: {exc}",
                key=session.key,
                upload_id=session.upload_id,
            ) from exc


__all__ = ["ObjectStorageGateway", "build_s3_client"]
