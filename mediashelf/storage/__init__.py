"""Object storage gateway, multipart transfer and source migration."""

from .errors import MultipartAbortFailure, StorageError, StorageUnavailable
from .gateway import ObjectStorageGateway, build_s3_client
from .models import (
    MultipartUploadSession,
    ObjectMetadata,
    ObjectStream,
    ObjectSummary,
    UploadProgress,
)
from .multipart import MultipartUploader

__all__ = [
    "MultipartAbortFailure",
    "MultipartUploadSession",
    "MultipartUploader",
    "ObjectMetadata",
    "ObjectStorageGateway",
    "ObjectStream",
    "ObjectSummary",
    "StorageError",
    "StorageUnavailable",
    "UploadProgress",
    "build_s3_client",
]
