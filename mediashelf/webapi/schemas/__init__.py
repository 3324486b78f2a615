"""Request and response models for the HTTP surface."""

from .preprocess import (
    PreprocessErrorEntry,
    PreprocessItemResponse,
    PreprocessProgressResponse,
    PreprocessStartRequest,
    PreprocessStartResponse,
)
from .storage import StorageObjectEntry, StorageObjectListResponse, StorageStatusResponse

__all__ = [
    "PreprocessErrorEntry",
    "PreprocessItemResponse",
    "PreprocessProgressResponse",
    "PreprocessStartRequest",
    "PreprocessStartResponse",
    "StorageObjectEntry",
    "StorageObjectListResponse",
    "StorageStatusResponse",
]
