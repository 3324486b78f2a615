"""Catalog types and repository."""

from .models import ArtifactState, SourceItem, parse_remote_reference
from .repository import Catalog, CatalogItemNotFound, SqlCatalog

__all__ = [
    "ArtifactState",
    "Catalog",
    "CatalogItemNotFound",
    "SourceItem",
    "SqlCatalog",
    "parse_remote_reference",
]
