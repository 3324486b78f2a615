"""Local artifact cache and cache key derivation."""

from .artifact_cache import CompletenessReport, LocalArtifactCache, SCRATCH_DIRNAME
from .errors import CacheCorruption, InvalidCacheName
from .keys import derive_cache_key, sanitize_title
from .naming import ArtifactRole, NamingScheme, parse_unit_filename, unit_filename

__all__ = [
    "ArtifactRole",
    "CacheCorruption",
    "CompletenessReport",
    "InvalidCacheName",
    "LocalArtifactCache",
    "NamingScheme",
    "SCRATCH_DIRNAME",
    "derive_cache_key",
    "parse_unit_filename",
    "sanitize_title",
    "unit_filename",
]
