"""SQLAlchemy models; importing this package registers them with Base.metadata."""

from .media import MediaItemModel

__all__ = ["MediaItemModel"]
