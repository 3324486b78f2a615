"""Relational persistence for the media catalog."""

from .base import Base
from .engine import (
    configure_database,
    create_schema,
    dispose_engine,
    get_db_session,
    get_engine,
)

__all__ = [
    "Base",
    "configure_database",
    "create_schema",
    "dispose_engine",
    "get_db_session",
    "get_engine",
]
