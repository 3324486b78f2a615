"""API routers grouped by surface."""

from .cache_routes import router as cache_router
from .preprocess_routes import router as preprocess_router
from .storage_routes import router as storage_router
from .stream_routes import router as stream_router

__all__ = ["cache_router", "preprocess_router", "storage_router", "stream_router"]
