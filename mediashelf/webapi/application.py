"""Application factory for the FastAPI backend."""

from __future__ import annotations

import logging
import os
import re

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from mediashelf import load_environment
from mediashelf.database import create_schema

from .dependencies import get_artifact_cache, shutdown_services
from .routes import cache_router, preprocess_router, storage_router, stream_router

load_environment()

LOGGER = logging.getLogger(__name__)

DEFAULT_LOCAL_ORIGINS = (
    "http://localhost",
    "http://127.0.0.1",
    "http://localhost:5173",
    "http://127.0.0.1:5173",
)

# Headers that must be allowed/exposed for media range requests.
RANGE_REQUEST_HEADERS = ("Range",)
RANGE_RESPONSE_HEADERS = ("Accept-Ranges", "Content-Length", "Content-Range")

# Scratch entries older than this are left over from a previous process.
STALE_SCRATCH_SECONDS = 3600.0


def _parse_cors_origins(raw_value: str | None) -> tuple[list[str], bool]:
    """Return the allowed origins and whether credentials are supported."""

    if raw_value is None:
        return list(DEFAULT_LOCAL_ORIGINS), True

    tokens = [token.strip() for token in re.split(r"[\s,]+", raw_value) if token.strip()]
    if not tokens:
        return [], False
    if "*" in tokens:
        return ["*"], False
    return tokens, True


def _configure_cors(app: FastAPI) -> None:
    allowed_origins, allow_credentials = _parse_cors_origins(
        os.environ.get("MEDIASHELF_API_CORS_ORIGINS")
    )
    if not allowed_origins:
        LOGGER.info("CORS middleware disabled; no allowed origins configured.")
        return

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=allow_credentials,
        allow_methods=["*"],
        allow_headers=["*"] + list(RANGE_REQUEST_HEADERS),
        expose_headers=list(RANGE_RESPONSE_HEADERS),
    )


def create_app() -> FastAPI:
    """Instantiate and configure the FastAPI application."""

    app = FastAPI(title="mediashelf API", version="0.1.0")

    @app.on_event("startup")
    async def _prepare_runtime() -> None:
        try:
            create_schema()
        except Exception:  # pragma: no cover
            LOGGER.exception("Failed to create catalog schema")
        try:
            get_artifact_cache().cleanup_scratch(older_than_seconds=STALE_SCRATCH_SECONDS)
        except Exception:  # pragma: no cover
            LOGGER.exception("Failed to prune stale scratch files on startup")

    @app.on_event("shutdown")
    async def _cleanup_runtime() -> None:
        try:
            shutdown_services()
        except Exception:  # pragma: no cover
            LOGGER.exception("Failed to stop preprocessing workers")

    _configure_cors(app)

    @app.get("/_health", tags=["health"])
    def healthcheck() -> dict[str, str]:
        """Simple healthcheck endpoint for smoke-testing the server."""

        return {"status": "ok"}

    app.include_router(cache_router)
    app.include_router(stream_router)
    app.include_router(preprocess_router)
    app.include_router(storage_router)

    return app
