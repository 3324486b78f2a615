"""Shared fixtures isolating settings, database and cache per test."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

import pytest

os.environ.setdefault("MEDIASHELF_LOG_DIR", tempfile.mkdtemp(prefix="mediashelf-test-logs-"))

from mediashelf import config_manager as cfg  # noqa: E402
from mediashelf.database import configure_database, create_schema, dispose_engine  # noqa: E402
from mediashelf.webapi.dependencies import reset_dependency_caches  # noqa: E402

_STORAGE_ENV_VARS = (
    "R2_ACCOUNT_ID",
    "R2_BUCKET_NAME",
    "R2_ACCESS_KEY_ID",
    "R2_SECRET_ACCESS_KEY",
    "R2_PUBLIC_URL",
    "S3_BUCKET_NAME",
    "S3_ENDPOINT_URL",
    "S3_PUBLIC_URL",
    "AWS_ACCESS_KEY_ID",
    "AWS_SECRET_ACCESS_KEY",
    "AWS_REGION",
    "MEDIASHELF_BUCKET",
    "MEDIASHELF_STORAGE_ENDPOINT",
    "MEDIASHELF_STORAGE_REGION",
    "MEDIASHELF_VAULT_FILE",
    "MEDIASHELF_DATABASE_URL",
)


@pytest.fixture(autouse=True)
def isolated_environment(
    tmp_path: Path, tmp_path_factory: pytest.TempPathFactory, monkeypatch: pytest.MonkeyPatch
):
    """Point settings at a per-test cache root and SQLite file; drop storage credentials."""

    for name in _STORAGE_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    cache_root = tmp_path / "cache"
    database_url = f"sqlite:///{(tmp_path_factory.mktemp('db') / 'catalog.db').as_posix()}"
    monkeypatch.setenv("MEDIASHELF_CACHE_ROOT", str(cache_root))
    monkeypatch.setenv("DATABASE_URL", database_url)

    cfg.reset_settings()
    reset_dependency_caches()
    configure_database(database_url)
    create_schema()
    yield
    reset_dependency_caches()
    dispose_engine()
    configure_database(None)
    cfg.reset_settings()
