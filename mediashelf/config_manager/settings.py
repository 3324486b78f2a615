"""Pydantic models and helper utilities for configuration values."""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    ValidationError,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

from mediashelf import logging_manager

from .constants import (
    DEFAULT_BUCKET_NAME,
    DEFAULT_CACHE_ROOT,
    DEFAULT_DATABASE_URL,
    DEFAULT_ITEM_TYPES,
    DEFAULT_MULTIPART_PART_SIZE,
    DEFAULT_MULTIPART_THRESHOLD,
    DEFAULT_PREPROCESS_ITEM_DELAY_SECONDS,
    DEFAULT_PRESIGNED_URL_EXPIRY,
    DEFAULT_RENDER_DPI,
    DEFAULT_RENDER_TIMEOUT_SECONDS,
    DEFAULT_STORAGE_REGION,
    R2_ENDPOINT_TEMPLATE,
    SENSITIVE_CONFIG_KEYS,
)

logger = logging_manager.get_logger()


class MediaShelfSettings(BaseModel):
    """Typed representation of the application configuration."""

    model_config = ConfigDict(extra="allow")

    cache_root: str = str(DEFAULT_CACHE_ROOT)
    database_url: SecretStr = SecretStr(DEFAULT_DATABASE_URL)
    item_types: list[str] = Field(default_factory=lambda: list(DEFAULT_ITEM_TYPES))
    media_roots: Dict[str, str] = Field(default_factory=dict)

    storage_account_id: Optional[str] = None
    storage_endpoint_url: Optional[str] = None
    storage_region: str = DEFAULT_STORAGE_REGION
    storage_bucket: str = DEFAULT_BUCKET_NAME
    storage_access_key_id: Optional[SecretStr] = None
    storage_secret_access_key: Optional[SecretStr] = None
    storage_public_url: Optional[str] = None
    presigned_url_expiry_seconds: int = DEFAULT_PRESIGNED_URL_EXPIRY

    multipart_threshold_bytes: int = DEFAULT_MULTIPART_THRESHOLD
    multipart_part_size_bytes: int = DEFAULT_MULTIPART_PART_SIZE

    render_dpi: int = DEFAULT_RENDER_DPI
    render_timeout_seconds: float = DEFAULT_RENDER_TIMEOUT_SECONDS
    pdftoppm_path: str = "pdftoppm"
    pdfinfo_path: str = "pdfinfo"

    preprocess_item_delay_seconds: float = DEFAULT_PREPROCESS_ITEM_DELAY_SECONDS

    @property
    def storage_configured(self) -> bool:
        return bool(
            self.storage_bucket
            and self.storage_access_key_id is not None
            and self.storage_secret_access_key is not None
        )

    def resolved_storage_endpoint(self) -> Optional[str]:
        """Return the explicit endpoint, or the R2 endpoint derived from the account id."""

        if self.storage_endpoint_url:
            return self.storage_endpoint_url
        if self.storage_account_id:
            return R2_ENDPOINT_TEMPLATE.format(account_id=self.storage_account_id)
        return None

    def resolved_storage_region(self) -> str:
        if self.storage_account_id and not self.storage_endpoint_url:
            return "auto"
        return self.storage_region


class EnvironmentOverrides(BaseSettings):
    """Configuration overrides sourced from environment variables."""

    model_config = SettingsConfigDict(env_prefix="", env_nested_delimiter="__", extra="ignore")

    cache_root: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("MEDIASHELF_CACHE_ROOT", "CACHE_ROOT")
    )
    database_url: Optional[SecretStr] = Field(
        default=None,
        validation_alias=AliasChoices("MEDIASHELF_DATABASE_URL", "DATABASE_URL"),
    )
    storage_account_id: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("R2_ACCOUNT_ID")
    )
    storage_endpoint_url: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("MEDIASHELF_STORAGE_ENDPOINT", "S3_ENDPOINT_URL"),
    )
    storage_region: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("MEDIASHELF_STORAGE_REGION", "AWS_REGION")
    )
    storage_bucket: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("R2_BUCKET_NAME", "S3_BUCKET_NAME", "MEDIASHELF_BUCKET"),
    )
    storage_access_key_id: Optional[SecretStr] = Field(
        default=None,
        validation_alias=AliasChoices("R2_ACCESS_KEY_ID", "AWS_ACCESS_KEY_ID"),
    )
    storage_secret_access_key: Optional[SecretStr] = Field(
        default=None,
        validation_alias=AliasChoices("R2_SECRET_ACCESS_KEY", "AWS_SECRET_ACCESS_KEY"),
    )
    storage_public_url: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("R2_PUBLIC_URL", "S3_PUBLIC_URL")
    )
    multipart_threshold_bytes: Optional[int] = Field(
        default=None, validation_alias=AliasChoices("MEDIASHELF_MULTIPART_THRESHOLD")
    )
    multipart_part_size_bytes: Optional[int] = Field(
        default=None, validation_alias=AliasChoices("MEDIASHELF_MULTIPART_PART_SIZE")
    )
    render_dpi: Optional[int] = Field(
        default=None, validation_alias=AliasChoices("MEDIASHELF_RENDER_DPI")
    )
    render_timeout_seconds: Optional[float] = Field(
        default=None, validation_alias=AliasChoices("MEDIASHELF_RENDER_TIMEOUT")
    )
    pdftoppm_path: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("PDFTOPPM_PATH", "MEDIASHELF_PDFTOPPM_PATH")
    )
    pdfinfo_path: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("PDFINFO_PATH", "MEDIASHELF_PDFINFO_PATH")
    )
    preprocess_item_delay_seconds: Optional[float] = Field(
        default=None, validation_alias=AliasChoices("MEDIASHELF_PREPROCESS_DELAY")
    )


def load_environment_overrides() -> Dict[str, Any]:
    """Return configuration overrides sourced from environment variables."""

    try:
        overrides = EnvironmentOverrides()
    except ValidationError as exc:
        logger.warning(
            "Invalid environment configuration detected; using defaults.",
            extra={"event": "config.env.validation_error", "error": str(exc)},
        )
        return {}
    return overrides.model_dump(exclude_none=True)


def load_vault_secrets(path: Path) -> Dict[str, SecretStr]:
    """Attempt to read secret values from a vault-style JSON document."""

    try:
        with open(path, "r", encoding="utf-8") as handle:
            payload = json.load(handle)
    except FileNotFoundError:
        logger.debug(
            "Vault secret file not found at %s; skipping.",
            path,
            extra={"event": "config.vault.missing"},
        )
        return {}
    except json.JSONDecodeError as exc:
        logger.warning(
            "Failed to parse vault secret file at %s: %s",
            path,
            exc,
            extra={"event": "config.vault.invalid"},
        )
        return {}

    secrets: Dict[str, SecretStr] = {}
    for key in sorted(SENSITIVE_CONFIG_KEYS):
        value = payload.get(key)
        if value:
            secrets[key] = SecretStr(str(value))
    return secrets


def apply_settings_updates(
    settings: MediaShelfSettings, updates: Dict[str, Any]
) -> MediaShelfSettings:
    """Return a copy of ``settings`` updated with ``updates`` if any values exist."""

    if not updates:
        return settings
    return settings.model_copy(update=updates)


__all__ = [
    "EnvironmentOverrides",
    "MediaShelfSettings",
    "apply_settings_updates",
    "load_environment_overrides",
    "load_vault_secrets",
]
