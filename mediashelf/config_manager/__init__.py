"""High-level configuration management for mediashelf."""
from __future__ import annotations

from .constants import (
    CONF_DIR,
    DEFAULT_CACHE_ROOT,
    DEFAULT_CONFIG_PATH,
    DEFAULT_LOCAL_CONFIG_PATH,
    DEFAULT_MULTIPART_PART_SIZE,
    DEFAULT_MULTIPART_THRESHOLD,
    MIN_MULTIPART_PART_SIZE,
    SCRIPT_DIR,
    SENSITIVE_CONFIG_KEYS,
    VAULT_FILE_ENV,
)
from .loader import export_settings, get_settings, load_configuration, reset_settings
from .settings import EnvironmentOverrides, MediaShelfSettings, apply_settings_updates

__all__ = [
    "CONF_DIR",
    "DEFAULT_CACHE_ROOT",
    "DEFAULT_CONFIG_PATH",
    "DEFAULT_LOCAL_CONFIG_PATH",
    "DEFAULT_MULTIPART_PART_SIZE",
    "DEFAULT_MULTIPART_THRESHOLD",
    "EnvironmentOverrides",
    "MIN_MULTIPART_PART_SIZE",
    "MediaShelfSettings",
    "SCRIPT_DIR",
    "SENSITIVE_CONFIG_KEYS",
    "VAULT_FILE_ENV",
    "apply_settings_updates",
    "export_settings",
    "get_settings",
    "load_configuration",
    "reset_settings",
]
