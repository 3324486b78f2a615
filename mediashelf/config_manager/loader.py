"""Configuration loading utilities."""
from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import ValidationError

from mediashelf import logging_manager

from .constants import (
    DEFAULT_CONFIG_PATH,
    DEFAULT_LOCAL_CONFIG_PATH,
    SENSITIVE_CONFIG_KEYS,
    VAULT_FILE_ENV,
)
from .settings import (
    MediaShelfSettings,
    apply_settings_updates,
    load_environment_overrides,
    load_vault_secrets,
)

logger = logging_manager.get_logger()


_ACTIVE_SETTINGS: Optional[MediaShelfSettings] = None


def _read_config_json(path: Optional[Path], label: str = "configuration") -> Dict[str, Any]:
    if not path:
        return {}
    try:
        with open(path, "r", encoding="utf-8") as handle:
            data = json.load(handle)
    except FileNotFoundError:
        logger.debug(
            "No %s found at %s.", label, path, extra={"event": "config.file.missing"}
        )
        return {}
    except (OSError, json.JSONDecodeError) as exc:
        logger.warning(
            "Error loading %s from %s: %s. Proceeding without it.",
            label,
            path,
            exc,
            extra={"event": "config.file.invalid"},
        )
        return {}
    if not isinstance(data, dict):
        logger.warning(
            "Ignoring %s at %s: expected a JSON object.",
            label,
            path,
            extra={"event": "config.file.invalid"},
        )
        return {}
    logger.debug("Loaded %s from %s", label, path, extra={"event": "config.file.loaded"})
    return data


def _deep_merge_dict(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    result = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = _deep_merge_dict(result[key], value)
        else:
            result[key] = value
    return result


def _apply_secret_layers(settings: MediaShelfSettings) -> MediaShelfSettings:
    vault_path = os.environ.get(VAULT_FILE_ENV)
    vault_updates: Dict[str, Any] = {}
    if vault_path:
        vault_updates = load_vault_secrets(Path(vault_path).expanduser())
        if vault_updates:
            logger.info(
                "Loaded secret overrides from vault file at %s",
                vault_path,
                extra={"event": "config.vault.loaded"},
            )
    settings = apply_settings_updates(settings, dict(vault_updates))
    return apply_settings_updates(settings, load_environment_overrides())


def load_configuration(config_file: Optional[str] = None) -> MediaShelfSettings:
    """Load the layered configuration and make it the active settings."""

    global _ACTIVE_SETTINGS

    payload = _read_config_json(DEFAULT_CONFIG_PATH, label="default configuration")

    if config_file:
        override_path = Path(config_file).expanduser()
        if not override_path.is_absolute():
            override_path = (Path.cwd() / override_path).resolve()
    else:
        override_path = DEFAULT_LOCAL_CONFIG_PATH
    payload = _deep_merge_dict(
        payload, _read_config_json(override_path, label="local configuration")
    )

    try:
        settings = MediaShelfSettings.model_validate(payload)
    except ValidationError as exc:
        raise RuntimeError("Invalid configuration detected") from exc

    settings = _apply_secret_layers(settings)
    _ACTIVE_SETTINGS = settings
    return settings


def export_settings(settings: MediaShelfSettings) -> Dict[str, Any]:
    """Return a dictionary view of ``settings`` without secret values."""

    return settings.model_dump(mode="json", exclude=set(SENSITIVE_CONFIG_KEYS))


def get_settings() -> MediaShelfSettings:
    """Return the currently loaded :class:`MediaShelfSettings` instance."""

    global _ACTIVE_SETTINGS
    if _ACTIVE_SETTINGS is None:
        _ACTIVE_SETTINGS = _apply_secret_layers(MediaShelfSettings())
    return _ACTIVE_SETTINGS


def reset_settings() -> None:
    """Forget the active settings so the next lookup reloads them."""

    global _ACTIVE_SETTINGS
    _ACTIVE_SETTINGS = None


__all__ = ["export_settings", "get_settings", "load_configuration", "reset_settings"]
