"""Shared constants for the configuration manager package."""
from __future__ import annotations

from pathlib import Path

MODULE_DIR = Path(__file__).resolve().parent
SCRIPT_DIR = MODULE_DIR.parent.parent.resolve()
CONF_DIR = SCRIPT_DIR / "conf"
DEFAULT_CONFIG_PATH = CONF_DIR / "config.json"
DEFAULT_LOCAL_CONFIG_PATH = CONF_DIR / "config.local.json"
VAULT_FILE_ENV = "MEDIASHELF_VAULT_FILE"

DEFAULT_CACHE_ROOT = SCRIPT_DIR / "cache"
DEFAULT_DATABASE_URL = f"sqlite:///{(SCRIPT_DIR / 'mediashelf.db').as_posix()}"
DEFAULT_ITEM_TYPES = ("ebook", "magazine", "audio", "video")

DEFAULT_BUCKET_NAME = "mediashelf-media"
DEFAULT_STORAGE_REGION = "us-east-1"
R2_ENDPOINT_TEMPLATE = "https://{account_id}.r2.cloudflarestorage.com"

MIB = 1024 * 1024
DEFAULT_MULTIPART_THRESHOLD = 100 * MIB
DEFAULT_MULTIPART_PART_SIZE = 100 * MIB
# S3 refuses parts below 5 MiB except for the last one.
MIN_MULTIPART_PART_SIZE = 5 * MIB

DEFAULT_RENDER_DPI = 150
DEFAULT_RENDER_TIMEOUT_SECONDS = 600.0
DEFAULT_PREPROCESS_ITEM_DELAY_SECONDS = 0.5
DEFAULT_PRESIGNED_URL_EXPIRY = 3600

SENSITIVE_CONFIG_KEYS = {
    "database_url",
    "storage_access_key_id",
    "storage_secret_access_key",
}
