"""Configuration loading from environment variables."""

from __future__ import annotations

import os
import re

from orderwatch.models.config import (
    DEFAULT_WATCH_FIELDS,
    HistoryConfig,
    LogConfig,
    NotificationConfig,
    OrderWatchConfig,
    StorageConfig,
)

_FIELD_PATH = re.compile(r"^[^.\s]+(\.[^.\s]+)*$")


def _env(key: str, default: str = "") -> str:
    return os.environ.get(f"ORDERWATCH_{key}", default)


def _env_int(key: str, default: int, min_val: int | None = None, max_val: int | None = None) -> int:
    val = int(_env(key, str(default)))
    if min_val is not None:
        val = max(val, min_val)
    if max_val is not None:
        val = min(val, max_val)
    return val


def _validate_log_level(value: str) -> str:
    valid = {"debug", "info", "warning", "error"}
    if value.lower() not in valid:
        raise ValueError(f"Invalid log level: {value}. Must be one of {valid}")
    return value.lower()


def _validate_backend(value: str) -> str:
    valid = {"file", "memory"}
    if value.lower() not in valid:
        raise ValueError(f"Invalid storage backend: {value}. Must be one of {valid}")
    return value.lower()


def _validate_field_path(value: str) -> str:
    if not _FIELD_PATH.match(value):
        raise ValueError(f"Invalid field path: {value!r}")
    return value


def _parse_watch_fields(value: str) -> tuple[str, ...]:
    if not value.strip():
        return DEFAULT_WATCH_FIELDS
    return tuple(_validate_field_path(part.strip()) for part in value.split(",") if part.strip())


def load_config() -> OrderWatchConfig:
    """Load configuration from ORDERWATCH_* environment variables."""
    quota = _env_int("STORAGE_QUOTA_BYTES", 0, min_val=0)
    return OrderWatchConfig(
        history=HistoryConfig(
            max_entries=_env_int("HISTORY_MAX_ENTRIES", 20, min_val=1, max_val=1000),
            key_prefix=_env("HISTORY_KEY_PREFIX", "tesla-order-history-"),
            entity_id_path=_validate_field_path(_env("ENTITY_ID_PATH", "order.referenceNumber")),
        ),
        storage=StorageConfig(
            backend=_validate_backend(_env("STORAGE_BACKEND", "file")),
            directory=_env("STORAGE_DIR", ".orderwatch"),
            quota_bytes=quota or None,
        ),
        notifications=NotificationConfig(
            watch_fields=_parse_watch_fields(_env("WATCH_FIELDS", "")),
        ),
        log=LogConfig(
            level=_validate_log_level(_env("LOG_LEVEL", "info")),
        ),
    )
