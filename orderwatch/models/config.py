"""Configuration data structures."""

from __future__ import annotations

from dataclasses import dataclass, field

DEFAULT_WATCH_FIELDS: tuple[str, ...] = (
    "order.vin",
    "details.tasks.scheduling.apptDateTimeAddressStr",
    "details.tasks.scheduling.deliveryWindowDisplay",
    "order.orderStatus",
)


@dataclass
class HistoryConfig:
    """Per-entity history log configuration."""

    max_entries: int = 20
    key_prefix: str = "tesla-order-history-"
    entity_id_path: str = "order.referenceNumber"


@dataclass
class StorageConfig:
    """Key-value storage backend configuration."""

    backend: str = "file"  # "file" | "memory"
    directory: str = ".orderwatch"
    quota_bytes: int | None = None


@dataclass
class NotificationConfig:
    """Field paths whose change is worth surfacing to the user."""

    watch_fields: tuple[str, ...] = DEFAULT_WATCH_FIELDS


@dataclass
class LogConfig:
    """Logging configuration."""

    level: str = "info"


@dataclass
class OrderWatchConfig:
    """Top-level orderwatch configuration."""

    history: HistoryConfig = field(default_factory=HistoryConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    notifications: NotificationConfig = field(default_factory=NotificationConfig)
    log: LogConfig = field(default_factory=LogConfig)
