"""Component wiring for orderwatch.

Build order: config -> logging -> storage -> history store -> ingestor.
The CLI and embedding applications both go through these factories.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import structlog

from orderwatch.config import load_config
from orderwatch.ledger.history_store import HistoryStore
from orderwatch.ledger.ingestor import SnapshotIngestor
from orderwatch.models.config import OrderWatchConfig, StorageConfig
from orderwatch.observability.errors import ErrorReporter, LogErrorReporter
from orderwatch.observability.logging import get_logger, setup_logging
from orderwatch.storage import FileKeyValueStore, InMemoryKeyValueStore, KeyValueStore


def build_storage(config: StorageConfig) -> KeyValueStore:
    """Create the key-value backend named by *config*."""
    if config.backend == "memory":
        return InMemoryKeyValueStore(quota_bytes=config.quota_bytes)
    if config.backend == "file":
        return FileKeyValueStore(config.directory, quota_bytes=config.quota_bytes)
    raise ValueError(f"Unknown storage backend: {config.backend}")


@dataclass
class OrderWatchApp:
    """Wired components plus the entity ids whose last write hit the quota."""

    config: OrderWatchConfig
    storage: KeyValueStore
    history: HistoryStore
    ingestor: SnapshotIngestor
    storage_warnings: list[str] = field(default_factory=list)


def build_app(
    config: OrderWatchConfig | None = None,
    reporter: ErrorReporter | None = None,
    storage: KeyValueStore | None = None,
) -> OrderWatchApp:
    """Wire every component from *config* (environment when omitted)."""
    config = config or load_config()
    if not structlog.is_configured():
        setup_logging(config.log.level)
    log = get_logger("app")

    storage = storage or build_storage(config.storage)
    history = HistoryStore(
        storage,
        reporter=reporter or LogErrorReporter(),
        key_prefix=config.history.key_prefix,
    )
    warnings: list[str] = []
    ingestor = SnapshotIngestor(
        history,
        max_entries=config.history.max_entries,
        on_storage_warning=warnings.append,
        entity_id_path=config.history.entity_id_path,
    )
    log.debug(
        "orderwatch wired",
        backend=config.storage.backend,
        max_entries=config.history.max_entries,
    )
    return OrderWatchApp(
        config=config,
        storage=storage,
        history=history,
        ingestor=ingestor,
        storage_warnings=warnings,
    )
