"""Per-entity history logs persisted in a key-value store.

Each entity's log is stored as a JSON array of ``{"timestamp", "data"}``
objects under ``<key_prefix><entity_id>``. Loading never raises on bad
content: an unreadable log is reported and treated as absent.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from typing import Any

import structlog

from orderwatch.models.snapshots import HistoricalEntry
from orderwatch.observability.errors import ErrorReporter, LogErrorReporter, report_safely
from orderwatch.observability.metrics import history_load_errors_total, history_write_failures_total
from orderwatch.storage.base import KeyValueStore, PersistenceQuotaError

_log = structlog.get_logger(component="ledger.history_store")

DEFAULT_KEY_PREFIX = "tesla-order-history-"


class DeserializationError(ValueError):
    """Stored history content is not valid JSON or not a list of entries."""

    def __init__(self, entity_id: str, reason: str) -> None:
        super().__init__(f"Unreadable history for '{entity_id}': {reason}")
        self.entity_id = entity_id
        self.reason = reason


class SnapshotTooDeepError(ValueError):
    """A snapshot is nested more deeply than the JSON codec can encode."""

    def __init__(self) -> None:
        super().__init__("Snapshot is nested too deeply to be stored as JSON")


def serialize_entries(entries: Sequence[HistoricalEntry]) -> str:
    """Encode a history log as a JSON array.

    Raises:
        SnapshotTooDeepError: an entry's data exceeds the encoder's nesting limit.
    """
    try:
        return json.dumps([entry.to_dict() for entry in entries], separators=(",", ":"), ensure_ascii=False)
    except RecursionError as exc:
        raise SnapshotTooDeepError() from exc


def deserialize_entries(entity_id: str, raw: str) -> list[HistoricalEntry]:
    """Decode a JSON array produced by serialize_entries.

    Raises:
        DeserializationError: *raw* is not JSON or has the wrong shape.
    """
    try:
        parsed: Any = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise DeserializationError(entity_id, f"invalid JSON: {exc.msg}") from exc
    except RecursionError as exc:
        raise DeserializationError(entity_id, "nesting too deep to decode") from exc

    if not isinstance(parsed, list):
        raise DeserializationError(entity_id, f"expected a list, got {type(parsed).__name__}")

    entries: list[HistoricalEntry] = []
    for index, item in enumerate(parsed):
        if not isinstance(item, dict):
            raise DeserializationError(entity_id, f"entry {index} is not an object")
        timestamp = item.get("timestamp")
        data = item.get("data")
        # bool is an int subclass; a boolean timestamp is still malformed
        if isinstance(timestamp, bool) or not isinstance(timestamp, int):
            raise DeserializationError(entity_id, f"entry {index} has no integer timestamp")
        if not isinstance(data, dict):
            raise DeserializationError(entity_id, f"entry {index} has no object data")
        entries.append(HistoricalEntry(timestamp=timestamp, data=data))
    return entries


class HistoryStore:
    """Loads and saves per-entity history logs.

    Args:
        storage:    Backing key-value store.
        reporter:   Sink for deserialization and persistence failures.
        key_prefix: Prefix prepended to every entity id to form its key.
    """

    def __init__(
        self,
        storage: KeyValueStore,
        reporter: ErrorReporter | None = None,
        key_prefix: str = DEFAULT_KEY_PREFIX,
    ) -> None:
        self._storage = storage
        self._reporter = reporter or LogErrorReporter()
        self._prefix = key_prefix

    @property
    def key_prefix(self) -> str:
        return self._prefix

    def key_for(self, entity_id: str) -> str:
        return f"{self._prefix}{entity_id}"

    async def load(self, entity_id: str) -> list[HistoricalEntry]:
        """Return the stored log for *entity_id*, oldest first.

        Returns an empty list when nothing is stored or the stored content
        cannot be decoded; the latter is reported to the error sink.
        """
        try:
            raw = await self._read(entity_id)
            if raw is None:
                return []
            return deserialize_entries(entity_id, raw)
        except DeserializationError as exc:
            history_load_errors_total.inc()
            _log.warning("history_load_failed", entity_id=entity_id, reason=exc.reason)
            report_safely(self._reporter, exc, entity_id=entity_id, operation="history_load")
            return []

    async def _read(self, entity_id: str) -> str | None:
        try:
            return await self._storage.get_item(self.key_for(entity_id))
        except UnicodeDecodeError as exc:
            raise DeserializationError(entity_id, f"not valid UTF-8 at byte {exc.start}") from exc

    async def save(self, entity_id: str, entries: Sequence[HistoricalEntry]) -> bool:
        """Persist the full log for *entity_id*.

        Returns False, without raising, when the store rejects the write for
        capacity. The previously stored log is left intact in that case.
        """
        payload = serialize_entries(entries)
        try:
            await self._storage.set_item(self.key_for(entity_id), payload)
        except PersistenceQuotaError as exc:
            history_write_failures_total.inc()
            _log.warning(
                "history_write_rejected",
                entity_id=entity_id,
                entries=len(entries),
                payload_bytes=len(payload.encode("utf-8")),
            )
            report_safely(self._reporter, exc, entity_id=entity_id, operation="history_save")
            return False
        return True

    async def clear(self, entity_id: str) -> None:
        """Delete the stored log for *entity_id*."""
        await self._storage.remove_item(self.key_for(entity_id))
        _log.info("history_cleared", entity_id=entity_id)

    async def entity_ids(self) -> list[str]:
        """Return the ids of every entity with a stored log."""
        keys = await self._storage.keys(self._prefix)
        return [key[len(self._prefix) :] for key in keys]
