"""Snapshot ingestion pipeline.

For every new snapshot of an entity: load its history, diff against the
last stored snapshot, append and prune when something changed, persist,
and hand the diff back to the caller.

The first snapshot of an entity is stored as its baseline and reported as
"no change". Repeating an unchanged snapshot never touches storage.

Load-then-save is a read-modify-write, so ingestion is serialized per
entity id with an asyncio.Lock; different entities proceed independently.
"""

from __future__ import annotations

import asyncio
import json
import time
from collections.abc import AsyncIterator, Callable, Iterable, Mapping
from contextlib import asynccontextmanager
from typing import Any

import structlog

from orderwatch.ledger.diff import CyclicStructureError, StructuralDiffer
from orderwatch.ledger.history_store import HistoryStore, SnapshotTooDeepError
from orderwatch.ledger.retention import FifoRetentionPolicy, RetentionPolicy
from orderwatch.models.snapshots import (
    BatchResult,
    Diff,
    EntityFailure,
    EntityState,
    HistoricalEntry,
    Snapshot,
)
from orderwatch.observability.errors import call_safely
from orderwatch.observability.metrics import diff_fields, history_entries_pruned_total, snapshots_ingested_total

_log = structlog.get_logger(component="ledger.ingestor")

DEFAULT_MAX_ENTRIES = 20
DEFAULT_ENTITY_ID_PATH = "order.referenceNumber"

StorageWarningCallback = Callable[[str], None]


class MissingEntityIdError(ValueError):
    """A snapshot has no string identifier at the configured path."""

    def __init__(self, id_path: str) -> None:
        super().__init__(f"Snapshot has no string entity id at '{id_path}'")
        self.id_path = id_path


def _epoch_ms() -> int:
    return time.time_ns() // 1_000_000


def _detach(snapshot: Snapshot) -> dict[str, Any]:
    """Return a JSON-normalized deep copy of *snapshot*.

    The copy is exactly what a later load of the stored log yields, so
    comparisons against in-memory and reloaded history agree.

    Raises:
        CyclicStructureError: *snapshot* contains a reference cycle.
        SnapshotTooDeepError: *snapshot* is nested beyond the JSON codec's limit.
    """
    if not isinstance(snapshot, Mapping):
        raise TypeError(f"Snapshot must be a mapping, got {type(snapshot).__name__}")
    try:
        encoded = json.dumps(snapshot)
    except ValueError as exc:
        # json.dumps raises ValueError only for circular references here
        raise CyclicStructureError("") from exc
    except RecursionError as exc:
        raise SnapshotTooDeepError() from exc
    try:
        detached: dict[str, Any] = json.loads(encoded)
    except RecursionError as exc:
        raise SnapshotTooDeepError() from exc
    return detached


def entity_id_from(snapshot: Snapshot, id_path: str = DEFAULT_ENTITY_ID_PATH) -> str:
    """Extract the entity id found at dotted *id_path* in *snapshot*."""
    node: Any = snapshot
    for part in id_path.split("."):
        if not isinstance(node, Mapping) or part not in node:
            raise MissingEntityIdError(id_path)
        node = node[part]
    if not isinstance(node, str) or not node:
        raise MissingEntityIdError(id_path)
    return node


class SnapshotIngestor:
    """Diffs incoming snapshots against stored history and records changes.

    Args:
        history:            Store holding each entity's log.
        max_entries:        Retention cap per entity.
        retention:          Pruning policy; FIFO by age when omitted.
        differ:             Structural differ; the default one when omitted.
        clock:              Returns the current time in epoch milliseconds.
        on_storage_warning: Called with the entity id whenever a history
                            write is rejected for capacity. The diff is still
                            returned to the caller in that case.
        entity_id_path:     Dotted path of the id inside a snapshot, used by
                            ingest_batch.
    """

    def __init__(
        self,
        history: HistoryStore,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        retention: RetentionPolicy | None = None,
        differ: StructuralDiffer | None = None,
        clock: Callable[[], int] | None = None,
        on_storage_warning: StorageWarningCallback | None = None,
        entity_id_path: str = DEFAULT_ENTITY_ID_PATH,
    ) -> None:
        if max_entries < 1:
            raise ValueError(f"max_entries must be at least 1, got {max_entries}")
        self._history = history
        self._max_entries = max_entries
        self._retention = retention or FifoRetentionPolicy()
        self._differ = differ or StructuralDiffer()
        self._clock = clock or _epoch_ms
        self._on_storage_warning = on_storage_warning
        self._entity_id_path = entity_id_path
        # entity id -> (lock, number of ingests holding or awaiting it)
        self._locks: dict[str, tuple[asyncio.Lock, int]] = {}

    @property
    def max_entries(self) -> int:
        return self._max_entries

    def entity_id_for(self, snapshot: Snapshot) -> str:
        return entity_id_from(snapshot, self._entity_id_path)

    async def state_of(self, entity_id: str) -> EntityState:
        """Return where *entity_id* is in its Unseen/Baseline/Tracked lifecycle."""
        entries = await self._history.load(entity_id)
        return EntityState.from_history_length(len(entries))

    async def ingest(self, entity_id: str, snapshot: Snapshot) -> Diff:
        """Record *snapshot* for *entity_id* and return what changed.

        Returns an empty Diff for the baseline observation and for a snapshot
        identical to the last stored one.

        Raises:
            CyclicStructureError: *snapshot* contains a reference cycle. No
                history is written.
            SnapshotTooDeepError: *snapshot* is nested too deeply to be
                stored. No history is written.
        """
        diff, _ = await self._ingest_locked(entity_id, snapshot)
        return diff

    async def ingest_batch(self, snapshots: Iterable[Snapshot]) -> BatchResult:
        """Ingest one refresh cycle's worth of snapshots.

        Each snapshot's entity id is read from ``entity_id_path``. A failure
        for one entity is recorded in ``BatchResult.failures`` and never
        prevents the others from being ingested.
        """
        items = list(snapshots)
        outcomes = await asyncio.gather(*(self._ingest_one(i, s) for i, s in enumerate(items)))

        result = BatchResult(entities_seen=len(items))
        for entity_id, diff, persisted, failure in outcomes:
            if failure is not None:
                result.failures.append(failure)
                continue
            if not persisted:
                result.storage_full = True
            if diff and entity_id is not None:
                result.diffs[entity_id] = diff

        _log.info(
            "refresh_completed",
            entities=result.entities_seen,
            changed=len(result.diffs),
            failed=len(result.failures),
            storage_full=result.storage_full,
        )
        return result

    async def _ingest_one(
        self, index: int, snapshot: Snapshot
    ) -> tuple[str | None, Diff, bool, EntityFailure | None]:
        entity_id: str | None = None
        try:
            entity_id = self.entity_id_for(snapshot)
            diff, persisted = await self._ingest_locked(entity_id, snapshot)
        except Exception as exc:  # noqa: BLE001
            _log.error(
                "entity_ingest_failed",
                index=index,
                entity_id=entity_id,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            return entity_id, {}, True, EntityFailure(index=index, entity_id=entity_id, error=exc)
        return entity_id, diff, persisted, None

    @asynccontextmanager
    async def _entity_lock(self, entity_id: str) -> AsyncIterator[None]:
        """Serialize ingestion per entity; the lock is dropped once unused."""
        lock, users = self._locks.get(entity_id) or (asyncio.Lock(), 0)
        self._locks[entity_id] = (lock, users + 1)
        try:
            async with lock:
                yield
        finally:
            _, users = self._locks[entity_id]
            if users == 1:
                del self._locks[entity_id]
            else:
                self._locks[entity_id] = (lock, users - 1)

    async def _ingest_locked(self, entity_id: str, snapshot: Snapshot) -> tuple[Diff, bool]:
        async with self._entity_lock(entity_id):
            try:
                diff, persisted = await self._ingest(entity_id, snapshot)
            except Exception:
                snapshots_ingested_total.labels(outcome="failed").inc()
                raise

        if not persisted and self._on_storage_warning is not None:
            call_safely(self._on_storage_warning, entity_id, entity_id=entity_id)
        return diff, persisted

    async def _ingest(self, entity_id: str, snapshot: Snapshot) -> tuple[Diff, bool]:
        """Run the pipeline for one entity. Returns (diff, persisted)."""
        data = _detach(snapshot)
        entries = await self._history.load(entity_id)

        if not entries:
            persisted = await self._history.save(entity_id, [HistoricalEntry(self._clock(), data)])
            snapshots_ingested_total.labels(outcome="baseline").inc()
            _log.info("baseline_recorded", entity_id=entity_id, persisted=persisted)
            return {}, persisted

        diff = self._differ.diff(entries[-1].data, data)
        if not diff:
            snapshots_ingested_total.labels(outcome="unchanged").inc()
            _log.debug("snapshot_unchanged", entity_id=entity_id, entries=len(entries))
            return {}, True

        appended = [*entries, HistoricalEntry(self._clock(), data)]
        kept = self._retention.prune(appended, self._max_entries)
        dropped = len(appended) - len(kept)
        if dropped:
            history_entries_pruned_total.inc(dropped)

        persisted = await self._history.save(entity_id, kept)
        snapshots_ingested_total.labels(outcome="changed").inc()
        diff_fields.observe(len(diff))
        _log.info(
            "changes_detected",
            entity_id=entity_id,
            change_count=len(diff),
            entries=len(kept),
            pruned=dropped,
            persisted=persisted,
        )
        return diff, persisted
