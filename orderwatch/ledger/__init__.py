"""Change ledger for orderwatch.

Keeps a bounded, append-only log of snapshots per order and reports what
changed between consecutive snapshots.

Submodules:
    diff          -- Recursive structural diff producing dotted-path changes.
    history_store -- Per-entity history logs in a key-value store.
    retention     -- Pluggable pruning policies (FIFO by age by default).
    ingestor      -- Load, diff, append, prune, persist pipeline.
    significance  -- Watch-list helpers for callers consuming diffs.
"""

from orderwatch.ledger.diff import CyclicStructureError, StructuralDiffer, compute_diff
from orderwatch.ledger.history_store import DeserializationError, HistoryStore, SnapshotTooDeepError
from orderwatch.ledger.ingestor import MissingEntityIdError, SnapshotIngestor, entity_id_from
from orderwatch.ledger.retention import FifoRetentionPolicy, RetentionPolicy
from orderwatch.ledger.significance import has_significant_changes, significant_paths
from orderwatch.storage.base import PersistenceQuotaError

__all__ = [
    "CyclicStructureError",
    "DeserializationError",
    "FifoRetentionPolicy",
    "HistoryStore",
    "MissingEntityIdError",
    "PersistenceQuotaError",
    "RetentionPolicy",
    "SnapshotIngestor",
    "SnapshotTooDeepError",
    "StructuralDiffer",
    "compute_diff",
    "entity_id_from",
    "has_significant_changes",
    "significant_paths",
]
