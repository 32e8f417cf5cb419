"""Core data structures for orderwatch."""

from orderwatch.models.config import OrderWatchConfig
from orderwatch.models.snapshots import (
    BatchResult,
    Diff,
    EntityFailure,
    EntityState,
    FieldChange,
    HistoricalEntry,
    JSONValue,
    Snapshot,
    diff_to_dict,
)

__all__ = [
    "BatchResult",
    "Diff",
    "EntityFailure",
    "EntityState",
    "FieldChange",
    "HistoricalEntry",
    "JSONValue",
    "OrderWatchConfig",
    "Snapshot",
    "diff_to_dict",
]
