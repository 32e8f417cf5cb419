"""Snapshot, history and diff data structures."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, TypeAlias

# Arbitrarily nested JSON-shaped record: primitives, lists and string-keyed mappings.
JSONValue: TypeAlias = None | bool | int | float | str | list[Any] | Mapping[str, Any]
Snapshot: TypeAlias = Mapping[str, Any]


class EntityState(StrEnum):
    """Lifecycle state of one entity's history log."""

    UNSEEN = "unseen"
    BASELINE = "baseline"
    TRACKED = "tracked"

    @classmethod
    def from_history_length(cls, length: int) -> EntityState:
        if length == 0:
            return cls.UNSEEN
        if length == 1:
            return cls.BASELINE
        return cls.TRACKED


@dataclass(frozen=True)
class HistoricalEntry:
    """One stored observation of an entity.

    Immutable: entries are only ever appended to a history log or dropped
    from its head by retention, never edited in place.
    """

    timestamp: int  # epoch milliseconds
    data: Snapshot

    def to_dict(self) -> dict[str, Any]:
        return {"timestamp": self.timestamp, "data": self.data}


@dataclass(frozen=True)
class FieldChange:
    """Old and new value of a single changed field path.

    A side that was absent from its record is rendered as ``None``.
    """

    old: Any
    new: Any

    def to_dict(self) -> dict[str, Any]:
        return {"old": self.old, "new": self.new}


# Dotted field path -> change. Only paths whose values differ are present.
Diff: TypeAlias = dict[str, FieldChange]


def diff_to_dict(diff: Diff) -> dict[str, dict[str, Any]]:
    """Render a Diff as plain dicts for JSON output."""
    return {path: change.to_dict() for path, change in diff.items()}


@dataclass(frozen=True)
class EntityFailure:
    """An entity whose ingestion raised inside a batch."""

    index: int
    entity_id: str | None
    error: Exception


@dataclass
class BatchResult:
    """Outcome of one refresh cycle over many entities.

    ``diffs`` only holds entities whose snapshot changed; baselines and
    unchanged entities are left out.
    """

    diffs: dict[str, Diff] = field(default_factory=dict)
    storage_full: bool = False
    failures: list[EntityFailure] = field(default_factory=list)
    entities_seen: int = 0

    @property
    def has_changes(self) -> bool:
        return bool(self.diffs)

    @property
    def changed_ids(self) -> list[str]:
        return list(self.diffs)
