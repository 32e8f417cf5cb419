"""Retention policies bounding the length of a history log."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence

from orderwatch.models.snapshots import HistoricalEntry


class RetentionPolicy(ABC):
    """Decides which entries of a history log survive after an append."""

    @abstractmethod
    def prune(self, entries: Sequence[HistoricalEntry], max_len: int) -> list[HistoricalEntry]:
        """Return the entries to keep, in their original order."""


class FifoRetentionPolicy(RetentionPolicy):
    """Keeps the newest ``max_len`` entries and drops the oldest first."""

    def prune(self, entries: Sequence[HistoricalEntry], max_len: int) -> list[HistoricalEntry]:
        if max_len < 1:
            raise ValueError(f"max_len must be at least 1, got {max_len}")
        if len(entries) <= max_len:
            return list(entries)
        return list(entries[len(entries) - max_len :])
