"""Caller-side helpers for deciding whether a diff deserves attention.

The ingestor never looks at these; callers pass their own watch-list,
typically ``NotificationConfig.watch_fields``.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from orderwatch.models.config import DEFAULT_WATCH_FIELDS
from orderwatch.models.snapshots import Diff


def significant_paths(diff: Diff, watch_fields: Iterable[str] = DEFAULT_WATCH_FIELDS) -> list[str]:
    """Return the changed paths of *diff* that are on the watch-list, sorted."""
    watched = set(watch_fields)
    return sorted(path for path in diff if path in watched)


def has_significant_changes(
    diffs: Mapping[str, Diff],
    watch_fields: Iterable[str] = DEFAULT_WATCH_FIELDS,
) -> bool:
    """True when any entity's diff touches a watched path."""
    watched = set(watch_fields)
    return any(path in watched for diff in diffs.values() for path in diff)
