"""Prometheus metrics for the ingestion pipeline."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

snapshots_ingested_total = Counter(
    "orderwatch_snapshots_ingested_total",
    "Snapshots processed by the ingestor, by outcome",
    ["outcome"],  # baseline | unchanged | changed | failed
)

history_load_errors_total = Counter(
    "orderwatch_history_load_errors_total",
    "Stored history logs that could not be deserialized and were discarded",
)

history_write_failures_total = Counter(
    "orderwatch_history_write_failures_total",
    "History writes rejected by the storage backend for capacity",
)

history_entries_pruned_total = Counter(
    "orderwatch_history_entries_pruned_total",
    "History entries dropped by the retention policy",
)

diff_fields = Histogram(
    "orderwatch_diff_fields",
    "Number of changed field paths per non-empty diff",
    buckets=(1, 2, 3, 5, 10, 25, 50, 100),
)
