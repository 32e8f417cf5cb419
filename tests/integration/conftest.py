"""Shared fixtures for orderwatch integration tests.

Provides an ingestor wired to an in-memory store, a deterministic clock and
a collecting error reporter, plus factories for realistic order snapshots.
"""

from __future__ import annotations

import copy
import itertools
from typing import Any

import pytest

from orderwatch.ledger.history_store import HistoryStore
from orderwatch.ledger.ingestor import SnapshotIngestor
from orderwatch.observability.errors import CollectingErrorReporter
from orderwatch.storage.memory import InMemoryKeyValueStore

# ---------------------------------------------------------------------------
# Snapshot factory helpers
# ---------------------------------------------------------------------------

_BASE_TIME_MS = 1_700_000_000_000


def make_order_snapshot(
    reference_number: str = "RN100",
    order_status: str = "BOOKED",
    vin: str | None = None,
    appointment: str | None = None,
    delivery_window: str | None = None,
    mkt_options: str = "APBS,DV2W,IPB1,PPSW,PRM31,SC04,MDL3,W41B,MT337,CPF0,RSF1",
    extra_tasks: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Create a combined order + details snapshot with sensible defaults."""
    tasks: dict[str, Any] = {
        "registration": {
            "id": "registration",
            "complete": True,
            "enabled": True,
            "required": True,
            "order": 1,
            "card": {"title": "Registration", "subtitle": "Complete"},
        },
        "scheduling": {
            "id": "scheduling",
            "complete": appointment is not None,
            "enabled": True,
            "required": True,
            "order": 2,
            "apptDateTimeAddressStr": appointment,
            "deliveryWindowDisplay": delivery_window,
        },
        "finalPayment": {
            "id": "finalPayment",
            "complete": False,
            "enabled": False,
            "required": True,
            "order": 3,
        },
    }
    if extra_tasks:
        tasks.update(copy.deepcopy(extra_tasks))
    return {
        "order": {
            "referenceNumber": reference_number,
            "orderStatus": order_status,
            "modelCode": "m3",
            "vin": vin,
            "isB2b": False,
            "isUsed": False,
            "mktOptions": mkt_options,
        },
        "details": {"tasks": tasks},
    }


class FakeClock:
    """Epoch-millisecond clock advancing one second per reading."""

    def __init__(self, start: int = _BASE_TIME_MS) -> None:
        self._ticks = itertools.count(start, 1000)
        self.readings: list[int] = []

    def __call__(self) -> int:
        value = next(self._ticks)
        self.readings.append(value)
        return value


# ---------------------------------------------------------------------------
# Pipeline fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def storage() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture()
def reporter() -> CollectingErrorReporter:
    return CollectingErrorReporter()


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def history_store(storage: InMemoryKeyValueStore, reporter: CollectingErrorReporter) -> HistoryStore:
    return HistoryStore(storage, reporter=reporter)


@pytest.fixture()
def storage_warnings() -> list[str]:
    return []


@pytest.fixture()
def ingestor(history_store: HistoryStore, clock: FakeClock, storage_warnings: list[str]) -> SnapshotIngestor:
    return SnapshotIngestor(
        history_store,
        max_entries=3,
        clock=clock,
        on_storage_warning=storage_warnings.append,
    )
