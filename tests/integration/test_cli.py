"""Integration tests for the orderwatch command-line interface.

Runs the click group end to end against a temporary file-backed store.
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from orderwatch.cli import cli

from .conftest import make_order_snapshot

pytestmark = pytest.mark.integration


@pytest.fixture()
def runner(monkeypatch: pytest.MonkeyPatch) -> CliRunner:
    for var in ("STORAGE_BACKEND", "STORAGE_QUOTA_BYTES", "HISTORY_MAX_ENTRIES", "WATCH_FIELDS"):
        monkeypatch.delenv(f"ORDERWATCH_{var}", raising=False)
    return CliRunner()


def _write(path: Path, payload: object) -> Path:
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


def _ingest(runner: CliRunner, store_dir: Path, *files: Path):
    return runner.invoke(cli, ["--storage-dir", str(store_dir), "ingest", *map(str, files)])


class TestIngestCommand:
    def test_baseline_then_change(self, runner: CliRunner, tmp_path: Path) -> None:
        store_dir = tmp_path / "store"
        first = _write(tmp_path / "first.json", [make_order_snapshot()])
        second = _write(tmp_path / "second.json", make_order_snapshot(vin="5YJ3E1EA7PF000001"))

        result = _ingest(runner, store_dir, first)
        assert result.exit_code == 0, result.output
        report = json.loads(result.stdout)
        assert report["entities"] == 1
        assert report["changes"] == {}
        assert report["significant"] is False

        result = _ingest(runner, store_dir, second)
        assert result.exit_code == 0, result.output
        report = json.loads(result.stdout)
        assert report["changes"] == {"RN100": {"order.vin": {"old": None, "new": "5YJ3E1EA7PF000001"}}}
        assert report["significant"] is True
        assert report["significant_paths"] == {"RN100": ["order.vin"]}

    def test_insignificant_change(self, runner: CliRunner, tmp_path: Path) -> None:
        store_dir = tmp_path / "store"
        _ingest(runner, store_dir, _write(tmp_path / "a.json", make_order_snapshot()))

        result = _ingest(runner, store_dir, _write(tmp_path / "b.json", make_order_snapshot(mkt_options="MDLY")))
        report = json.loads(result.stdout)
        assert list(report["changes"]["RN100"]) == ["order.mktOptions"]
        assert report["significant"] is False

    def test_failed_entity_exits_non_zero(self, runner: CliRunner, tmp_path: Path) -> None:
        snapshots = _write(tmp_path / "orders.json", [make_order_snapshot(), {"order": {}}])

        result = _ingest(runner, tmp_path / "store", snapshots)

        assert result.exit_code == 1
        report = json.loads(result.stdout)
        assert report["failures"][0]["index"] == 1
        assert report["failures"][0]["error"].startswith("MissingEntityIdError")

    def test_invalid_json_file(self, runner: CliRunner, tmp_path: Path) -> None:
        bad = tmp_path / "bad.json"
        bad.write_text("{nope", encoding="utf-8")

        result = _ingest(runner, tmp_path / "store", bad)

        assert result.exit_code != 0
        assert "invalid JSON" in result.output


class TestHistoryCommands:
    def test_history_list_and_clear(self, runner: CliRunner, tmp_path: Path) -> None:
        store_dir = tmp_path / "store"
        _ingest(runner, store_dir, _write(tmp_path / "a.json", make_order_snapshot()))
        _ingest(runner, store_dir, _write(tmp_path / "b.json", make_order_snapshot(order_status="IN_TRANSIT")))

        result = runner.invoke(cli, ["--storage-dir", str(store_dir), "history", "RN100"])
        assert result.exit_code == 0, result.output
        entries = json.loads(result.stdout)
        assert [e["data"]["order"]["orderStatus"] for e in entries] == ["BOOKED", "IN_TRANSIT"]

        result = runner.invoke(cli, ["--storage-dir", str(store_dir), "list"])
        assert result.stdout.split() == ["RN100"]

        result = runner.invoke(cli, ["--storage-dir", str(store_dir), "clear", "RN100"])
        assert result.exit_code == 0, result.output

        result = runner.invoke(cli, ["--storage-dir", str(store_dir), "history", "RN100"])
        assert json.loads(result.stdout) == []
