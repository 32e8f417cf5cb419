"""Unit tests for component wiring, logging setup and error reporters."""

from __future__ import annotations

from pathlib import Path

import pytest
import structlog

from orderwatch.app import build_app, build_storage
from orderwatch.models.config import OrderWatchConfig, StorageConfig
from orderwatch.observability.errors import CollectingErrorReporter, LogErrorReporter, call_safely, report_safely
from orderwatch.observability.logging import get_logger, setup_logging
from orderwatch.storage import FileKeyValueStore, InMemoryKeyValueStore


class TestBuildStorage:
    def test_memory_backend(self) -> None:
        store = build_storage(StorageConfig(backend="memory", quota_bytes=10))
        assert isinstance(store, InMemoryKeyValueStore)

    def test_file_backend(self, tmp_path: Path) -> None:
        store = build_storage(StorageConfig(backend="file", directory=str(tmp_path)))
        assert isinstance(store, FileKeyValueStore)
        assert store.directory == tmp_path

    def test_unknown_backend(self) -> None:
        with pytest.raises(ValueError):
            build_storage(StorageConfig(backend="sqlite"))


class TestBuildApp:
    async def test_wired_pipeline_records_storage_warnings(self) -> None:
        config = OrderWatchConfig()
        config.storage = StorageConfig(backend="memory", quota_bytes=8)
        config.history.max_entries = 4
        app = build_app(config, reporter=CollectingErrorReporter())

        snapshot = {"order": {"referenceNumber": "RN1", "orderStatus": "BOOKED"}}
        assert await app.ingestor.ingest("RN1", snapshot) == {}

        assert app.ingestor.max_entries == 4
        assert app.storage_warnings == ["RN1"]

    def test_injected_storage_used(self) -> None:
        storage = InMemoryKeyValueStore()
        app = build_app(OrderWatchConfig(), storage=storage)
        assert app.storage is storage
        assert app.history.key_prefix == "tesla-order-history-"


class TestLogging:
    def test_setup_logging_emits_json(self, capsys: pytest.CaptureFixture[str]) -> None:
        try:
            setup_logging("debug", json_output=True)
            get_logger("test").info("hello", entity_id="RN1")
            err = capsys.readouterr().err
            assert '"event": "hello"' in err
            assert '"component": "test"' in err
        finally:
            structlog.reset_defaults()

    def test_level_filters(self, capsys: pytest.CaptureFixture[str]) -> None:
        try:
            setup_logging("warning")
            get_logger("test").info("quiet")
            assert capsys.readouterr().err == ""
        finally:
            structlog.reset_defaults()

    def test_console_renderer(self, capsys: pytest.CaptureFixture[str]) -> None:
        try:
            setup_logging("info", json_output=False)
            get_logger("test").info("hello")
            err = capsys.readouterr().err
            assert "hello" in err
            assert not err.lstrip().startswith("{")
        finally:
            structlog.reset_defaults()


class TestReporters:
    def test_log_reporter(self, log_output) -> None:
        LogErrorReporter().report(ValueError("bad"), {"entity_id": "RN1"})
        entry = log_output.entries[-1]
        assert entry["event"] == "error_reported"
        assert entry["error_type"] == "ValueError"
        assert entry["entity_id"] == "RN1"

    def test_report_safely_forwards_context(self) -> None:
        reporter = CollectingErrorReporter()
        report_safely(reporter, KeyError("x"), entity_id="RN1")
        assert reporter.errors_of(KeyError)
        assert reporter.reports[0][1] == {"entity_id": "RN1"}

    def test_call_safely_invokes_callback(self) -> None:
        seen: list[str] = []
        call_safely(seen.append, "RN1")
        assert seen == ["RN1"]

    def test_call_safely_swallows_and_logs(self, log_output) -> None:
        def explode(entity_id: str) -> None:
            raise RuntimeError(f"toast failed for {entity_id}")

        call_safely(explode, "RN1", entity_id="RN1")

        entry = log_output.entries[-1]
        assert entry["event"] == "callback_failed"
        assert entry["error_type"] == "RuntimeError"
        assert entry["entity_id"] == "RN1"
        assert entry["callback"].endswith("explode")
