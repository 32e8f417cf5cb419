"""Error reporting sinks.

ErrorReporter         -- ABC every sink must implement.
LogErrorReporter      -- Default sink; emits a structured log event.
CollectingErrorReporter -- Keeps reports in memory (tests, CLI summaries).
report_safely         -- Fire-and-forget wrapper used by the pipeline; a
                         failing sink is logged and never propagates.
call_safely           -- Same guarantee for caller-supplied callbacks.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

import structlog

_log = structlog.get_logger(component="observability.errors")


class ErrorReporter(ABC):
    """Abstract sink for recoverable pipeline errors."""

    @abstractmethod
    def report(self, error: BaseException, context: Mapping[str, Any]) -> None:
        """Record *error* with its *context*. Must not block."""


class LogErrorReporter(ErrorReporter):
    """Reports errors as ``error_reported`` log events."""

    def report(self, error: BaseException, context: Mapping[str, Any]) -> None:
        _log.error(
            "error_reported",
            error_type=type(error).__name__,
            error=str(error),
            **dict(context),
        )


@dataclass
class CollectingErrorReporter(ErrorReporter):
    """Keeps every report as an ``(error, context)`` pair."""

    reports: list[tuple[BaseException, dict[str, Any]]] = field(default_factory=list)

    def report(self, error: BaseException, context: Mapping[str, Any]) -> None:
        self.reports.append((error, dict(context)))

    def errors_of(self, error_type: type[BaseException]) -> list[BaseException]:
        return [err for err, _ in self.reports if isinstance(err, error_type)]


def report_safely(reporter: ErrorReporter, error: BaseException, **context: Any) -> None:
    """Forward *error* to *reporter*, swallowing any failure of the sink itself."""
    try:
        reporter.report(error, context)
    except Exception as exc:  # noqa: BLE001
        _log.warning(
            "error_reporter_failed",
            reporter=type(reporter).__name__,
            original_error=str(error),
            error=str(exc),
        )


def call_safely(callback: Callable[..., Any], *args: Any, **context: Any) -> None:
    """Invoke *callback* with *args*; a raising callback is logged, not propagated."""
    try:
        callback(*args)
    except Exception as exc:  # noqa: BLE001
        _log.warning(
            "callback_failed",
            callback=getattr(callback, "__qualname__", type(callback).__name__),
            error_type=type(exc).__name__,
            error=str(exc),
            **context,
        )
