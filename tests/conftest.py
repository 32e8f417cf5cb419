"""Test-wide structlog capture.

Every test gets a fresh LogCapture as the only processor, so log calls
never reach stdout and tests can assert on emitted events.
"""

from __future__ import annotations

import pytest
import structlog
from structlog.testing import LogCapture


@pytest.fixture(name="log_output")
def fixture_log_output() -> LogCapture:
    return LogCapture()


@pytest.fixture(autouse=True)
def fixture_configure_structlog(log_output: LogCapture) -> None:
    structlog.configure(processors=[log_output], cache_logger_on_first_use=False)
