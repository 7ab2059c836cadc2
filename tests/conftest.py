"""Shared test configuration for the calendarbot_recurrence test suite."""

import logging
from typing import Any

import pytest


@pytest.fixture(autouse=True)
def quiet_root_logger() -> Any:
    """Restore root logger handlers and level changed by logging tests."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


def pytest_configure(config: Any) -> None:
    """Configure pytest with the suite's markers."""
    config.addinivalue_line("markers", "unit: Fast unit tests")
    config.addinivalue_line("markers", "critical_path: Core functionality tests")
    config.addinivalue_line("markers", "smoke: Basic smoke tests")
