"""
Shared pytest fixtures and configuration for pacer tests.

This module provides:
- Automatic unit / integration markers by test location
- A hook recorder that captures every ProcessorHooks notification
- Settings cache isolation between tests
- structlog capture for asserting on log events

Usage:
    async def test_something(hook_recorder):
        processor = BatchProcessor(handler, items, hooks=hook_recorder.hooks())
        await processor.start()
        assert hook_recorder.count("on_start") == len(items)
"""

from __future__ import annotations

import time
from pathlib import Path
from typing import Any

import pytest
import structlog
from structlog.testing import capture_logs

from pacer.core.settings import clear_settings_cache
from pacer.execution.hooks import ProcessorHooks


# =============================================================================
# Test Markers Configuration
# =============================================================================


INTEGRATION_MODULES = {"test_processor.py", "test_streaming.py"}


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Auto-mark tests based on their location."""
    for item in items:
        test_path = Path(item.fspath)

        if test_path.name in INTEGRATION_MODULES:
            item.add_marker(pytest.mark.integration)

        markers = {mark.name for mark in item.iter_markers()}
        if not markers.intersection({"unit", "integration", "slow"}):
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Isolation Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def clean_settings():
    """Drop cached PacerSettings before and after each test."""
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture(autouse=True)
def reset_structlog():
    """Undo any configure_logging() a test performed."""
    yield
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()


@pytest.fixture
def log_events():
    """Capture structlog events as a list of dicts."""
    with capture_logs() as events:
        yield events


# =============================================================================
# Hook Recording
# =============================================================================


class HookRecorder:
    """Records (hook_name, args, monotonic_time) for every hook call."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, tuple[Any, ...], float]] = []

    def hooks(self, **overrides: Any) -> ProcessorHooks:
        callbacks = {name: self._recorder(name) for name in ProcessorHooks.names()}
        callbacks.update(overrides)
        return ProcessorHooks(**callbacks)

    def _recorder(self, name: str):
        def record(*args: Any) -> None:
            self.calls.append((name, args, time.monotonic()))

        return record

    def names(self) -> list[str]:
        return [name for name, _, _ in self.calls]

    def args_of(self, name: str) -> list[tuple[Any, ...]]:
        return [args for hook, args, _ in self.calls if hook == name]

    def times_of(self, name: str) -> list[float]:
        return [at for hook, _, at in self.calls if hook == name]

    def count(self, name: str) -> int:
        return len(self.args_of(name))


@pytest.fixture
def hook_recorder() -> HookRecorder:
    return HookRecorder()
