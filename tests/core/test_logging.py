"""Tests for pacer.core.logging -- structlog setup and context scoping."""

import asyncio
from enum import Enum

import pytest
import structlog

from pacer.core.logging import (
    LogContext,
    add_service,
    bind_context,
    clear_context,
    configure_from_settings,
    configure_logging,
    get_logger,
    render_enum_values,
    reset_context,
)
from pacer.core.settings import PacerSettings
from pacer.execution.outcome import OutcomeKind


def _processors():
    return structlog.get_config()["processors"]


class TestConfigureLogging:
    def test_json_renderer(self):
        configure_logging(level="DEBUG", json_format=True)
        assert isinstance(_processors()[-1], structlog.processors.JSONRenderer)
        assert structlog.processors.format_exc_info in _processors()

    def test_console_renderer(self):
        configure_logging(json_format=False)
        assert isinstance(_processors()[-1], structlog.dev.ConsoleRenderer)

    def test_context_is_merged_first(self):
        configure_logging(json_format=True)
        assert _processors()[0] is structlog.contextvars.merge_contextvars

    def test_timestamp_optional(self):
        configure_logging(json_format=True, add_timestamp=False)
        assert not any(isinstance(p, structlog.processors.TimeStamper) for p in _processors())

    def test_unknown_level_rejected(self):
        with pytest.raises(ValueError, match="unknown log level"):
            configure_logging(level="chatty")

    def test_from_settings(self):
        configure_from_settings(PacerSettings(log_format="json", log_level="warning"))
        assert isinstance(_processors()[-1], structlog.processors.JSONRenderer)


class TestProcessors:
    def test_service_name_from_configuration(self):
        configure_logging(json_format=True, service="crawler")
        assert add_service(None, "info", {"event": "x"})["service"] == "crawler"

    def test_service_does_not_override(self):
        event = add_service(None, "info", {"event": "x", "service": "mine"})
        assert event["service"] == "mine"

    def test_enum_values_rendered(self):
        class Color(Enum):
            RED = "red"

        event = render_enum_values(
            None, "info", {"event": "x", "kind": OutcomeKind.TIMEOUT, "color": Color.RED, "n": 1}
        )
        assert event == {"event": "x", "kind": "timeout", "color": "red", "n": 1}


class TestContext:
    def test_reset_restores_outer_binding(self):
        outer = bind_context(batch_id="b1")
        inner = bind_context(batch_id="b2", key=4)
        assert structlog.contextvars.get_contextvars() == {"batch_id": "b2", "key": 4}
        reset_context(inner)
        assert structlog.contextvars.get_contextvars() == {"batch_id": "b1"}
        reset_context(outer)
        assert structlog.contextvars.get_contextvars() == {}

    def test_clear_context(self):
        bind_context(batch_id="b1")
        clear_context()
        assert structlog.contextvars.get_contextvars() == {}

    def test_nested_log_context(self):
        with LogContext(batch_id="b2"):
            with LogContext(key=7):
                assert structlog.contextvars.get_contextvars() == {"batch_id": "b2", "key": 7}
            assert structlog.contextvars.get_contextvars() == {"batch_id": "b2"}
        assert structlog.contextvars.get_contextvars() == {}

    @pytest.mark.asyncio
    async def test_log_context_async_reaches_child_tasks(self):
        async def read():
            return structlog.contextvars.get_contextvars()

        async with LogContext(batch_id="b3"):
            seen = await asyncio.create_task(read())
        assert seen == {"batch_id": "b3"}
        assert structlog.contextvars.get_contextvars() == {}


def test_get_logger_emits_structured_events(log_events):
    get_logger("pacer.test").info("processor.start", items=3)
    assert log_events == [{"event": "processor.start", "items": 3, "log_level": "info"}]
