"""
Pacer Logging - structlog setup and per-batch log correlation.

Every engine module logs dot-namespaced events (``processor.start``,
``task.retry``, ``processor.aborted`` ...) through :func:`get_logger`.
While a batch runs, :class:`BatchProcessor.start` binds ``batch_id`` into
structlog's contextvars, and each item run binds ``key`` on top of it.
Worker tasks and ``to_thread`` handlers copy the context when they are
created, so anything a handler logs is correlated with its batch and item
without passing a logger around.

Architecture:
    ::

        configure_logging(level, json_format, service)
              │
              └── structlog.configure(processors=_build_processors(...))
                    1. merge_contextvars       batch_id / key from LogContext
                    2. add_log_level / add_logger_name
                    3. TimeStamper (optional)
                    4. add_service             service=<name>
                    5. render_enum_values      OutcomeKind.TIMEOUT → "timeout"
                    6. JSONRenderer | ConsoleRenderer

        LogContext(batch_id=..., key=...)
              bind on enter, reset the previous values on exit (token based,
              so nested scopes restore the outer binding)

Examples:
    >>> from pacer.core.logging import LogContext, configure_logging, get_logger
    >>> configure_logging(level="INFO", json_format=True)
    >>> with LogContext(batch_id="nightly-ingest"):
    ...     get_logger(__name__).info("processor.start", items=42)

Tags:
    logging, structlog, contextvars, pacer
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Mapping
from contextvars import Token
from enum import Enum
from typing import Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

_service = "pacer"


def add_service(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Stamp the configured service name unless the event already has one."""
    event_dict.setdefault("service", _service)
    return event_dict


def render_enum_values(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Replace enum members (outcome kinds, abort reasons) with their values."""
    for name, value in event_dict.items():
        if isinstance(value, Enum):
            event_dict[name] = value.value
    return event_dict


def _build_processors(json_format: bool, add_timestamp: bool) -> list[Processor]:
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
    ]
    if add_timestamp:
        processors.append(structlog.processors.TimeStamper(fmt="iso", utc=True))
    processors += [
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        add_service,
        render_enum_values,
    ]
    if json_format:
        processors += [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))
    return processors


def configure_logging(
    level: str = "INFO",
    json_format: bool | None = None,
    service: str = "pacer",
    add_timestamp: bool = True,
) -> None:
    """Configure structlog for the engine and its callers.

    Args:
        level: Minimum level (DEBUG, INFO, WARNING, ERROR)
        json_format: True for JSON lines, False for console, None to pick
            JSON whenever stdout is not a terminal
        service: Value of the ``service`` field on every event
        add_timestamp: Include a UTC ISO timestamp

    Example:
        configure_logging(level="DEBUG")                       # local run
        configure_logging(json_format=True, service="crawler")  # container
    """
    global _service
    _service = service

    if json_format is None:
        json_format = not sys.stdout.isatty()
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"unknown log level {level!r}")

    structlog.configure(
        processors=_build_processors(json_format, add_timestamp),
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        # Engine loggers are module globals; caching would pin them to the
        # first configuration.
        cache_logger_on_first_use=False,
    )
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=numeric_level)


def configure_from_settings(settings: Any) -> None:
    """Configure logging from a :class:`~pacer.core.settings.PacerSettings`."""
    fmt = settings.log_format.lower()
    configure_logging(
        level=settings.log_level,
        json_format=None if fmt == "auto" else fmt == "json",
    )


def get_logger(name: str | None = None) -> Any:
    """Return a structlog logger named ``name`` (usually ``__name__``)."""
    return structlog.get_logger(name)


def bind_context(**kwargs: Any) -> Mapping[str, Token[Any]]:
    """Bind ``kwargs`` into the logging context.

    Returns the tokens :func:`reset_context` needs to restore what was
    bound before.
    """
    return structlog.contextvars.bind_contextvars(**kwargs)


def reset_context(tokens: Mapping[str, Token[Any]]) -> None:
    structlog.contextvars.reset_contextvars(**tokens)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()


class LogContext:
    """Scoped logging context, sync or async.

    Example:
        async with LogContext(batch_id=processor.batch_id):
            await upload(manifest)
    """

    def __init__(self, **kwargs: Any):
        self._values = kwargs
        self._tokens: Mapping[str, Token[Any]] = {}

    def __enter__(self) -> LogContext:
        self._tokens = bind_context(**self._values)
        return self

    def __exit__(self, *exc_info: Any) -> None:
        reset_context(self._tokens)

    async def __aenter__(self) -> LogContext:
        return self.__enter__()

    async def __aexit__(self, *exc_info: Any) -> None:
        self.__exit__(*exc_info)


__all__ = [
    "configure_logging",
    "configure_from_settings",
    "get_logger",
    "add_service",
    "render_enum_values",
    "bind_context",
    "reset_context",
    "clear_context",
    "LogContext",
]
