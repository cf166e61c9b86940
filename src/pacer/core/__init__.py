"""Pacer Core -- logging, errors and settings shared by the engine.

Architecture::

    errors.py      Structured error hierarchy (PacerError, StoppedError ...)
    logging.py     structlog configuration, get_logger, LogContext
    settings.py    PacerSettings (PACER_* environment defaults)
"""

from pacer.core.errors import (
    BatchAbortedError,
    ConfigurationError,
    ErrorCategory,
    ErrorContext,
    HandlerCancelledError,
    PacerError,
    StoppedError,
    TaskTimeoutError,
    categorize_error,
)
from pacer.core.logging import LogContext, configure_logging, get_logger
from pacer.core.settings import PacerSettings, get_settings

__all__ = [
    "BatchAbortedError",
    "ConfigurationError",
    "ErrorCategory",
    "ErrorContext",
    "HandlerCancelledError",
    "PacerError",
    "StoppedError",
    "TaskTimeoutError",
    "categorize_error",
    "LogContext",
    "configure_logging",
    "get_logger",
    "PacerSettings",
    "get_settings",
]
