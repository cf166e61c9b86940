"""
Structured error types for the Pacer batch engine.

Provides a small hierarchy of typed errors carrying enough metadata
(category, item key, batch id) to log and report per-item failures and
whole-batch aborts without losing context.

Manifesto:
    - **Typed Error Hierarchy:** Configuration, timeout, stop and abort
      errors are distinct types callers can catch selectively
    - **Per-item failures stay local:** Only ``ConfigurationError`` is ever
      raised out of the engine; everything else is recorded in results
    - **Rich Context:** Errors carry metadata for logging and alerting
    - **Error Chaining:** Preserve original exceptions while adding context

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────────┐
        │                       PacerError                                 │
        │  (category, context, cause)                                      │
        ├─────────────────────────────────────────────────────────────────┤
        │                                                                  │
        │  ConfigurationError   TaskTimeoutError   StoppedError            │
        │  (CONFIG, ValueError) (TIMEOUT,          (STOPPED)               │
        │                        TimeoutError)                             │
        │                                                                  │
        │  BatchAbortedError                                               │
        │  (ABORTED)                                                       │
        └─────────────────────────────────────────────────────────────────┘

    Handler failures are NOT wrapped: the handler's own exception is kept
    and classified as ``OutcomeKind.APPLICATION``.

Examples:
    >>> error = StoppedError(key=3, reason="error_budget")
    >>> error.category
    <ErrorCategory.STOPPED: 'STOPPED'>
    >>> error.to_dict()["context"]
    {'key': 3, 'reason': 'error_budget'}

Tags:
    error-handling, exception-hierarchy, error-context, pacer
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories for classification and routing."""

    CONFIG = "CONFIG"              # Invalid construction input
    APPLICATION = "APPLICATION"    # Handler raised
    TIMEOUT = "TIMEOUT"            # Attempt exceeded its timeout
    STOPPED = "STOPPED"            # Cancelled by an immediate stop / abort
    ABORTED = "ABORTED"            # Whole batch aborted
    INTERNAL = "INTERNAL"          # Bugs, unexpected state


@dataclass
class ErrorContext:
    """
    Structured metadata context for errors.

    Attributes:
        batch_id: Processor batch identifier
        key: Work item key the error belongs to
        attempt: Zero-based attempt number, if the error came from an attempt
        reason: Abort/stop reason, if any
        metadata: Additional key-value pairs
    """

    batch_id: str | None = None
    key: int | None = None
    attempt: int | None = None
    reason: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result: dict[str, Any] = {}
        for name in ("batch_id", "key", "attempt", "reason"):
            value = getattr(self, name)
            if value is not None:
                result[name] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class PacerError(Exception):
    """
    Base exception for all Pacer errors.

    Every PacerError carries a ``category``, an :class:`ErrorContext` and an
    optional ``cause``. Subclasses set ``default_category``.
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        context: ErrorContext | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> PacerError:
        """
        Add context to this error (fluent API).

        Usage:
            raise PacerError("bad state").with_context(batch_id=batch_id, key=4)
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


class ConfigurationError(PacerError, ValueError):
    """Invalid constructor input. Raised synchronously, before any work starts."""

    default_category = ErrorCategory.CONFIG


class TaskTimeoutError(PacerError, TimeoutError):
    """
    A single attempt did not complete within its timeout.

    Inherits from built-in TimeoutError for broad exception handling.

    Attributes:
        timeout: The timeout value (seconds) that was exceeded
        key: Work item key
    """

    default_category = ErrorCategory.TIMEOUT

    def __init__(self, timeout: float, key: int | None = None, *, attempt: int | None = None):
        self.timeout = timeout
        self.key = key
        super().__init__(
            f"Task {key} timed out after {timeout}s",
            context=ErrorContext(key=key, attempt=attempt),
        )


class StoppedError(PacerError):
    """The item was cancelled or never started because the batch stopped."""

    default_category = ErrorCategory.STOPPED

    def __init__(
        self,
        key: int | None = None,
        reason: str = "stopped",
        *,
        cause: BaseException | None = None,
    ):
        self.key = key
        self.reason = reason
        super().__init__(
            f"Task {key} stopped ({reason})",
            context=ErrorContext(key=key, reason=reason),
            cause=cause,
        )


class HandlerCancelledError(PacerError):
    """The handler's own task ended cancelled while the batch was still running.

    Recorded as an APPLICATION failure for that attempt; it never reaches
    the caller of ``start()``.
    """

    default_category = ErrorCategory.APPLICATION

    def __init__(self, key: int | None = None, *, attempt: int | None = None):
        self.key = key
        super().__init__(
            f"Task {key} handler was cancelled",
            context=ErrorContext(key=key, attempt=attempt),
        )


class BatchAbortedError(PacerError):
    """
    The batch settled with an abort reason.

    Only raised by :meth:`~pacer.execution.completion.BatchResult.raise_for_abort`;
    the engine itself never fails the completion signal.
    """

    default_category = ErrorCategory.ABORTED

    def __init__(self, reason: str, result: Any = None, *, cause: BaseException | None = None):
        self.reason = reason
        self.result = result
        super().__init__(
            f"Batch aborted: {reason}",
            context=ErrorContext(reason=reason),
            cause=cause,
        )


def categorize_error(error: BaseException) -> ErrorCategory:
    """Return the category of ``error``; non-Pacer errors are APPLICATION."""
    if isinstance(error, PacerError):
        return error.category
    return ErrorCategory.APPLICATION


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "PacerError",
    "ConfigurationError",
    "TaskTimeoutError",
    "StoppedError",
    "HandlerCancelledError",
    "BatchAbortedError",
    "categorize_error",
]
