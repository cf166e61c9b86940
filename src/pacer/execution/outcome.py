"""
Task outcomes -- the per-key Success / Failure envelope.

Every admitted work item ends with exactly one outcome, recorded once under
its key. Outcomes make per-item failure explicit so that one bad item never
fails the whole batch: callers inspect each outcome's tag instead of
catching exceptions.

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────┐
        │                     TaskOutcome[T]                           │
        ├──────────────────────────────┬──────────────────────────────┤
        │     Success[T]               │     Failure                  │
        ├──────────────────────────────┼──────────────────────────────┤
        │ • key, value, attempts       │ • key, error, kind, attempts │
        │ • unwrap() -> value          │ • unwrap() raises error      │
        └──────────────────────────────┴──────────────────────────────┘

        OutcomeKind: APPLICATION | TIMEOUT | STOPPED

Examples:
    >>> outcome = Success(key=0, value=42)
    >>> match outcome:
    ...     case Success(value=value):
    ...         print(value)
    ...     case Failure(error=error, kind=kind):
    ...         print(kind, error)
    42

Tags:
    result-pattern, outcome, batch-processing, pacer
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, TypeVar

from pacer.core.errors import PacerError

T = TypeVar("T")


class OutcomeKind(str, Enum):
    """Why a task failed."""

    APPLICATION = "application"  # Handler raised
    TIMEOUT = "timeout"          # Last attempt timed out
    STOPPED = "stopped"          # Immediate stop / abort intervened


@dataclass(frozen=True, slots=True)
class Success(Generic[T]):
    """Handler returned ``value`` for item ``key``."""

    key: int
    value: T
    attempts: int = 1

    def is_ok(self) -> bool:
        return True

    def is_err(self) -> bool:
        return False

    def unwrap(self) -> T:
        """Get the value. Safe for Success."""
        return self.value

    def unwrap_or(self, default: T) -> T:
        return self.value

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {"key": self.key, "ok": True, "value": self.value, "attempts": self.attempts}

    def __repr__(self) -> str:
        return f"Success(key={self.key}, value={self.value!r})"


@dataclass(frozen=True, slots=True)
class Failure:
    """
    Item ``key`` failed terminally.

    ``error`` is the handler's own exception for ``APPLICATION``, a
    :class:`~pacer.core.errors.TaskTimeoutError` for ``TIMEOUT`` and a
    :class:`~pacer.core.errors.StoppedError` for ``STOPPED``.
    ``attempts`` is 0 for items that were never started.
    """

    key: int
    error: BaseException
    kind: OutcomeKind = OutcomeKind.APPLICATION
    attempts: int = 1

    def is_ok(self) -> bool:
        return False

    def is_err(self) -> bool:
        return True

    @property
    def stopped(self) -> bool:
        return self.kind is OutcomeKind.STOPPED

    def unwrap(self) -> Any:
        """Raise the error. Use only when you're sure it's a Success."""
        raise self.error

    def unwrap_or(self, default: T) -> T:
        return default

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        if isinstance(self.error, PacerError):
            error: dict[str, Any] = self.error.to_dict()
        else:
            error = {"error_type": type(self.error).__name__, "message": str(self.error)}
        return {
            "key": self.key,
            "ok": False,
            "kind": self.kind.value,
            "error": error,
            "attempts": self.attempts,
        }

    def __repr__(self) -> str:
        return f"Failure(key={self.key}, kind={self.kind.value}, error={self.error!r})"


TaskOutcome = Success[T] | Failure


def partition_outcomes(
    outcomes: Iterable[TaskOutcome[T]],
) -> tuple[list[T], list[Failure]]:
    """
    Partition outcomes into successful values and failures.

    Example:
        >>> values, failures = partition_outcomes(
        ...     [Success(0, 1), Failure(1, ValueError("a")), Success(2, 2)]
        ... )
        >>> values
        [1, 2]
        >>> [f.key for f in failures]
        [1]
    """
    values: list[T] = []
    failures: list[Failure] = []
    for outcome in outcomes:
        match outcome:
            case Success(value=value):
                values.append(value)
            case Failure():
                failures.append(outcome)
    return values, failures


__all__ = [
    "OutcomeKind",
    "Success",
    "Failure",
    "TaskOutcome",
    "partition_outcomes",
]
