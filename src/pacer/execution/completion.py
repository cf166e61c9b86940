"""Completion signal and batch result.

WHY
───
A batch settles exactly once -- either normally with every outcome, or
with an abort reason and the partial outcomes so far.  Several workers
may race to settle (last task finishing vs. budget crossing vs. an
explicit stop); :class:`CompletionSignal` resolves that race with one
settle-guard and never fails for per-item errors.

ARCHITECTURE
────────────
::

    CompletionSignal
      ├── .settle(result)  ─ first call wins → True; later calls → False
      ├── .settled
      ├── .result()        ─ BatchResult (raises if not settled)
      └── await signal     ─ wait for settlement

    BatchResult
      ├── outcomes         ─ key-ordered TaskOutcome list
      ├── abort_reason     ─ None | ERROR_BUDGET | STOPPED | PULL_ERROR
      └── succeeded / failed / stopped / values / to_dict() / raise_for_abort()
"""

from __future__ import annotations

import asyncio
from collections.abc import Generator
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pacer.core.errors import BatchAbortedError
from pacer.execution.outcome import Failure, OutcomeKind, Success, TaskOutcome


class AbortReason(str, Enum):
    """Why a batch settled early."""

    ERROR_BUDGET = "error_budget"
    STOPPED = "stopped"
    PULL_ERROR = "pull_error"


@dataclass(frozen=True)
class BatchResult:
    """Aggregate result of one batch."""

    batch_id: str
    outcomes: list[TaskOutcome]
    started_at: datetime
    completed_at: datetime
    abort_reason: AbortReason | None = None
    error: BaseException | None = None
    total_errors: int = 0

    @property
    def aborted(self) -> bool:
        return self.abort_reason is not None

    @property
    def total(self) -> int:
        return len(self.outcomes)

    @property
    def succeeded(self) -> int:
        """Number of items that completed successfully."""
        return sum(1 for o in self.outcomes if isinstance(o, Success))

    @property
    def failed(self) -> int:
        """Number of items that failed, excluding stopped items."""
        return sum(
            1 for o in self.outcomes if isinstance(o, Failure) and o.kind is not OutcomeKind.STOPPED
        )

    @property
    def stopped(self) -> int:
        return sum(
            1 for o in self.outcomes if isinstance(o, Failure) and o.kind is OutcomeKind.STOPPED
        )

    @property
    def values(self) -> list[Any]:
        """Successful values in key order."""
        return [o.value for o in self.outcomes if isinstance(o, Success)]

    @property
    def failures(self) -> list[Failure]:
        return [o for o in self.outcomes if isinstance(o, Failure)]

    @property
    def duration_seconds(self) -> float:
        """Wall-clock duration of the entire batch."""
        return (self.completed_at - self.started_at).total_seconds()

    def raise_for_abort(self) -> BatchResult:
        """Raise :class:`BatchAbortedError` if the batch aborted, else return self."""
        if self.abort_reason is not None:
            raise BatchAbortedError(self.abort_reason.value, self, cause=self.error)
        return self

    def to_dict(self) -> dict[str, Any]:
        """Serialise for logging / API responses."""
        return {
            "batch_id": self.batch_id,
            "total": self.total,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "stopped": self.stopped,
            "total_errors": self.total_errors,
            "abort_reason": self.abort_reason.value if self.abort_reason else None,
            "error": str(self.error) if self.error is not None else None,
            "duration_seconds": self.duration_seconds,
            "outcomes": [o.to_dict() for o in self.outcomes],
        }


@dataclass
class CompletionSignal:
    """Settle-once future over the whole batch."""

    _result: BatchResult | None = field(default=None, init=False)
    _event: asyncio.Event = field(default_factory=asyncio.Event, init=False)

    @property
    def settled(self) -> bool:
        return self._result is not None

    def settle(self, result: BatchResult) -> bool:
        """Settle with ``result``. Only the first call has any effect."""
        if self._result is not None:
            return False
        self._result = result
        self._event.set()
        return True

    def result(self) -> BatchResult:
        if self._result is None:
            raise RuntimeError("batch has not settled")
        return self._result

    async def wait(self) -> BatchResult:
        await self._event.wait()
        return self.result()

    def __await__(self) -> Generator[Any, None, BatchResult]:
        return self.wait().__await__()


def utcnow() -> datetime:
    """Return timezone-aware UTC datetime."""
    return datetime.now(UTC)
