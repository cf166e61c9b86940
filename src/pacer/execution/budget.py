"""Error budget -- aborts the batch after too many terminal failures.

Only terminal APPLICATION / TIMEOUT failures are counted.  Synthetic
STOPPED outcomes produced by the abort itself are never recorded here,
otherwise the abort would keep re-triggering itself.

Example::

    budget = ErrorBudget(limit=2)
    budget.record()   # False
    budget.record()   # True  -- first crossing, caller performs the abort
    budget.record()   # False -- already tripped
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class ErrorBudget:
    """Monotonic failure counter with a single-acquire trip guard.

    Attributes:
        limit: Failures allowed before the abort; ``None`` = unbounded
    """

    limit: int | None = None

    _count: int = field(default=0, init=False)
    _tripped: bool = field(default=False, init=False)

    @property
    def count(self) -> int:
        return self._count

    @property
    def tripped(self) -> bool:
        return self._tripped

    @property
    def remaining(self) -> int | None:
        if self.limit is None:
            return None
        return max(0, self.limit - self._count)

    def record(self) -> bool:
        """Count one terminal failure.

        Returns:
            True exactly once: for the failure that first reaches ``limit``.
        """
        self._count += 1
        if self.limit is None or self._tripped:
            return False
        if self._count >= self.limit:
            self._tripped = True
            return True
        return False
