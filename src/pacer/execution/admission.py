"""Admission sequencer -- global, serialized "take next item + pace".

WHY
───
Inter-admission delay is a *global* pacing guarantee: with ``delay=1.0``
and ten workers the batch still starts at most one item per second.
Per-worker timers cannot give that, so every worker goes through one
critical section guarded by an ``asyncio.Lock`` (FIFO across waiters).

ARCHITECTURE
────────────
::

    worker ─┐
    worker ─┼─▶ AdmissionSequencer.admit_next()  [asyncio.Lock]
    worker ─┘       ├── stopped?           → EXHAUSTED
                    ├── source.pull()      → EMPTY / EXHAUSTED passthrough
                    ├── first admission    → no wait
                    ├── else wait (last_start + delay - now), interruptible
                    └── record last_start, return WorkItem

The wait is abandoned as soon as the stop event is set; the item pulled
for that admission is then left to the processor's stop bookkeeping.

Related modules:
    sources.py    -- what ``pull()`` returns
    processor.py  -- the only caller
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from typing import Any

from pacer.core.logging import get_logger
from pacer.execution.sources import EXHAUSTED, ItemSource, SourceSignal, WorkItem

logger = get_logger(__name__)


async def sleep_unless_stopped(seconds: float, stop_event: asyncio.Event) -> bool:
    """Sleep ``seconds`` unless ``stop_event`` fires first.

    Returns:
        True if the full sleep elapsed, False if interrupted by the stop event.
    """
    if stop_event.is_set():
        return False
    if seconds <= 0:
        return True
    try:
        await asyncio.wait_for(stop_event.wait(), timeout=seconds)
    except TimeoutError:
        return True
    return False


class AdmissionSequencer:
    """Serializes admissions across workers and enforces the global delay.

    Parameters
    ----------
    source : ItemSource
        Where items are pulled from.
    delay : float
        Minimum seconds between the starts of two consecutive admissions.
    stop_event : asyncio.Event
        Immediate-stop signal; interrupts the pacing wait.
    on_delay : callable, optional
        ``on_delay(item, seconds)`` fired before waiting.
    clock : callable
        Monotonic clock, injectable for tests.
    """

    def __init__(
        self,
        source: ItemSource,
        delay: float,
        stop_event: asyncio.Event,
        *,
        on_delay: Callable[[WorkItem, float], Any] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._source = source
        self._delay = delay
        self._stop_event = stop_event
        self._on_delay = on_delay
        self._clock = clock
        self._lock = asyncio.Lock()
        self._last_start: float | None = None
        self._admitted = 0

    @property
    def admitted(self) -> int:
        """Number of items admitted so far."""
        return self._admitted

    @property
    def last_start(self) -> float | None:
        return self._last_start

    async def admit_next(self) -> WorkItem | SourceSignal:
        """Admit the next item, or report EMPTY / EXHAUSTED.

        Pull exceptions propagate to the caller.
        """
        async with self._lock:
            if self._stop_event.is_set():
                return EXHAUSTED

            pulled = await self._source.pull()
            if not isinstance(pulled, WorkItem):
                return pulled
            if self._stop_event.is_set():
                return EXHAUSTED

            if self._last_start is not None and self._delay > 0:
                remaining = max(0.0, self._last_start + self._delay - self._clock())
                if self._on_delay is not None:
                    self._on_delay(pulled, remaining)
                if not await sleep_unless_stopped(remaining, self._stop_event):
                    logger.debug("admission.interrupted", key=pulled.key)
                    return EXHAUSTED

            self._last_start = self._clock()
            self._admitted += 1
            return pulled
