"""Pause/resume gate -- parks every worker loop while the batch is paused.

Each pause opens a new *generation*: a fresh ``asyncio.Event`` that all
workers parking during that pause wait on.  ``resume()`` sets that event,
releasing every parked worker at once, so a worker that parks late in a
pause can never miss the wake-up.  Re-pausing creates a new generation;
workers released from the old one re-check and park again.

``close()`` is the terminal state used by an immediate stop: it releases
everyone and makes further pause/resume calls no-ops.
"""

from __future__ import annotations

import asyncio


class PauseGate:
    def __init__(self) -> None:
        self._paused = False
        self._closed = False
        self._generation = 0
        self._release = asyncio.Event()
        self._release.set()
        self._waiting = 0

    @property
    def paused(self) -> bool:
        return self._paused

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def generation(self) -> int:
        """Number of pauses so far."""
        return self._generation

    @property
    def waiting(self) -> int:
        """Workers currently parked."""
        return self._waiting

    def pause(self) -> bool:
        """Close the gate. True only on the running -> paused edge."""
        if self._paused or self._closed:
            return False
        self._paused = True
        self._generation += 1
        self._release = asyncio.Event()
        return True

    def resume(self) -> bool:
        """Open the gate. True only on the paused -> running edge."""
        if not self._paused or self._closed:
            return False
        self._paused = False
        self._release.set()
        return True

    def close(self) -> None:
        """Release all waiters permanently."""
        self._closed = True
        self._paused = False
        self._release.set()

    async def wait(self) -> None:
        """Block while paused. Returns immediately if open or closed."""
        while self._paused and not self._closed:
            release = self._release
            self._waiting += 1
            try:
                await release.wait()
            finally:
                self._waiting -= 1
