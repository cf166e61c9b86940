"""Cancellation tokens -- cooperative cancellation for one task attempt.

WHY
───
A handler that is timed out or caught in an immediate stop cannot be
killed safely (it may hold sockets, transactions, temp files).  Instead
each attempt gets a :class:`CancellationToken`; the engine *requests*
cancellation and the handler observes it when it can.

ARCHITECTURE
────────────
::

    CancellationToken
      ├── .cancel(reason)        ─ first call wins, fires callbacks
      ├── .cancelled / .reason   ─ poll (safe from handler threads)
      ├── .wait()                ─ await until cancelled
      ├── .raise_if_cancelled()  ─ raise StoppedError if cancelled
      └── .add_callback(fn)      ─ subscribe (fires immediately if late)

    One token per attempt.  The processor keeps in-flight tokens by key
    only so an immediate stop can call ``cancel()`` on all of them.

Example::

    async def handler(item, progress, token):
        for chunk in item.chunks:
            token.raise_if_cancelled()
            await upload(chunk)
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable

from pacer.core.errors import StoppedError
from pacer.core.logging import get_logger

logger = get_logger(__name__)


class CancellationToken:
    """Cancellation flag plus broadcast for a single task attempt.

    ``cancel()`` and ``wait()`` must be used from the event loop thread.
    ``cancelled`` is a plain attribute read and may be polled from a worker
    thread running a synchronous handler.
    """

    __slots__ = ("_event", "_reason", "_callbacks", "key")

    def __init__(self, key: int | None = None) -> None:
        self.key = key
        self._event = asyncio.Event()
        self._reason: str | None = None
        self._callbacks: list[Callable[[str], object]] = []

    @property
    def cancelled(self) -> bool:
        return self._reason is not None

    @property
    def reason(self) -> str | None:
        return self._reason

    def cancel(self, reason: str = "cancelled") -> bool:
        """Request cancellation.

        Returns:
            True on the first call, False if already cancelled.
        """
        if self._reason is not None:
            return False
        self._reason = reason
        self._event.set()
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            try:
                callback(reason)
            except Exception:
                logger.exception("cancellation.callback_failed", key=self.key, reason=reason)
        return True

    async def wait(self) -> str:
        """Block until cancelled; return the reason."""
        await self._event.wait()
        return self._reason or "cancelled"

    def raise_if_cancelled(self) -> None:
        if self._reason is not None:
            raise StoppedError(self.key, self._reason)

    def add_callback(self, callback: Callable[[str], object]) -> None:
        """Call ``callback(reason)`` on cancellation (immediately if already cancelled)."""
        if self._reason is not None:
            callback(self._reason)
        else:
            self._callbacks.append(callback)

    def __repr__(self) -> str:
        state = f"cancelled={self._reason!r}" if self._reason else "active"
        return f"CancellationToken(key={self.key}, {state})"
