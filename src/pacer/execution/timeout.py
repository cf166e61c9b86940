"""Single-attempt race: handler vs. timeout vs. cancellation.

Manifesto:
    An attempt without a deadline can stall a worker slot forever.  The
    engine races every attempt against a timer and against the attempt's
    cancellation token, whichever settles first:

    - **Handler first:** its value (or exception) is the attempt result
    - **Timer first:** the token is cancelled with reason ``"timeout"`` and
      :class:`~pacer.core.errors.TaskTimeoutError` is raised
    - **Token first:** (immediate stop) :class:`~pacer.core.errors.StoppedError`

Guardrails:
    - Cancellation is cooperative.  A handler that ignores its token keeps
      running in the background after a timeout; the worker slot is freed
      but its resources are not.  Its eventual result or exception is
      consumed and dropped.
    - Cancelling the coroutine awaiting :func:`run_attempt` cancels the
      handler task as well and re-raises ``CancelledError``.

Architecture:
    ::

        asyncio.wait({handler_task, token.wait()}, timeout, FIRST_COMPLETED)
              │
              ├── handler_task done  → return / raise handler outcome
              │                        (cancelled task → HandlerCancelledError)
              ├── token cancelled    → StoppedError
              └── neither (timeout)  → token.cancel("timeout"); TaskTimeoutError
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from typing import Any, TypeVar

from pacer.core.errors import HandlerCancelledError, StoppedError, TaskTimeoutError
from pacer.core.logging import get_logger
from pacer.execution.cancellation import CancellationToken

T = TypeVar("T")

logger = get_logger(__name__)


def _discard_result(task: asyncio.Future[Any]) -> None:
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.debug("attempt.abandoned_error", error=repr(error))


async def run_attempt(
    awaitable: Awaitable[T],
    token: CancellationToken,
    timeout: float = 0.0,
    *,
    key: int | None = None,
    attempt: int | None = None,
) -> T:
    """Run one attempt, raced against ``timeout`` seconds and ``token``.

    Args:
        awaitable: The handler invocation.
        token: The attempt's cancellation token.
        timeout: Seconds; 0 or less disables the timer.
        key: Item key, for error context.
        attempt: Zero-based attempt number, for error context.

    Raises:
        TaskTimeoutError: The timer fired first.
        StoppedError: The token was cancelled first.
        Exception: Whatever the handler raised.
    """
    task = asyncio.ensure_future(awaitable)
    cancel_waiter = asyncio.ensure_future(token.wait())
    try:
        done, _ = await asyncio.wait(
            {task, cancel_waiter},
            timeout=timeout if timeout > 0 else None,
            return_when=asyncio.FIRST_COMPLETED,
        )
    except asyncio.CancelledError:
        task.cancel()
        raise
    finally:
        cancel_waiter.cancel()

    if task in done:
        if task.cancelled():
            # The handler's own task was cancelled, not this coroutine.
            if token.cancelled:
                raise StoppedError(key, token.reason or "cancelled")
            raise HandlerCancelledError(key, attempt=attempt)
        return task.result()

    task.add_done_callback(_discard_result)
    if token.cancelled:
        raise StoppedError(key, token.reason or "cancelled")

    token.cancel("timeout")
    raise TaskTimeoutError(timeout, key, attempt=attempt)
