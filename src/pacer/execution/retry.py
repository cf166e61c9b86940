"""Retry/timeout wrapper -- runs one work item to a terminal outcome.

Attempts are numbered ``0..max_retries`` inclusive, so ``max_retries=0``
means exactly one attempt.  ``max_retries`` is either a fixed number or a
per-item policy ``policy(item, key) -> int`` evaluated once per item.

Flow per item::

    for attempt in 0..max_retries:
        stopped?                         → Failure(StoppedError, STOPPED)
        attempt > 0: wait retry_delay    (interruptible by immediate stop)
        new CancellationToken            (registered for bulk cancel)
        run_attempt(handler, token, timeout)
            value                        → Success
            TaskTimeoutError             → kind TIMEOUT, on_timeout
            StoppedError                 → Failure(STOPPED)
            Exception                    → kind APPLICATION
        stopped?                         → Failure(STOPPED)
        more attempts left               → on_retry(attempt + 1)
    → Failure(last_error, kind)

Related modules:
    timeout.py       -- the single-attempt race
    cancellation.py  -- CancellationToken
    processor.py     -- records the outcome
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Callable
from typing import Any

from pacer.core.errors import StoppedError, TaskTimeoutError
from pacer.core.logging import get_logger
from pacer.execution.admission import sleep_unless_stopped
from pacer.execution.cancellation import CancellationToken
from pacer.execution.hooks import ProcessorHooks
from pacer.execution.options import ProcessorOptions
from pacer.execution.outcome import Failure, OutcomeKind, Success, TaskOutcome
from pacer.execution.sources import WorkItem
from pacer.execution.timeout import run_attempt

logger = get_logger(__name__)

Handler = Callable[[Any, Callable[[Any], None], CancellationToken], Any]


def _is_async_callable(handler: Any) -> bool:
    if inspect.iscoroutinefunction(handler):
        return True
    call = getattr(handler, "__call__", None)
    return inspect.iscoroutinefunction(call)


class TaskRunner:
    """Executes work items with retry, timeout and cooperative cancellation.

    Parameters
    ----------
    handler : callable
        ``handler(item, progress, token)``.  Coroutine functions run on the
        loop; plain callables run in a worker thread.
    options : ProcessorOptions
        Supplies ``timeout``, ``retry_delay`` and ``max_retries``.
    hooks : ProcessorHooks
        Receives ``on_retry``, ``on_timeout`` and ``on_progress``.
    stop_event : asyncio.Event
        Immediate-stop signal shared with the processor.
    tokens : dict
        In-flight tokens by key; the processor cancels them in bulk.
    """

    def __init__(
        self,
        handler: Handler,
        options: ProcessorOptions,
        hooks: ProcessorHooks,
        stop_event: asyncio.Event,
        tokens: dict[int, CancellationToken],
        *,
        log: Any = None,
    ) -> None:
        self._handler = handler
        self._is_async = _is_async_callable(handler)
        self._options = options
        self._hooks = hooks
        self._stop_event = stop_event
        self._tokens = tokens
        self._log = log or logger

    def _stopped(self, item: WorkItem, attempts: int, cause: BaseException | None = None) -> Failure:
        return Failure(item.key, StoppedError(item.key, "stopped", cause=cause), OutcomeKind.STOPPED, attempts)

    def _progress_for(self, item: WorkItem) -> Callable[[Any], None]:
        def progress(value: Any) -> None:
            self._hooks.fire("on_progress", item.key, item.payload, value)

        return progress

    def _threadsafe_progress_for(self, item: WorkItem) -> Callable[[Any], None]:
        # Sync handlers report from a worker thread; hooks run on the loop.
        loop = asyncio.get_running_loop()

        def progress(value: Any) -> None:
            loop.call_soon_threadsafe(self._hooks.fire, "on_progress", item.key, item.payload, value)

        return progress

    async def _invoke(self, item: WorkItem, token: CancellationToken) -> Any:
        if self._is_async:
            return await self._handler(item.payload, self._progress_for(item), token)
        progress = self._threadsafe_progress_for(item)
        result = await asyncio.to_thread(self._handler, item.payload, progress, token)
        if inspect.isawaitable(result):
            result = await result
        return result

    async def run(self, item: WorkItem) -> TaskOutcome:
        """Run ``item`` to a terminal outcome. Never raises for handler errors."""
        try:
            max_retries = self._options.resolve_max_retries(item.payload, item.key)
        except Exception as exc:
            self._log.warning("task.retry_policy_failed", key=item.key, error=repr(exc))
            return Failure(item.key, exc, OutcomeKind.APPLICATION, 0)

        last_error: BaseException | None = None
        kind = OutcomeKind.APPLICATION
        attempts = 0

        for attempt in range(max_retries + 1):
            if self._stop_event.is_set():
                return self._stopped(item, attempts, last_error)

            if attempt > 0 and self._options.retry_delay > 0:
                if not await sleep_unless_stopped(self._options.retry_delay, self._stop_event):
                    return self._stopped(item, attempts, last_error)

            token = CancellationToken(item.key)
            self._tokens[item.key] = token
            attempts += 1
            try:
                value = await run_attempt(
                    self._invoke(item, token),
                    token,
                    self._options.timeout,
                    key=item.key,
                    attempt=attempt,
                )
                return Success(item.key, value, attempts)
            except TaskTimeoutError as exc:
                last_error, kind = exc, OutcomeKind.TIMEOUT
                self._log.warning("task.timeout", key=item.key, attempt=attempt, timeout=exc.timeout)
                self._hooks.fire("on_timeout", item.key, item.payload, exc)
            except StoppedError as exc:
                if token.cancelled:
                    return Failure(item.key, exc, OutcomeKind.STOPPED, attempts)
                last_error, kind = exc, OutcomeKind.APPLICATION
            except Exception as exc:
                last_error, kind = exc, OutcomeKind.APPLICATION
            finally:
                if self._tokens.get(item.key) is token:
                    del self._tokens[item.key]

            if self._stop_event.is_set():
                return self._stopped(item, attempts, last_error)

            if attempt < max_retries:
                self._log.debug("task.retry", key=item.key, attempt=attempt + 1, error=repr(last_error))
                self._hooks.fire("on_retry", item.key, item.payload, attempt + 1, last_error)

        if last_error is None:
            raise RuntimeError(f"retry loop for key {item.key} ended without running an attempt")
        self._log.info("task.failed", key=item.key, kind=kind.value, attempts=attempts, error=repr(last_error))
        return Failure(item.key, last_error, kind, attempts)
