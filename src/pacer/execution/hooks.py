"""Notification hooks -- fire-and-forget callbacks observed by the caller.

Every hook is optional.  Hooks may be plain functions or coroutine
functions; coroutines are scheduled as tasks and not awaited.  A hook that
raises is logged (``hook.failed``) and never affects the batch.

Hook signatures::

    on_start(key, item)
    on_finish(key, item, value)
    on_error(key, item, error, kind)
    on_retry(key, item, attempt, error)     # attempt: 1-based retry number
    on_timeout(key, item, error)
    on_delay(key, item, seconds)
    on_progress(key, item, value)
    on_pause()
    on_resume()
    on_stopped(reason)
    on_budget_exceeded(total_errors, limit)
    on_pull_error(error)
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Callable
from dataclasses import dataclass, field, fields
from typing import Any

from pacer.core.logging import get_logger

logger = get_logger(__name__)

Hook = Callable[..., Any]


@dataclass
class ProcessorHooks:
    """Optional notification callbacks for a :class:`BatchProcessor`."""

    on_start: Hook | None = None
    on_finish: Hook | None = None
    on_error: Hook | None = None
    on_retry: Hook | None = None
    on_timeout: Hook | None = None
    on_delay: Hook | None = None
    on_progress: Hook | None = None
    on_pause: Hook | None = None
    on_resume: Hook | None = None
    on_stopped: Hook | None = None
    on_budget_exceeded: Hook | None = None
    on_pull_error: Hook | None = None

    _pending: set[asyncio.Task[Any]] = field(default_factory=set, init=False, repr=False)

    @classmethod
    def names(cls) -> list[str]:
        return [f.name for f in fields(cls) if f.name.startswith("on_")]

    def fire(self, name: str, *args: Any) -> None:
        """Invoke hook ``name`` if set. Never raises."""
        callback = getattr(self, name)
        if callback is None:
            return
        result = None
        try:
            result = callback(*args)
            if inspect.isawaitable(result):
                task = asyncio.ensure_future(result, loop=asyncio.get_running_loop())
                self._pending.add(task)
                task.add_done_callback(lambda t, hook=name: self._hook_done(hook, t))
        except Exception:
            logger.exception("hook.failed", hook=name)
            if inspect.iscoroutine(result):
                result.close()

    def _hook_done(self, name: str, task: asyncio.Task[Any]) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error("hook.failed", hook=name, error=repr(error))

    async def drain(self) -> None:
        """Wait for any still-running async hooks."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


def logging_hooks(logger: Any | None = None) -> ProcessorHooks:
    """Hooks that write every notification through structlog.

    Example::

        processor = BatchProcessor(handler, items, hooks=logging_hooks())
    """
    log = logger or get_logger("pacer.hooks")

    return ProcessorHooks(
        on_start=lambda key, item: log.debug("task.start", key=key),
        on_finish=lambda key, item, value: log.debug("task.finish", key=key),
        on_error=lambda key, item, error, kind: log.warning(
            "task.error", key=key, kind=kind.value, error=repr(error)
        ),
        on_retry=lambda key, item, attempt, error: log.info(
            "task.retry", key=key, attempt=attempt, error=repr(error)
        ),
        on_timeout=lambda key, item, error: log.warning("task.timeout", key=key, error=str(error)),
        on_delay=lambda key, item, seconds: log.debug("task.delay", key=key, seconds=seconds),
        on_progress=lambda key, item, value: log.debug("task.progress", key=key, progress=value),
        on_pause=lambda: log.info("batch.paused"),
        on_resume=lambda: log.info("batch.resumed"),
        on_stopped=lambda reason: log.warning("batch.stopped", reason=reason.value),
        on_budget_exceeded=lambda total, limit: log.error(
            "batch.budget_exceeded", total_errors=total, limit=limit
        ),
        on_pull_error=lambda error: log.error("batch.pull_error", error=repr(error)),
    )
