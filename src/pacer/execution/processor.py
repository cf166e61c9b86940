"""Batch processor -- bounded-concurrency engine over an item source.

WHY
───
Fan-out jobs (API downloads, LLM calls, per-record transforms) need more
than ``asyncio.gather`` with a semaphore: global pacing between starts,
per-attempt timeouts, retries, pause/resume, an immediate stop that
does not wait for stuck handlers, and an error budget that aborts the
whole batch when too much is failing.  ``BatchProcessor`` is that engine.

ARCHITECTURE
────────────
::

    BatchProcessor(handler, items | source, options, hooks)
      │
      ├── ItemSource            ListSource (bounded) / CallbackSource (streaming)
      ├── AdmissionSequencer    global "pull + pace" critical section
      ├── PauseGate             stop(False) / resume()
      ├── TaskRunner            retry + timeout + CancellationToken per attempt
      ├── ErrorBudget           max_total_errors → abort once
      └── CompletionSignal      settles exactly once → BatchResult

    Bounded mode: N worker loops
        wait-if-paused → admit → run → record → check budget → loop

    Streaming mode: one drive loop
        wait-if-paused → top up while running < concurrency
          EMPTY      → back off poll_interval
          EXHAUSTED  → stop pulling, drain in-flight tasks
          pull error → abort (PULL_ERROR)

    Abort (budget crossing, stop(True), pull error):
        immediate_stop = True → stop_event.set() → gate.close()
        → cancel every in-flight token → record STOPPED for unrecorded keys
        → settle(BatchResult(abort_reason=...))

All shared state is mutated on the event loop thread only, between
suspension points; the admission lock is the single serialization point.

Example::

    async def fetch(url, progress, token):
        async with session.get(url) as resp:
            return await resp.text()

    result = await BatchProcessor(fetch, urls, concurrency=8, delay=0.1,
                                  timeout=10, max_retries=2).start()
    for outcome in result.outcomes:
        ...
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from pacer.core.errors import ConfigurationError, StoppedError
from pacer.core.logging import LogContext, get_logger
from pacer.execution.admission import AdmissionSequencer
from pacer.execution.budget import ErrorBudget
from pacer.execution.cancellation import CancellationToken
from pacer.execution.completion import AbortReason, BatchResult, CompletionSignal, utcnow
from pacer.execution.gate import PauseGate
from pacer.execution.hooks import ProcessorHooks
from pacer.execution.options import ProcessorOptions
from pacer.execution.outcome import Failure, OutcomeKind, Success, TaskOutcome
from pacer.execution.retry import Handler, TaskRunner
from pacer.execution.sources import (
    EMPTY,
    EXHAUSTED,
    CallbackSource,
    ItemSource,
    ListSource,
    SourceSignal,
    WorkItem,
)

logger = get_logger(__name__)


@dataclass(frozen=True)
class ProcessorStats:
    """Point-in-time snapshot of a processor."""

    admitted: int
    running: int
    completed: int
    succeeded: int
    failed: int
    total_errors: int
    paused: bool
    immediate_stop: bool
    settled: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "admitted": self.admitted,
            "running": self.running,
            "completed": self.completed,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "total_errors": self.total_errors,
            "paused": self.paused,
            "immediate_stop": self.immediate_stop,
            "settled": self.settled,
        }


class BatchProcessor:
    """Runs work items through ``handler`` under bounded concurrency.

    Parameters
    ----------
    handler : callable
        ``handler(item, progress, token)`` -- async or sync.
    items : iterable, optional
        Finite collection for bounded mode. Materialized at construction.
    source : ItemSource, optional
        Pull-based source for streaming mode (or a custom bounded source).
    options : ProcessorOptions or mapping, optional
        Base options; keyword ``overrides`` are applied on top.
    hooks : ProcessorHooks, optional
        Notification callbacks.
    batch_id : str, optional
        Identifier bound into every log event. Random UUID by default.

    Raises
    ------
    ConfigurationError
        On invalid handler, items/source combination or options.
    """

    def __init__(
        self,
        handler: Handler,
        items: Iterable[Any] | None = None,
        *,
        source: ItemSource | None = None,
        options: ProcessorOptions | Mapping[str, Any] | None = None,
        hooks: ProcessorHooks | None = None,
        batch_id: str | None = None,
        **overrides: Any,
    ) -> None:
        if not callable(handler):
            raise ConfigurationError("handler must be callable")
        if (items is None) == (source is None):
            raise ConfigurationError("pass exactly one of items or source")
        if items is not None:
            if isinstance(items, (str, bytes, bytearray, Mapping)) or not isinstance(items, Iterable):
                raise ConfigurationError(
                    f"items must be a list or other finite iterable, got {type(items).__name__}"
                )
            source = ListSource(items)
        elif not isinstance(source, ItemSource):
            raise ConfigurationError(f"source must implement ItemSource, got {type(source).__name__}")
        if hooks is not None and not isinstance(hooks, ProcessorHooks):
            raise ConfigurationError("hooks must be a ProcessorHooks instance")

        self._options = ProcessorOptions.build(options, **overrides)
        self._hooks = hooks or ProcessorHooks()
        self._source: ItemSource = source
        self._batch_id = batch_id or str(uuid.uuid4())
        self._log = logger.bind(batch_id=self._batch_id)

        self._stop_event = asyncio.Event()
        self._gate = PauseGate()
        self._budget = ErrorBudget(self._options.max_total_errors)
        self._completion = CompletionSignal()
        self._tokens: dict[int, CancellationToken] = {}
        self._outcomes: dict[int, TaskOutcome] = {}
        self._tasks: set[asyncio.Task[None]] = set()
        self._runners: list[asyncio.Task[None]] = []

        self._running = 0
        self._immediate_stop = False
        self._started = False
        self._started_at = utcnow()

        self._sequencer = AdmissionSequencer(
            self._source,
            self._options.delay,
            self._stop_event,
            on_delay=self._notify_delay,
        )
        self._runner = TaskRunner(
            handler,
            self._options,
            self._hooks,
            self._stop_event,
            self._tokens,
            log=self._log,
        )

    @classmethod
    def from_pull(
        cls,
        handler: Handler,
        pull: Callable[[], Any],
        **kwargs: Any,
    ) -> BatchProcessor:
        """Streaming processor over ``pull() -> payload | EMPTY | EXHAUSTED``."""
        return cls(handler, source=CallbackSource(pull), **kwargs)

    # ── Inspection ───────────────────────────────────────────────────

    @property
    def batch_id(self) -> str:
        return self._batch_id

    @property
    def options(self) -> ProcessorOptions:
        return self._options

    @property
    def completion(self) -> CompletionSignal:
        """The settle-once completion signal (awaitable)."""
        return self._completion

    @property
    def paused(self) -> bool:
        return self._gate.paused

    @property
    def settled(self) -> bool:
        return self._completion.settled

    @property
    def immediate_stop(self) -> bool:
        return self._immediate_stop

    @property
    def running(self) -> int:
        return self._running

    @property
    def total_errors(self) -> int:
        return self._budget.count

    @property
    def stats(self) -> ProcessorStats:
        succeeded = sum(1 for o in self._outcomes.values() if isinstance(o, Success))
        return ProcessorStats(
            admitted=self._sequencer.admitted,
            running=self._running,
            completed=len(self._outcomes),
            succeeded=succeeded,
            failed=len(self._outcomes) - succeeded,
            total_errors=self._budget.count,
            paused=self._gate.paused,
            immediate_stop=self._immediate_stop,
            settled=self._completion.settled,
        )

    # ── Control ──────────────────────────────────────────────────────

    async def start(self) -> BatchResult:
        """Run the batch and return its settlement.

        Returns once the batch has settled, or once every worker is done,
        whichever comes first. Calling again (or after an immediate stop)
        returns the existing settlement without restarting.
        """
        if self._started or self._completion.settled:
            return await self._completion
        self._started = True
        self._started_at = utcnow()
        # Workers and spawned tasks copy this context when created.
        with LogContext(batch_id=self._batch_id):
            return await self._run()

    async def _run(self) -> BatchResult:
        bounded = self._source.bounded
        self._log.info(
            "processor.start",
            mode="bounded" if bounded else "streaming",
            items=self._source.key_count if bounded else None,
            concurrency=self._options.concurrency,
            delay=self._options.delay,
            timeout=self._options.timeout,
        )

        if bounded:
            self._runners = [
                asyncio.create_task(self._worker(i), name=f"pacer-worker-{i}")
                for i in range(self._options.concurrency)
            ]
        else:
            self._runners = [asyncio.create_task(self._drive(), name="pacer-stream")]

        finished = asyncio.gather(*self._runners)
        finished.add_done_callback(self._runners_done)
        settled = asyncio.ensure_future(self._completion.wait())
        try:
            await asyncio.wait({finished, settled}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            for runner in self._runners:
                runner.cancel()
            raise
        finally:
            if not settled.done():
                settled.cancel()

        if finished.done() and not finished.cancelled() and finished.exception() is not None:
            raise finished.exception()  # type: ignore[misc]

        if not self._completion.settled:
            self._settle()
        return self._completion.result()

    def stop(self, immediate: bool = False) -> None:
        """Pause the batch, or with ``immediate=True`` cancel everything and settle."""
        if immediate:
            self._abort(AbortReason.STOPPED)
            return
        if self._completion.settled or self._immediate_stop:
            return
        if self._gate.pause():
            self._log.info("processor.paused", running=self._running)
            self._hooks.fire("on_pause")

    def resume(self) -> None:
        """Reverse a graceful pause. No-op after settlement or an immediate stop."""
        if self._completion.settled or self._immediate_stop:
            return
        if self._gate.resume():
            self._log.info("processor.resumed", generation=self._gate.generation)
            self._hooks.fire("on_resume")

    # ── Scheduling ───────────────────────────────────────────────────

    async def _worker(self, worker_id: int) -> None:
        while not self._immediate_stop and not self._completion.settled:
            if self._gate.paused:
                await self._gate.wait()
                continue
            admitted = await self._admit()
            if not isinstance(admitted, WorkItem):
                break
            self._running += 1
            await self._execute(admitted)
        self._log.debug("processor.worker_done", worker=worker_id)

    async def _drive(self) -> None:
        concurrency = self._options.concurrency
        while not self._completion.settled:
            if self._gate.paused:
                await self._gate.wait()
                continue

            idle = False
            while (
                not self._source.exhausted
                and self._running < concurrency
                and not self._immediate_stop
                and not self._gate.paused
            ):
                admitted = await self._admit()
                if admitted is None:
                    return
                if admitted is EMPTY:
                    idle = True
                    break
                if admitted is EXHAUSTED:
                    break
                self._spawn(admitted)

            self._maybe_complete()
            if self._completion.settled:
                break
            await self._wait_for_progress(idle)

    async def _admit(self) -> WorkItem | SourceSignal | None:
        """Admit via the sequencer. None means the batch is aborting."""
        try:
            admitted = await self._sequencer.admit_next()
        except Exception as exc:
            self._pull_failed(exc)
            return None
        if self._immediate_stop:
            return None
        return admitted

    def _spawn(self, item: WorkItem) -> None:
        self._running += 1
        task = asyncio.create_task(self._execute(item), name=f"pacer-task-{item.key}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _wait_for_progress(self, idle: bool) -> None:
        pending: set[asyncio.Future[Any]] = set(self._tasks)
        timeout = self._options.poll_interval if idle or not pending else None
        stop_waiter = asyncio.ensure_future(self._stop_event.wait())
        try:
            await asyncio.wait(pending | {stop_waiter}, timeout=timeout, return_when=asyncio.FIRST_COMPLETED)
        finally:
            stop_waiter.cancel()

    async def _execute(self, item: WorkItem) -> None:
        """Run one admitted item. The caller has already claimed its slot."""
        if self._immediate_stop:
            self._running -= 1
            return
        self._hooks.fire("on_start", item.key, item.payload)
        try:
            with LogContext(key=item.key):
                outcome = await self._runner.run(item)
        finally:
            self._running -= 1
        self._record(outcome, item.payload)

    # ── Outcomes & settlement ────────────────────────────────────────

    def _record(self, outcome: TaskOutcome, payload: Any) -> None:
        if self._completion.settled or outcome.key in self._outcomes:
            return
        self._outcomes[outcome.key] = outcome

        if isinstance(outcome, Success):
            self._hooks.fire("on_finish", outcome.key, payload, outcome.value)
        else:
            self._hooks.fire("on_error", outcome.key, payload, outcome.error, outcome.kind)
            if outcome.kind is not OutcomeKind.STOPPED and self._budget.record():
                self._log.error(
                    "processor.budget_exceeded",
                    total_errors=self._budget.count,
                    limit=self._budget.limit,
                )
                self._hooks.fire("on_budget_exceeded", self._budget.count, self._budget.limit)
                self._abort(AbortReason.ERROR_BUDGET)
                return

        self._maybe_complete()

    def _maybe_complete(self) -> None:
        if (
            not self._completion.settled
            and self._running == 0
            and self._source.exhausted
            and len(self._outcomes) >= self._source.key_count
        ):
            self._settle()

    def _abort(self, reason: AbortReason, error: BaseException | None = None) -> bool:
        """Immediate stop. Only the first caller performs the transition."""
        if self._immediate_stop or self._completion.settled:
            return False
        self._immediate_stop = True
        self._stop_event.set()
        self._gate.close()
        for token in list(self._tokens.values()):
            token.cancel(reason.value)

        self._settle(reason, error)
        self._log.warning(
            "processor.aborted",
            reason=reason.value,
            running=self._running,
            total_errors=self._budget.count,
        )
        self._hooks.fire("on_stopped", reason)
        return True

    def _settle(self, reason: AbortReason | None = None, error: BaseException | None = None) -> None:
        if self._completion.settled:
            return
        if reason is not None and self._options.record_stopped:
            for key in range(self._source.key_count):
                if key not in self._outcomes:
                    self._outcomes[key] = Failure(
                        key, StoppedError(key, reason.value), OutcomeKind.STOPPED, 0
                    )

        result = BatchResult(
            batch_id=self._batch_id,
            outcomes=[self._outcomes[key] for key in sorted(self._outcomes)],
            started_at=self._started_at,
            completed_at=utcnow(),
            abort_reason=reason,
            error=error,
            total_errors=self._budget.count,
        )
        # Workers parked by a pause must see the settlement and exit.
        self._gate.close()
        if self._completion.settle(result) and reason is None:
            self._log.info(
                "processor.complete",
                succeeded=result.succeeded,
                failed=result.failed,
                duration_seconds=result.duration_seconds,
            )

    # ── Callbacks ────────────────────────────────────────────────────

    def _notify_delay(self, item: WorkItem, seconds: float) -> None:
        self._hooks.fire("on_delay", item.key, item.payload, seconds)

    def _pull_failed(self, error: Exception) -> None:
        self._log.error("source.pull_failed", error=repr(error))
        self._hooks.fire("on_pull_error", error)
        self._abort(AbortReason.PULL_ERROR, error)

    def _runners_done(self, future: asyncio.Future[Any]) -> None:
        if future.cancelled():
            return
        error = future.exception()
        if error is not None:
            self._log.error("processor.worker_crashed", error=repr(error))


async def process_items(
    handler: Handler,
    items: Iterable[Any],
    *,
    hooks: ProcessorHooks | None = None,
    **options: Any,
) -> BatchResult:
    """Run ``items`` through ``handler`` and return the batch result.

    Example::

        result = await process_items(resize, paths, concurrency=4, timeout=30)
    """
    return await BatchProcessor(handler, items, hooks=hooks, **options).start()


async def process_stream(
    handler: Handler,
    pull: Callable[[], Any] | ItemSource,
    *,
    hooks: ProcessorHooks | None = None,
    **options: Any,
) -> BatchResult:
    """Run a pull-based stream through ``handler`` until it is exhausted."""
    source = pull if isinstance(pull, ItemSource) else CallbackSource(pull)
    return await BatchProcessor(handler, source=source, hooks=hooks, **options).start()
