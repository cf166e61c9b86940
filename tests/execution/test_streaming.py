"""Tests for BatchProcessor in streaming (pull) mode."""

from __future__ import annotations

import asyncio

import pytest

from pacer.execution.completion import AbortReason
from pacer.execution.outcome import OutcomeKind
from pacer.execution.processor import BatchProcessor, process_stream
from pacer.execution.sources import EMPTY, EXHAUSTED, CallbackSource, IteratorSource


# ── Helpers ──────────────────────────────────────────────────────────────


class Script:
    """Pull function replaying a fixed script; raises exceptions it finds."""

    def __init__(self, *steps):
        self.steps = list(steps)
        self.pulls = 0

    def __call__(self):
        self.pulls += 1
        step = self.steps.pop(0) if self.steps else EXHAUSTED
        if isinstance(step, BaseException):
            raise step
        return step


async def _double(item, progress, token):
    return item * 2


async def _cooperative(item, progress, token):
    await token.wait()
    return item


# ── Draining a stream ────────────────────────────────────────────────────


class TestStreamDrain:
    @pytest.mark.asyncio
    async def test_pulls_until_exhausted(self):
        result = await process_stream(_double, Script(1, 2, 3), concurrency=2)
        assert result.values == [2, 4, 6]
        assert [o.key for o in result.outcomes] == [0, 1, 2]
        assert not result.aborted

    @pytest.mark.asyncio
    async def test_immediately_exhausted(self):
        result = await process_stream(_double, Script())
        assert result.outcomes == []
        assert not result.aborted

    @pytest.mark.asyncio
    async def test_empty_backs_off_then_continues(self):
        pull = Script(1, EMPTY, EMPTY, 2)
        loop = asyncio.get_running_loop()
        t0 = loop.time()
        result = await process_stream(_double, pull, poll_interval=0.02)
        assert result.values == [2, 4]
        assert loop.time() - t0 >= 0.03

    @pytest.mark.asyncio
    async def test_exhausted_not_pulled_again(self):
        pull = Script(1)
        await process_stream(_double, pull)
        assert pull.pulls == 2

    @pytest.mark.asyncio
    async def test_async_pull_function(self):
        values = [10, 20]

        async def pull():
            await asyncio.sleep(0)
            return values.pop(0) if values else EXHAUSTED

        result = await BatchProcessor.from_pull(_double, pull).start()
        assert result.values == [20, 40]

    @pytest.mark.asyncio
    async def test_iterator_source(self):
        result = await process_stream(_double, IteratorSource(range(4)), concurrency=4)
        assert result.values == [0, 2, 4, 6]

    @pytest.mark.asyncio
    async def test_failures_are_per_item(self):
        async def handler(item, progress, token):
            if item == "bad":
                raise ValueError(item)
            return item

        result = await process_stream(handler, Script("a", "bad", "c"), concurrency=3)
        assert [o.is_ok() for o in result.outcomes] == [True, False, True]
        assert result.total_errors == 1


# ── Scheduling ───────────────────────────────────────────────────────────


class TestStreamScheduling:
    @pytest.mark.asyncio
    async def test_concurrency_is_bounded(self):
        running = 0
        peak = 0

        async def handler(item, progress, token):
            nonlocal running, peak
            running += 1
            peak = max(peak, running)
            await asyncio.sleep(0.01)
            running -= 1
            return item

        result = await process_stream(handler, Script(*range(8)), concurrency=2)
        assert result.succeeded == 8
        assert peak == 2

    @pytest.mark.asyncio
    async def test_delay_between_admissions(self, hook_recorder):
        await process_stream(
            _double, Script(1, 2, 3), concurrency=3, delay=0.04, hooks=hook_recorder.hooks()
        )
        starts = hook_recorder.times_of("on_start")
        assert len(starts) == 3
        assert all(b - a >= 0.03 for a, b in zip(starts, starts[1:]))

    @pytest.mark.asyncio
    async def test_pause_and_resume(self, hook_recorder):
        processor = BatchProcessor(
            _double, source=CallbackSource(Script(1, 2, 3)), hooks=hook_recorder.hooks()
        )
        processor.stop()
        run = asyncio.create_task(processor.start())
        await asyncio.sleep(0.02)
        assert hook_recorder.count("on_start") == 0

        processor.resume()
        result = await asyncio.wait_for(run, 1.0)
        assert result.values == [2, 4, 6]

    @pytest.mark.asyncio
    async def test_settling_while_paused_ends_drive_loop(self):
        async def staggered(item, progress, token):
            await asyncio.sleep(item * 0.03)
            return item

        processor = BatchProcessor(
            staggered, source=CallbackSource(Script(1, 2)), concurrency=3
        )
        run = asyncio.create_task(processor.start())
        await asyncio.sleep(0.01)
        processor.stop()

        result = await asyncio.wait_for(run, 1.0)
        await asyncio.sleep(0.01)
        assert result.values == [1, 2]
        assert not result.aborted
        lingering = [
            t.get_name() for t in asyncio.all_tasks()
            if t.get_name().startswith("pacer-") and not t.done()
        ]
        assert lingering == []


# ── Aborts ───────────────────────────────────────────────────────────────


class TestStreamAbort:
    @pytest.mark.asyncio
    async def test_pull_error_aborts(self, hook_recorder, log_events):
        boom = ConnectionError("queue down")
        processor = BatchProcessor(
            _cooperative,
            source=CallbackSource(Script("a", "b", boom)),
            concurrency=3,
            hooks=hook_recorder.hooks(),
        )
        result = await asyncio.wait_for(processor.start(), 1.0)

        assert result.abort_reason is AbortReason.PULL_ERROR
        assert result.error is boom
        assert [o.kind for o in result.outcomes] == [OutcomeKind.STOPPED] * 2
        assert hook_recorder.args_of("on_pull_error") == [(boom,)]
        assert hook_recorder.args_of("on_stopped") == [(AbortReason.PULL_ERROR,)]
        assert any(e["event"] == "source.pull_failed" for e in log_events)

    @pytest.mark.asyncio
    async def test_stop_during_endless_empty(self):
        processor = BatchProcessor.from_pull(_double, lambda: EMPTY, poll_interval=0.01)
        run = asyncio.create_task(processor.start())
        await asyncio.sleep(0.05)
        processor.stop(immediate=True)
        result = await asyncio.wait_for(run, 1.0)
        assert result.abort_reason is AbortReason.STOPPED
        assert result.outcomes == []

    @pytest.mark.asyncio
    async def test_budget_in_streaming(self):
        async def handler(item, progress, token):
            raise ValueError(item)

        result = await process_stream(handler, Script(1, 2, 3, 4), max_total_errors=2)
        assert result.abort_reason is AbortReason.ERROR_BUDGET
        assert result.total_errors == 2
        kinds = [o.kind for o in result.outcomes]
        assert kinds[:2] == [OutcomeKind.APPLICATION] * 2
        assert all(k is OutcomeKind.STOPPED for k in kinds[2:])
