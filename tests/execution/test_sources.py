"""Tests for item sources: ListSource, CallbackSource, IteratorSource."""

import pytest

from pacer.execution.sources import (
    EMPTY,
    EXHAUSTED,
    CallbackSource,
    ItemSource,
    IteratorSource,
    ListSource,
    WorkItem,
)


# ── ListSource ───────────────────────────────────────────────────────────


class TestListSource:
    @pytest.mark.asyncio
    async def test_keys_are_input_indices(self):
        source = ListSource(["a", "b"])
        assert source.bounded
        assert source.key_count == 2
        assert await source.pull() == WorkItem(0, "a")
        assert not source.exhausted
        assert await source.pull() == WorkItem(1, "b")
        assert source.exhausted
        assert await source.pull() is EXHAUSTED

    @pytest.mark.asyncio
    async def test_empty_list_is_exhausted(self):
        source = ListSource([])
        assert source.exhausted
        assert await source.pull() is EXHAUSTED

    def test_materializes_iterables(self):
        source = ListSource(x * 2 for x in range(3))
        assert source.items == [0, 2, 4]
        assert len(source) == 3

    def test_satisfies_protocol(self):
        assert isinstance(ListSource([]), ItemSource)


# ── CallbackSource ───────────────────────────────────────────────────────


def _scripted(*values):
    script = list(values)
    calls = []

    def pull():
        calls.append(1)
        return script.pop(0)

    return pull, calls


class TestCallbackSource:
    @pytest.mark.asyncio
    async def test_keys_count_only_items(self):
        pull, _ = _scripted("x", EMPTY, "y", EXHAUSTED)
        source = CallbackSource(pull)
        assert not source.bounded
        assert await source.pull() == WorkItem(0, "x")
        assert await source.pull() is EMPTY
        assert await source.pull() == WorkItem(1, "y")
        assert source.key_count == 2
        assert not source.exhausted

    @pytest.mark.asyncio
    async def test_exhausted_is_sticky(self):
        pull, calls = _scripted(EXHAUSTED)
        source = CallbackSource(pull)
        assert await source.pull() is EXHAUSTED
        assert source.exhausted
        assert await source.pull() is EXHAUSTED
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_string_payload_is_not_a_signal(self):
        pull, _ = _scripted("empty", "exhausted")
        source = CallbackSource(pull)
        assert await source.pull() == WorkItem(0, "empty")
        assert await source.pull() == WorkItem(1, "exhausted")

    @pytest.mark.asyncio
    async def test_async_pull_function(self):
        values = [10, EXHAUSTED]

        async def pull():
            return values.pop(0)

        source = CallbackSource(pull)
        assert await source.pull() == WorkItem(0, 10)
        assert await source.pull() is EXHAUSTED

    @pytest.mark.asyncio
    async def test_pull_exception_propagates(self):
        def pull():
            raise ConnectionError("queue down")

        with pytest.raises(ConnectionError):
            await CallbackSource(pull).pull()

    def test_rejects_non_callable(self):
        with pytest.raises(TypeError):
            CallbackSource([1, 2, 3])

    def test_satisfies_protocol(self):
        assert isinstance(CallbackSource(lambda: EXHAUSTED), ItemSource)


# ── IteratorSource ───────────────────────────────────────────────────────


class TestIteratorSource:
    @pytest.mark.asyncio
    async def test_sync_iterator(self):
        source = IteratorSource(iter(["a", EMPTY, "b"]))
        pulled = [await source.pull() for _ in range(4)]
        assert pulled == [WorkItem(0, "a"), EMPTY, WorkItem(1, "b"), EXHAUSTED]
        assert source.exhausted

    @pytest.mark.asyncio
    async def test_async_iterator(self):
        async def gen():
            yield 1
            yield 2

        source = IteratorSource(gen())
        assert await source.pull() == WorkItem(0, 1)
        assert await source.pull() == WorkItem(1, 2)
        assert await source.pull() is EXHAUSTED
        assert source.exhausted
