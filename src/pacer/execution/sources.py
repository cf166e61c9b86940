"""Item sources -- where work items come from.

WHY
───
The same engine runs a fixed list (bounded mode) or an open-ended pull
function (streaming mode).  Rather than two processor classes, the
processor is parameterised by an :class:`ItemSource` capability.

ARCHITECTURE
────────────
::

    ItemSource (protocol)
      ├── pull()      ─ WorkItem | SourceSignal.EMPTY | SourceSignal.EXHAUSTED
      ├── exhausted   ─ True once nothing more will ever be pulled
      ├── key_count   ─ keys handed out so far (each owes an outcome)
      └── bounded     ─ drives worker-pool vs. streaming scheduling

    ListSource      ─ fixed ordered list; key = input index
    CallbackSource  ─ user pull function (sync or async); key = counter
    IteratorSource  ─ sync / async iterator; StopIteration = EXHAUSTED

Keys are assigned by the source, strictly increasing from 0, never reused.
"""

from __future__ import annotations

import inspect
from collections.abc import AsyncIterable, Callable, Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol, runtime_checkable


class SourceSignal(Enum):
    """Non-item results of a pull."""

    EMPTY = "empty"          # nothing right now, poll again later
    EXHAUSTED = "exhausted"  # nothing ever again


EMPTY = SourceSignal.EMPTY
EXHAUSTED = SourceSignal.EXHAUSTED


@dataclass(frozen=True, slots=True)
class WorkItem:
    """One unit of input paired with its stable key."""

    key: int
    payload: Any


@runtime_checkable
class ItemSource(Protocol):
    """Capability the processor pulls work items from."""

    bounded: bool

    @property
    def exhausted(self) -> bool: ...

    @property
    def key_count(self) -> int: ...

    async def pull(self) -> WorkItem | SourceSignal: ...


class ListSource:
    """Fixed, ordered list of payloads. Key is the input index."""

    bounded = True

    def __init__(self, items: Iterable[Any]) -> None:
        self._items = list(items)
        self._next = 0

    @property
    def exhausted(self) -> bool:
        return self._next >= len(self._items)

    @property
    def key_count(self) -> int:
        return len(self._items)

    @property
    def items(self) -> list[Any]:
        return self._items

    def __len__(self) -> int:
        return len(self._items)

    async def pull(self) -> WorkItem | SourceSignal:
        if self._next >= len(self._items):
            return EXHAUSTED
        key = self._next
        self._next += 1
        return WorkItem(key, self._items[key])


class CallbackSource:
    """Pull-based, potentially unbounded source.

    ``pull_fn()`` returns the next payload, :data:`EMPTY` when temporarily
    dry, or :data:`EXHAUSTED` when done. It may be a plain function or a
    coroutine function. Exceptions propagate to the processor, which treats
    them as fatal for the batch.
    """

    bounded = False

    def __init__(self, pull_fn: Callable[[], Any]) -> None:
        if not callable(pull_fn):
            raise TypeError("pull_fn must be callable")
        self._pull_fn = pull_fn
        self._next_key = 0
        self._exhausted = False

    @property
    def exhausted(self) -> bool:
        return self._exhausted

    @property
    def key_count(self) -> int:
        return self._next_key

    async def pull(self) -> WorkItem | SourceSignal:
        if self._exhausted:
            return EXHAUSTED
        value = self._pull_fn()
        if inspect.isawaitable(value):
            value = await value
        if value is EXHAUSTED:
            self._exhausted = True
            return EXHAUSTED
        if value is EMPTY:
            return EMPTY
        key = self._next_key
        self._next_key += 1
        return WorkItem(key, value)


class IteratorSource(CallbackSource):
    """Streaming source over a sync or async iterable.

    The iterable may yield :data:`EMPTY` to signal a temporary gap.
    """

    def __init__(self, iterable: Iterable[Any] | AsyncIterable[Any]) -> None:
        if isinstance(iterable, AsyncIterable):
            iterator = aiter(iterable)

            async def _next_async() -> Any:
                try:
                    return await anext(iterator)
                except StopAsyncIteration:
                    return EXHAUSTED

            super().__init__(_next_async)
        else:
            sync_iterator = iter(iterable)
            super().__init__(lambda: next(sync_iterator, EXHAUSTED))


__all__ = [
    "SourceSignal",
    "EMPTY",
    "EXHAUSTED",
    "WorkItem",
    "ItemSource",
    "ListSource",
    "CallbackSource",
    "IteratorSource",
]
