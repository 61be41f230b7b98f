"""Scripted source and recording sink for sync tests."""

from __future__ import annotations

import asyncio
from collections import deque
from dataclasses import dataclass, field
from typing import Any

from opasync.sync.types import ChangeEvent, ListResult, StreamClosed


def obj(name: str, namespace: str | None = None, **extra: Any) -> dict[str, Any]:
    """Build a Kubernetes-shaped object."""
    metadata: dict[str, Any] = {"name": name}
    if namespace is not None:
        metadata["namespace"] = namespace
    return {"metadata": metadata, **extra}


@dataclass
class Cycle:
    """What the source returns for one list+watch cycle.

    Attributes:
        items: Listing result.
        token: resourceVersion of the listing.
        events: Events the watch yields, in order.
        list_error: Raised by list() instead of returning.
        watch_error: Raised by watch() instead of returning.
        block: Block after the last event instead of closing the stream.
    """

    items: list[Any] = field(default_factory=list)
    token: str = "1"
    events: list[ChangeEvent] = field(default_factory=list)
    list_error: Exception | None = None
    watch_error: Exception | None = None
    block: bool = False


class FakeWatch:
    """WatchStream yielding scripted events."""

    def __init__(self, source: FakeSource, events: list[ChangeEvent], block: bool) -> None:
        self._source = source
        self._events = deque(events)
        self._block = block
        self.waiting = asyncio.Event()
        self.closed = False

    async def next_event(self) -> ChangeEvent:
        if self._events:
            event = self._events.popleft()
            if isinstance(event, Exception):
                raise event
            return event
        if self._block:
            self.waiting.set()
            await asyncio.Event().wait()
        return StreamClosed()

    async def close(self) -> None:
        self.closed = True
        self._source.calls.append(("close",))


class FakeSource:
    """ResourceSource replaying one Cycle per list() call.

    Once the script is exhausted every cycle lists nothing and blocks in
    the watch, so only the stop signal ends it.
    """

    def __init__(self, *cycles: Cycle) -> None:
        self._cycles = deque(cycles)
        self._current = Cycle(block=True)
        self.calls: list[tuple[Any, ...]] = []
        self.watches: list[FakeWatch] = []

    @property
    def list_count(self) -> int:
        return sum(1 for call in self.calls if call[0] == "list")

    async def list(self) -> ListResult:
        self.calls.append(("list",))
        self._current = self._cycles.popleft() if self._cycles else Cycle(block=True)
        if self._current.list_error is not None:
            raise self._current.list_error
        return ListResult(items=list(self._current.items), resource_version=self._current.token)

    async def watch(self, resource_version: str) -> FakeWatch:
        self.calls.append(("watch", resource_version))
        if self._current.watch_error is not None:
            raise self._current.watch_error
        stream = FakeWatch(self, self._current.events, self._current.block)
        self.watches.append(stream)
        return stream


class FakeSink:
    """DataSink recording calls and keeping an in-memory tree.

    ``fail(op, times)`` makes the next ``times`` calls of ``op``
    ("reset", "upsert" or "remove") raise after being recorded.
    """

    def __init__(self) -> None:
        self.prefix = ""
        self.calls: list[tuple[Any, ...]] = []
        self.data: dict[str, Any] = {}
        self._failures: dict[str, int] = {}

    def fail(self, op: str, times: int = 1) -> None:
        self._failures[op] = times

    def _check(self, op: str) -> None:
        if self._failures.get(op, 0) > 0:
            self._failures[op] -= 1
            raise RuntimeError(f"{op} rejected")

    def prefixed(self, path: str) -> FakeSink:
        self.prefix = path
        return self

    async def replace_subtree(self, prefix: str, value: Any) -> None:
        self.calls.append(("reset", prefix))
        self._check("reset")
        self.data = dict(value)

    async def upsert(self, path: str, obj: Any) -> None:
        self.calls.append(("upsert", path))
        self._check("upsert")
        self.data[path] = obj

    async def remove(self, path: str) -> None:
        self.calls.append(("remove", path))
        self._check("remove")
        self.data.pop(path, None)


async def wait_until(predicate: Any, timeout: float = 2.0) -> None:
    """Yield to the event loop until ``predicate()`` is true."""
    async with asyncio.timeout(timeout):
        while not predicate():
            await asyncio.sleep(0.001)
