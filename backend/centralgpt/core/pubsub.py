# centralgpt/core/pubsub.py
"""
Change notification feed for the remote store.

Writers publish a ChangeEvent whenever a row of a watched table is inserted,
updated or deleted. Readers open a scoped subscription and iterate over the
events lazily:

    async with feed.subscribe("users", "app_config") as sub:
        async for event in sub:
            ...

Leaving the ``async with`` block releases the subscription on every exit path;
nothing is delivered to a released subscription. Each call to ``subscribe``
starts a fresh sequence, so a consumer can always re-subscribe after release.
"""
import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Dict, Optional, Set


@dataclass(frozen=True)
class ChangeEvent:
    table: str   # e.g. "users", "app_config"
    action: str  # "insert", "update" or "delete"


class Subscription:
    """
    One consumer's view of the feed.
    Events are buffered in an unbounded queue until the consumer reads them.
    """

    _CLOSED = object()

    def __init__(self, tables: frozenset):
        self.tables = tables
        self._queue: asyncio.Queue = asyncio.Queue()
        self.closed = False

    def _deliver(self, event: ChangeEvent) -> None:
        if not self.closed:
            self._queue.put_nowait(event)

    def _close(self) -> None:
        if self.closed:
            return
        self.closed = True
        # Drop anything not yet consumed and wake a pending reader
        while not self._queue.empty():
            self._queue.get_nowait()
        self._queue.put_nowait(self._CLOSED)

    async def next(self) -> Optional[ChangeEvent]:
        """Wait for the next event; None once the subscription is released."""
        if self.closed:
            return None
        item = await self._queue.get()
        if item is self._CLOSED:
            return None
        return item

    def __aiter__(self):
        return self

    async def __anext__(self) -> ChangeEvent:
        event = await self.next()
        if event is None:
            raise StopAsyncIteration
        return event


class ChangeFeed:
    """
    Table-scoped fan-out of change events.

    Data structure:
    - _subscribers: Dict[table_name, Set[Subscription]]
    """

    def __init__(self):
        self._subscribers: Dict[str, Set[Subscription]] = {}

    def publish(self, table: str, action: str) -> None:
        event = ChangeEvent(table=table, action=action)
        for sub in list(self._subscribers.get(table, set())):
            sub._deliver(event)

    def subscriber_count(self, table: str) -> int:
        return len(self._subscribers.get(table, set()))

    def _attach(self, sub: Subscription) -> None:
        for table in sub.tables:
            self._subscribers.setdefault(table, set()).add(sub)

    def _detach(self, sub: Subscription) -> None:
        for table in sub.tables:
            self._subscribers.get(table, set()).discard(sub)
        sub._close()

    @asynccontextmanager
    async def subscribe(self, *tables: str) -> AsyncIterator[Subscription]:
        sub = Subscription(frozenset(tables))
        self._attach(sub)
        try:
            yield sub
        finally:
            self._detach(sub)
