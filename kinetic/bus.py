"""Bounded asyncio channels connecting the session task and its consumer."""

from __future__ import annotations

import asyncio
from collections import deque
from typing import AsyncIterator, Deque, Generic, List, TypeVar

from .codec import OutboundCommand
from .errors import ChannelClosed
from .events import ConnectionEvent

__all__ = ["Channel", "EventBus", "DEFAULT_CAPACITY"]

DEFAULT_CAPACITY = 10

T = TypeVar("T")


class Channel(Generic[T]):
    """Single-producer/single-consumer FIFO with bounded back-pressure.

    ``send`` waits while the channel is full and fails with
    :class:`ChannelClosed` once either side has closed it.  ``recv`` keeps
    returning items queued before the close and raises :class:`ChannelClosed`
    when none are left.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be a positive integer")
        self._capacity = capacity
        self._items: Deque[T] = deque()
        self._closed = False
        self._condition = asyncio.Condition()

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def closed(self) -> bool:
        return self._closed

    def __len__(self) -> int:
        return len(self._items)

    async def send(self, item: T) -> None:
        async with self._condition:
            await self._condition.wait_for(
                lambda: self._closed or len(self._items) < self._capacity
            )
            if self._closed:
                raise ChannelClosed("channel is closed")
            self._items.append(item)
            self._condition.notify_all()

    async def recv(self) -> T:
        async with self._condition:
            await self._condition.wait_for(lambda: self._closed or bool(self._items))
            if not self._items:
                raise ChannelClosed("channel is closed")
            item = self._items.popleft()
            self._condition.notify_all()
            return item

    async def drain(self) -> List[T]:
        """Return every queued item without waiting for more."""

        async with self._condition:
            items = list(self._items)
            self._items.clear()
            self._condition.notify_all()
            return items

    async def close(self) -> None:
        async with self._condition:
            self._closed = True
            self._condition.notify_all()

    async def wait_closed(self) -> None:
        async with self._condition:
            await self._condition.wait_for(lambda: self._closed)

    def __aiter__(self) -> AsyncIterator[T]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[T]:
        while True:
            try:
                yield await self.recv()
            except ChannelClosed:
                return


class EventBus:
    """Event channel towards the consumer plus command channel back to the session."""

    def __init__(
        self,
        *,
        event_capacity: int = DEFAULT_CAPACITY,
        command_capacity: int = DEFAULT_CAPACITY,
    ) -> None:
        self.events: Channel[ConnectionEvent] = Channel(event_capacity)
        self.commands: Channel[OutboundCommand] = Channel(command_capacity)

    async def close(self) -> None:
        # Closing the event side first is what stops the session task.
        await self.events.close()
        await self.commands.close()
