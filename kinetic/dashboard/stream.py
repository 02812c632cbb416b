"""Fan-out of monitor events to dashboard subscribers."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import AsyncGenerator, List, Optional

from ..events import ConnectionEvent
from ..monitor import KineticMonitor

SUBSCRIBER_BUFFER = 32


class KineticStream:
    """Drain a :class:`KineticMonitor` and broadcast its events.

    Subscribers get latest-state semantics: when a subscriber falls behind,
    its oldest buffered event is dropped rather than stalling the monitor.
    """

    def __init__(self, monitor: KineticMonitor) -> None:
        self._monitor = monitor
        self._subscribers: List[asyncio.Queue[ConnectionEvent]] = []
        self._task: Optional[asyncio.Task[None]] = None
        self._lock = asyncio.Lock()
        self._logger = logging.getLogger("kinetic.dashboard")

    @property
    def monitor(self) -> KineticMonitor:
        return self._monitor

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    async def start(self) -> None:
        async with self._lock:
            if self._task is None:
                await self._monitor.start()
                self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        async with self._lock:
            await self._monitor.stop()
            if self._task:
                self._task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await self._task
                self._task = None

    async def subscribe(self) -> AsyncGenerator[ConnectionEvent, None]:
        queue: asyncio.Queue[ConnectionEvent] = asyncio.Queue(maxsize=SUBSCRIBER_BUFFER)
        self._subscribers.append(queue)
        try:
            while True:
                yield await queue.get()
        finally:
            self._subscribers.remove(queue)

    def broadcast(self, event: ConnectionEvent) -> None:
        for queue in list(self._subscribers):
            if queue.full():
                queue.get_nowait()
            queue.put_nowait(event)

    async def _run(self) -> None:
        async for event in self._monitor.events():
            self.broadcast(event)
        self._logger.debug("Monitor event stream ended")
