"""Consumer-side handle around a background :class:`TelemetrySession`.

The monitor is what user interfaces talk to.  It starts exactly one session
task, exposes the emitted events as an async stream, keeps the most recent
:class:`~kinetic.physics.KineticSnapshot` it has seen, and offers a send-only
sink for the two daemon commands.  Stopping the monitor closes the event
channel, which is the signal the session task uses to end its reconnect loop.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import AsyncIterator, Callable, List, Optional, Union

from .bus import EventBus
from .codec import OutboundCommand
from .config import MonitorSettings
from .errors import ChannelClosed, SessionClosedError
from .events import ConnectionEvent, Diagnostic
from .physics import DeviceProfile, KineticSnapshot
from .profiles import next_profile_key, profile_key as catalog_key, resolve_profile
from .session import Connector, SessionState, TelemetrySession

__all__ = ["KineticMonitor"]

_STOP_GRACE_SECONDS = 1.0


class KineticMonitor:
    """Run a telemetry session and relay its events to one consumer."""

    def __init__(
        self,
        settings: Optional[MonitorSettings] = None,
        *,
        connector: Optional[Connector] = None,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self._settings = settings or MonitorSettings()
        self._bus = EventBus(
            event_capacity=self._settings.event_capacity,
            command_capacity=self._settings.command_capacity,
        )
        self._profile_key: Optional[str] = self._settings.profile
        session_kwargs = {} if clock is None else {"clock": clock}
        self._session = TelemetrySession(
            self._bus,
            profile=resolve_profile(self._settings.profile),
            endpoint=self._settings.endpoint,
            reconnect_delay=self._settings.reconnect_delay,
            connector=connector,
            history_capacity=self._settings.history_capacity,
            log_level=self._settings.log_level,
            **session_kwargs,
        )
        self._latest = self._session.snapshot()
        self._diagnostics: List[str] = []
        self._task: Optional[asyncio.Task[None]] = None
        self._logger = logging.getLogger("kinetic.monitor")

    # ------------------------------------------------------------------
    # Lifecycle management

    async def __aenter__(self) -> "KineticMonitor":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:  # type: ignore[override]
        await self.stop()

    async def start(self) -> None:
        if self._task is not None:
            return
        if self._bus.events.closed:
            raise SessionClosedError("KineticMonitor has been stopped and cannot restart")
        self._task = asyncio.create_task(self._session.run(), name="kinetic-session")
        self._logger.debug("Started telemetry session against %s", self._settings.endpoint)

    async def stop(self) -> None:
        await self._bus.close()
        if self._task is None:
            return
        try:
            await asyncio.wait_for(asyncio.shield(self._task), timeout=_STOP_GRACE_SECONDS)
        except asyncio.TimeoutError:
            # Still blocked inside connect(); nothing is left to flush.
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
        self._task = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    # ------------------------------------------------------------------
    # Read side

    @property
    def settings(self) -> MonitorSettings:
        return self._settings

    @property
    def latest(self) -> KineticSnapshot:
        """Most recent state seen on the event stream."""

        return self._latest

    @property
    def session_state(self) -> SessionState:
        return self._session.state

    @property
    def diagnostics(self) -> List[str]:
        return list(self._diagnostics)

    def _observe(self, event: ConnectionEvent) -> ConnectionEvent:
        if isinstance(event, Diagnostic):
            self._diagnostics.append(event.message)
            del self._diagnostics[:-50]
        else:
            self._latest = event.state
        return event

    async def next_event(self) -> ConnectionEvent:
        return self._observe(await self._bus.events.recv())

    async def events(self) -> AsyncIterator[ConnectionEvent]:
        """Yield events in production order until the monitor stops."""

        while True:
            try:
                event = await self._bus.events.recv()
            except ChannelClosed:
                return
            yield self._observe(event)

    async def poll(self) -> List[ConnectionEvent]:
        """Return every event queued so far without waiting."""

        return [self._observe(event) for event in await self._bus.events.drain()]

    # ------------------------------------------------------------------
    # Command sink

    async def send(self, command: OutboundCommand) -> None:
        try:
            await self._bus.commands.send(command)
        except ChannelClosed as exc:
            raise SessionClosedError("telemetry session is no longer running") from exc

    async def pulse(self) -> None:
        await self.send(OutboundCommand.TRIGGER_PULSE)

    async def open_window(self) -> None:
        await self.send(OutboundCommand.OPEN_EXTERNAL_WINDOW)

    # ------------------------------------------------------------------
    # Device profile

    @property
    def profile(self) -> DeviceProfile:
        return self._session.profile

    @property
    def profile_key(self) -> Optional[str]:
        return self._profile_key

    def select_profile(self, profile: Union[str, DeviceProfile]) -> DeviceProfile:
        if isinstance(profile, DeviceProfile):
            resolved = profile
            self._profile_key = catalog_key(profile)
        else:
            resolved = resolve_profile(profile)
            self._profile_key = catalog_key(resolved)
        self._session.select_profile(resolved)
        return resolved

    def cycle_profile(self) -> DeviceProfile:
        return self.select_profile(next_profile_key(self._profile_key))
