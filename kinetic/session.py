"""Long-lived WebSocket session with the local telemetry daemon.

The session owns the transport and the :class:`~kinetic.physics.KineticState`
for its whole lifetime and drives this loop until the consumer goes away::

    DISCONNECTED -> CONNECTING -> HANDSHAKING -> SUBSCRIBED -> DISCONNECTED
                                                   |
                      (event or command channel closed) -> CLOSED

While subscribed, a single task waits on two sources at once: the next inbound
frame and the next outbound command.  Commands are written on the same
connection the frames are read from, so the transport only ever has one
writer.  Transport failures are always retried after a flat delay with no
attempt limit; a closed channel is the only way the loop ends.
"""

from __future__ import annotations

import asyncio
import contextlib
import enum
import logging
import time
from typing import Any, Awaitable, Callable, Optional, Protocol, Union

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from .bus import Channel, EventBus
from .codec import (
    OutboundCommand,
    StatusUpdate,
    UnknownAction,
    decode,
    encode_command,
    encode_identify,
)
from .config import DEFAULT_ENDPOINT, DEFAULT_RECONNECT_DELAY, configure_logging
from .errors import ChannelClosed
from .events import Connected, ConnectionEvent, Diagnostic, Disconnected, Sample
from .physics import (
    DEFAULT_HISTORY_CAPACITY,
    DeviceProfile,
    KineticSnapshot,
    KineticState,
    advance,
)

__all__ = [
    "Connector",
    "SessionState",
    "TelemetrySession",
    "Transport",
    "TRANSPORT_ERRORS",
]

TRANSPORT_ERRORS = (OSError, asyncio.TimeoutError, WebSocketException)

CLOSED_REASON = "Connection closed"


class Transport(Protocol):
    """The subset of a websockets client connection used by the session."""

    async def send(self, message: str) -> None: ...

    async def recv(self) -> Union[str, bytes]: ...

    async def close(self) -> None: ...


Connector = Callable[[str], Awaitable[Transport]]


async def _websocket_connector(endpoint: str) -> Transport:
    return await websockets.connect(endpoint)


class SessionState(enum.Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    HANDSHAKING = "handshaking"
    SUBSCRIBED = "subscribed"
    CLOSED = "closed"


def _describe(exc: BaseException) -> str:
    if isinstance(exc, ConnectionClosed):
        return CLOSED_REASON
    return str(exc) or exc.__class__.__name__


def _discard(task: Optional["asyncio.Future[Any]"]) -> None:
    if task is None:
        return
    if not task.done():
        task.cancel()
    elif not task.cancelled():
        # Retrieve so an unconsumed failure is not reported as never retrieved.
        task.exception()


class TelemetrySession:
    """Background session feeding an :class:`~kinetic.bus.EventBus`.

    Parameters
    ----------
    bus:
        Channels shared with the consumer.  Events flow out on ``bus.events``
        and commands arrive on ``bus.commands``.
    profile:
        Device profile applied to incoming samples; see :meth:`select_profile`.
    endpoint:
        WebSocket URL of the daemon.
    reconnect_delay:
        Seconds to wait after a disconnect before the next connect attempt.
    connector:
        Coroutine function opening a :class:`Transport` for ``endpoint``.
        Defaults to :func:`websockets.connect`.
    clock:
        Wall-clock source in seconds, used to time physics updates.
    """

    def __init__(
        self,
        bus: EventBus,
        *,
        profile: DeviceProfile,
        endpoint: str = DEFAULT_ENDPOINT,
        reconnect_delay: float = DEFAULT_RECONNECT_DELAY,
        connector: Optional[Connector] = None,
        clock: Callable[[], float] = time.time,
        history_capacity: int = DEFAULT_HISTORY_CAPACITY,
        log_level: Optional[Union[int, str]] = None,
    ) -> None:
        if reconnect_delay < 0:
            raise ValueError("reconnect_delay cannot be negative")
        self._events: Channel[ConnectionEvent] = bus.events
        self._commands: Channel[OutboundCommand] = bus.commands
        self._profile = profile
        self._endpoint = endpoint
        self._reconnect_delay = float(reconnect_delay)
        self._connector: Connector = connector or _websocket_connector
        self._clock = clock
        self._kinetics = KineticState.with_capacity(history_capacity)
        self._state = SessionState.DISCONNECTED
        self._attempts = 0
        if log_level is None:
            self._logger = logging.getLogger("kinetic.session")
        else:
            self._logger = configure_logging("kinetic.session", log_level)

    # ------------------------------------------------------------------
    # Introspection

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def endpoint(self) -> str:
        return self._endpoint

    @property
    def attempts(self) -> int:
        """Number of connect attempts made so far."""

        return self._attempts

    @property
    def profile(self) -> DeviceProfile:
        return self._profile

    def select_profile(self, profile: DeviceProfile) -> None:
        """Use ``profile`` for every sample received from now on."""

        self._profile = profile
        self._logger.info("Device profile set to %s", profile.name)

    def snapshot(self) -> KineticSnapshot:
        return self._kinetics.snapshot()

    # ------------------------------------------------------------------
    # Main loop

    async def run(self) -> None:
        """Connect, read and reconnect until a channel is closed."""

        try:
            while True:
                await self._run_connection()
                self._state = SessionState.DISCONNECTED
                await self._wait_before_reconnect()
        except ChannelClosed:
            self._logger.info("Consumer went away; telemetry session stopped")
        finally:
            self._state = SessionState.CLOSED

    async def _run_connection(self) -> None:
        self._attempts += 1
        self._state = SessionState.CONNECTING
        self._logger.debug("Connecting to %s (attempt %s)", self._endpoint, self._attempts)
        try:
            connection = await self._connector(self._endpoint)
        except TRANSPORT_ERRORS as exc:
            reason = _describe(exc)
            self._logger.warning("Could not connect to %s: %s", self._endpoint, reason)
            self._kinetics.mark_disconnected(reason)
            await self._emit(Disconnected(reason=reason, state=self._kinetics.snapshot()))
            return

        try:
            self._state = SessionState.HANDSHAKING
            self._kinetics.mark_connected()
            self._logger.info("Connected to %s", self._endpoint)
            await self._emit(Connected(state=self._kinetics.snapshot()))
            await self._identify(connection)
            self._state = SessionState.SUBSCRIBED
            reason = await self._pump(connection)
        finally:
            with contextlib.suppress(*TRANSPORT_ERRORS):
                await connection.close()

        self._logger.warning("Disconnected from %s: %s", self._endpoint, reason)
        self._kinetics.mark_disconnected(reason)
        await self._emit(Disconnected(reason=reason, state=self._kinetics.snapshot()))

    async def _identify(self, connection: Transport) -> None:
        try:
            await connection.send(encode_identify())
        except TRANSPORT_ERRORS as exc:
            # The read loop still starts; a dead transport surfaces there.
            message = f"Handshake failed: {_describe(exc)}"
            self._logger.warning(message)
            self._kinetics.mark_connected(message)
            await self._emit(Diagnostic(message))

    async def _pump(self, connection: Transport) -> str:
        """Multiplex frames and commands until the transport fails."""

        read_task: Optional["asyncio.Future[Union[str, bytes]]"] = None
        command_task: Optional["asyncio.Future[OutboundCommand]"] = None
        try:
            while True:
                if read_task is None:
                    read_task = asyncio.ensure_future(connection.recv())
                if command_task is None:
                    command_task = asyncio.ensure_future(self._commands.recv())
                done, _ = await asyncio.wait(
                    {read_task, command_task}, return_when=asyncio.FIRST_COMPLETED
                )

                if command_task in done:
                    finished_command, command_task = command_task, None
                    await self._relay(connection, finished_command.result())

                if read_task in done:
                    finished_read, read_task = read_task, None
                    try:
                        frame = finished_read.result()
                    except TRANSPORT_ERRORS as exc:
                        return _describe(exc)
                    await self._handle_frame(frame)
        finally:
            _discard(read_task)
            _discard(command_task)

    async def _relay(self, connection: Transport, command: OutboundCommand) -> None:
        self._logger.debug("Sending command: %s", command.action)
        try:
            await connection.send(encode_command(command))
        except TRANSPORT_ERRORS as exc:
            await self._emit(Diagnostic(f"Send failed: {_describe(exc)}"))

    async def _handle_frame(self, frame: Union[str, bytes]) -> None:
        if isinstance(frame, bytes):
            self._logger.debug("Ignoring %s-byte binary frame", len(frame))
            return
        message = decode(frame)
        if isinstance(message, StatusUpdate):
            advance(self._kinetics, message.sample, self._profile, self._clock())
            await self._emit(Sample(sample=message.sample, state=self._kinetics.snapshot()))
        elif isinstance(message, UnknownAction):
            self._logger.debug("Unknown action from daemon: %s", message.action)
            await self._emit(Diagnostic(f"Unknown action: {message.action}"))
        else:
            self._logger.debug("Unparseable frame (%s): %s", message.reason, message.raw)
            await self._emit(Diagnostic(f"Unparseable frame ({message.reason}): {message.raw}"))

    async def _emit(self, event: ConnectionEvent) -> None:
        # Raises ChannelClosed once the consumer has closed the event channel.
        await self._events.send(event)

    async def _wait_before_reconnect(self) -> None:
        try:
            await asyncio.wait_for(self._events.wait_closed(), timeout=self._reconnect_delay)
        except asyncio.TimeoutError:
            return
        raise ChannelClosed("event channel closed while waiting to reconnect")
