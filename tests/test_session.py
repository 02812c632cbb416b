import asyncio
import sys
import unittest
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))
sys.path.insert(0, str(Path(__file__).resolve().parent))

from fakes import (  # noqa: E402
    IDENTIFY,
    OPEN_WINDOW,
    PULSE,
    FakeConnector,
    FakeTransport,
    StepClock,
    clean_close,
    next_event,
    status_frame,
    wait_until,
)
from kinetic.bus import EventBus  # noqa: E402
from kinetic.codec import OutboundCommand  # noqa: E402
from kinetic.events import Connected, Diagnostic, Disconnected, Sample  # noqa: E402
from kinetic.physics import DeviceProfile  # noqa: E402
from kinetic.session import SessionState, TelemetrySession  # noqa: E402

PROFILE = DeviceProfile("Test Switch", force_newtons=0.5, distance_meters=0.004)


class TelemetrySessionTests(unittest.IsolatedAsyncioTestCase):
    def _session(self, connector, *, delay: float = 0.01, **kwargs):
        bus = EventBus()
        session = TelemetrySession(
            bus,
            profile=PROFILE,
            endpoint="ws://daemon.test:3489",
            reconnect_delay=delay,
            connector=connector,
            clock=StepClock(),
            **kwargs,
        )
        return bus, session

    async def _shutdown(self, bus, task):
        await bus.close()
        await asyncio.wait_for(task, 1.0)

    async def test_handshake_then_sample(self):
        transport = FakeTransport([status_frame(100, kps="1,23")])
        connector = FakeConnector(transport)
        bus, session = self._session(connector)
        task = asyncio.create_task(session.run())

        connected = await next_event(bus.events)
        self.assertIsInstance(connected, Connected)
        self.assertTrue(connected.state.is_connected)

        event = await next_event(bus.events)
        self.assertIsInstance(event, Sample)
        self.assertEqual(event.sample.keys_per_second, 1.23)
        self.assertEqual(event.sample.unpulsed_keys, 100)
        self.assertEqual(event.state.accumulated_work_joules, 0.0)
        self.assertAlmostEqual(event.state.current_power_watts, 0.5 * 0.004 * 1.23)
        self.assertEqual(transport.sent, [IDENTIFY])
        self.assertEqual(connector.calls, ["ws://daemon.test:3489"])
        self.assertIs(session.state, SessionState.SUBSCRIBED)

        await self._shutdown(bus, task)
        self.assertIs(session.state, SessionState.CLOSED)
        self.assertTrue(transport.closed)

    async def test_unknown_and_unparseable_frames_become_diagnostics(self):
        transport = FakeTransport(['{"action":"pong"}', "{oops", b"\x00\x01", status_frame(5)])
        bus, session = self._session(FakeConnector(transport))
        task = asyncio.create_task(session.run())

        self.assertIsInstance(await next_event(bus.events), Connected)
        unknown = await next_event(bus.events)
        self.assertIsInstance(unknown, Diagnostic)
        self.assertEqual(unknown.message, "Unknown action: pong")
        unparseable = await next_event(bus.events)
        self.assertIsInstance(unparseable, Diagnostic)
        self.assertTrue(unparseable.message.startswith("Unparseable frame"))
        # The binary frame is skipped and the session keeps reading.
        self.assertIsInstance(await next_event(bus.events), Sample)

        await self._shutdown(bus, task)

    async def test_commands_are_written_on_the_same_connection(self):
        transport = FakeTransport()
        bus, session = self._session(FakeConnector(transport))
        task = asyncio.create_task(session.run())
        self.assertIsInstance(await next_event(bus.events), Connected)

        await bus.commands.send(OutboundCommand.TRIGGER_PULSE)
        await bus.commands.send(OutboundCommand.OPEN_EXTERNAL_WINDOW)
        await wait_until(lambda: len(transport.sent) == 3)
        self.assertEqual(transport.sent, [IDENTIFY, PULSE, OPEN_WINDOW])

        await self._shutdown(bus, task)

    async def test_reconnect_keeps_kinetic_state(self):
        first = FakeTransport([status_frame(10, kps="9.0"), clean_close()])
        second = FakeTransport([status_frame(20, kps="1.0")])
        connector = FakeConnector(first, second)
        bus, session = self._session(connector)
        task = asyncio.create_task(session.run())

        self.assertIsInstance(await next_event(bus.events), Connected)
        first_sample = await next_event(bus.events)
        peak = first_sample.state.peak_velocity_mps

        dropped = await next_event(bus.events)
        self.assertIsInstance(dropped, Disconnected)
        self.assertEqual(dropped.reason, "Connection closed")
        self.assertFalse(dropped.state.is_connected)
        self.assertEqual(dropped.state.connection_error, "Connection closed")
        self.assertTrue(first.closed)

        reconnected = await next_event(bus.events)
        self.assertIsInstance(reconnected, Connected)
        self.assertIsNone(reconnected.state.connection_error)

        second_sample = await next_event(bus.events)
        self.assertEqual(second_sample.state.accumulated_work_joules, 0.5 * 0.004 * 10)
        self.assertEqual(second_sample.state.peak_velocity_mps, peak)
        self.assertEqual(len(second_sample.state.history_power_milliwatts), 2)
        self.assertEqual(session.attempts, 2)
        self.assertEqual(second.sent, [IDENTIFY])

        await self._shutdown(bus, task)

    async def test_connect_failure_is_retried(self):
        transport = FakeTransport()
        connector = FakeConnector(ConnectionRefusedError("Connection refused"), transport)
        bus, session = self._session(connector)
        task = asyncio.create_task(session.run())

        refused = await next_event(bus.events)
        self.assertIsInstance(refused, Disconnected)
        self.assertEqual(refused.reason, "Connection refused")
        self.assertIsInstance(await next_event(bus.events), Connected)
        self.assertEqual(len(connector.calls), 2)

        await self._shutdown(bus, task)

    async def test_read_error_reason_is_reported(self):
        transport = FakeTransport([ConnectionResetError("reset by peer")])
        bus, session = self._session(FakeConnector(transport))
        task = asyncio.create_task(session.run())

        self.assertIsInstance(await next_event(bus.events), Connected)
        dropped = await next_event(bus.events)
        self.assertIsInstance(dropped, Disconnected)
        self.assertEqual(dropped.reason, "reset by peer")

        await self._shutdown(bus, task)

    async def test_handshake_failure_is_tolerated(self):
        transport = FakeTransport([status_frame(1)], fail_send=True)
        bus, session = self._session(FakeConnector(transport))
        task = asyncio.create_task(session.run())

        self.assertIsInstance(await next_event(bus.events), Connected)
        diagnostic = await next_event(bus.events)
        self.assertIsInstance(diagnostic, Diagnostic)
        self.assertEqual(diagnostic.message, "Handshake failed: broken pipe")
        event = await next_event(bus.events)
        self.assertIsInstance(event, Sample)
        self.assertTrue(event.state.is_connected)
        self.assertEqual(event.state.connection_error, "Handshake failed: broken pipe")

        await self._shutdown(bus, task)

    async def test_failed_command_write_is_a_diagnostic(self):
        transport = FakeTransport()
        bus, session = self._session(FakeConnector(transport))
        task = asyncio.create_task(session.run())
        self.assertIsInstance(await next_event(bus.events), Connected)
        await wait_until(lambda: transport.sent == [IDENTIFY])

        transport.fail_send = True
        await bus.commands.send(OutboundCommand.TRIGGER_PULSE)
        diagnostic = await next_event(bus.events)
        self.assertIsInstance(diagnostic, Diagnostic)
        self.assertEqual(diagnostic.message, "Send failed: broken pipe")
        self.assertIs(session.state, SessionState.SUBSCRIBED)

        await self._shutdown(bus, task)

    async def test_closed_event_channel_stops_the_loop(self):
        transport = FakeTransport()
        connector = FakeConnector(transport)
        bus, session = self._session(connector)
        task = asyncio.create_task(session.run())
        self.assertIsInstance(await next_event(bus.events), Connected)

        await bus.events.close()
        transport.push(status_frame(3))
        await asyncio.wait_for(task, 1.0)

        self.assertIs(session.state, SessionState.CLOSED)
        self.assertTrue(transport.closed)
        self.assertEqual(len(connector.calls), 1)

    async def test_closed_command_channel_stops_the_loop(self):
        transport = FakeTransport()
        connector = FakeConnector(transport, FakeTransport())
        bus, session = self._session(connector)
        task = asyncio.create_task(session.run())
        self.assertIsInstance(await next_event(bus.events), Connected)

        await bus.commands.close()
        await asyncio.wait_for(task, 1.0)

        self.assertIs(session.state, SessionState.CLOSED)
        self.assertEqual(len(connector.calls), 1)

    async def test_shutdown_during_reconnect_delay(self):
        bus, session = self._session(FakeConnector(), delay=30.0)
        task = asyncio.create_task(session.run())

        self.assertIsInstance(await next_event(bus.events), Disconnected)
        await bus.events.close()
        await asyncio.wait_for(task, 1.0)
        self.assertIs(session.state, SessionState.CLOSED)
        self.assertEqual(session.attempts, 1)

    async def test_profile_switch_applies_to_next_sample(self):
        transport = FakeTransport([status_frame(10, kps="1.0")])
        bus, session = self._session(FakeConnector(transport))
        task = asyncio.create_task(session.run())
        self.assertIsInstance(await next_event(bus.events), Connected)
        await next_event(bus.events)

        heavy = DeviceProfile("Heavy", force_newtons=2.0, distance_meters=0.01)
        session.select_profile(heavy)
        transport.push(status_frame(15, kps="1.0"))
        event = await next_event(bus.events)
        self.assertEqual(event.state.accumulated_work_joules, 2.0 * 0.01 * 5)
        self.assertAlmostEqual(event.state.current_power_watts, 2.0 * 0.01 * 1.0)
        self.assertIs(session.profile, heavy)

        await self._shutdown(bus, task)

    def test_negative_delay_rejected(self):
        with self.assertRaises(ValueError):
            TelemetrySession(EventBus(), profile=PROFILE, reconnect_delay=-1)


if __name__ == "__main__":
    unittest.main()
