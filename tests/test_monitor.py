import asyncio
import sys
import unittest
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))
sys.path.insert(0, str(Path(__file__).resolve().parent))

from fakes import IDENTIFY, PULSE, FakeConnector, FakeTransport, StepClock, status_frame, wait_until  # noqa: E402
from kinetic import (  # noqa: E402
    Connected,
    DeviceProfile,
    Diagnostic,
    KineticMonitor,
    MonitorSettings,
    Sample,
    SessionClosedError,
    SessionState,
)
from kinetic.profiles import PROFILES  # noqa: E402

SETTINGS = MonitorSettings(endpoint="ws://daemon.test:3489", reconnect_delay=0.01)


class KineticMonitorTests(unittest.IsolatedAsyncioTestCase):
    def _monitor(self, *outcomes) -> KineticMonitor:
        return KineticMonitor(SETTINGS, connector=FakeConnector(*outcomes), clock=StepClock())

    async def test_latest_tracks_event_stream(self):
        transport = FakeTransport([status_frame(10), status_frame(12)])
        async with self._monitor(transport) as monitor:
            self.assertTrue(monitor.running)
            self.assertIsInstance(await monitor.next_event(), Connected)
            self.assertIsInstance(await monitor.next_event(), Sample)
            await monitor.next_event()
            red = PROFILES["cherry_mx_red"]
            self.assertAlmostEqual(
                monitor.latest.accumulated_work_joules,
                red.force_newtons * red.distance_meters * 2,
            )
            self.assertTrue(monitor.latest.is_connected)
        self.assertFalse(monitor.running)
        self.assertIs(monitor.session_state, SessionState.CLOSED)

    async def test_diagnostics_are_kept(self):
        transport = FakeTransport(['{"action":"hello"}'])
        async with self._monitor(transport) as monitor:
            await monitor.next_event()
            event = await monitor.next_event()
            self.assertIsInstance(event, Diagnostic)
            self.assertEqual(monitor.diagnostics, ["Unknown action: hello"])

    async def test_commands_reach_transport(self):
        transport = FakeTransport()
        async with self._monitor(transport) as monitor:
            await monitor.next_event()
            await monitor.pulse()
            await wait_until(lambda: len(transport.sent) == 2)
        self.assertEqual(transport.sent, [IDENTIFY, PULSE])

    async def test_poll_returns_queued_events(self):
        transport = FakeTransport([status_frame(1), status_frame(2)])
        async with self._monitor(transport) as monitor:
            await wait_until(lambda: monitor.session_state is SessionState.SUBSCRIBED)
            await asyncio.sleep(0.05)
            events = await monitor.poll()
            self.assertEqual([event.kind for event in events], ["connected", "sample", "sample"])
            self.assertEqual(monitor.latest.last_unpulsed_keys, 2)

    async def test_events_iterator_ends_on_stop(self):
        monitor = self._monitor(FakeTransport([status_frame(4)]))
        await monitor.start()
        seen = []

        async def consume():
            async for event in monitor.events():
                seen.append(event.kind)
                if len(seen) == 2:
                    await monitor.stop()

        await asyncio.wait_for(consume(), 2.0)
        self.assertEqual(seen, ["connected", "sample"])

    async def test_send_after_stop_raises(self):
        monitor = self._monitor()
        await monitor.start()
        await monitor.stop()
        with self.assertRaises(SessionClosedError):
            await monitor.open_window()
        with self.assertRaises(SessionClosedError):
            await monitor.start()

    async def test_stop_cancels_blocked_connect(self):
        async def hanging_connector(endpoint):
            await asyncio.Event().wait()

        monitor = KineticMonitor(SETTINGS, connector=hanging_connector)
        await monitor.start()
        await asyncio.sleep(0.01)
        await asyncio.wait_for(monitor.stop(), 3.0)
        self.assertFalse(monitor.running)
        self.assertIs(monitor.session_state, SessionState.CLOSED)

    async def test_profile_selection(self):
        monitor = self._monitor()
        self.assertEqual(monitor.profile_key, "cherry_mx_red")
        self.assertEqual(monitor.cycle_profile(), PROFILES["cherry_mx_blue"])
        self.assertEqual(monitor.select_profile("Membrane"), PROFILES["membrane"])
        self.assertEqual(monitor.profile_key, "membrane")
        self.assertEqual(monitor.cycle_profile(), PROFILES["cherry_mx_red"])

        custom = DeviceProfile("Custom", force_newtons=1.0, distance_meters=0.002)
        monitor.select_profile(custom)
        self.assertIsNone(monitor.profile_key)
        self.assertIs(monitor.profile, custom)
        self.assertEqual(monitor.cycle_profile(), PROFILES["cherry_mx_red"])


if __name__ == "__main__":
    unittest.main()
