"""Terminal monitor for realtime kinetic telemetry.

Connects to the local telemetry daemon, derives power, velocity and work from
the keystroke stream and redraws a short status block on every sample.  While
running, type a command followed by Enter:

``p`` cycle device profile, ``u`` toggle units, ``pulse`` trigger a pulse,
``open`` ask the daemon to open its window, ``q`` quit.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import signal
import sys
import threading
from dataclasses import asdict
from pathlib import Path
from typing import Optional

import websockets
from websockets.exceptions import ConnectionClosedError, WebSocketException

from kinetic import (
    ConfigurationError,
    Diagnostic,
    Disconnected,
    KineticMonitor,
    MonitorSettings,
    SessionClosedError,
    encode_identify,
)
from kinetic.config import configure_logging
from kinetic.display import DisplayPreferences, summary_lines
from kinetic.energy import energy_report
from kinetic.profiles import PROFILES, list_profiles
from kinetic.telemetry import EventRecorder


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Watch realtime kinetic telemetry from the local daemon")
    parser.add_argument("--endpoint", type=str, default=None, help="WebSocket URL of the telemetry daemon")
    parser.add_argument(
        "--profile",
        choices=sorted(PROFILES.keys()),
        default=None,
        help="Device profile used to convert keystrokes into work",
    )
    parser.add_argument(
        "--list-profiles",
        action="store_true",
        help="Print the available device profiles and exit",
    )
    parser.add_argument(
        "--units",
        choices=["metric", "centimeters"],
        default="metric",
        help="Unit system for velocity and acceleration",
    )
    parser.add_argument(
        "--reconnect-delay",
        type=float,
        default=None,
        help="Seconds to wait between reconnect attempts",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging verbosity for session diagnostics",
        choices=["CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"],
    )
    parser.add_argument("--record", type=Path, default=None, help="Append every event to this JSONL file")
    parser.add_argument(
        "--raw",
        action="store_true",
        help="Print raw daemon frames instead of derived metrics (single connection)",
    )
    parser.add_argument(
        "--no-clear",
        action="store_true",
        help="Append output instead of redrawing the screen",
    )
    parser.add_argument(
        "--show-config",
        action="store_true",
        help="Display the resolved settings before connecting",
    )
    return parser


async def stream_raw(endpoint: str) -> int:
    """Identify once and print every text frame until the daemon closes."""

    print(f"Connecting to {endpoint}...")
    try:
        connection = await websockets.connect(endpoint)
    except (OSError, WebSocketException) as exc:
        print(f"Failed to connect: {exc}", file=sys.stderr)
        return 1
    async with connection:
        print("Connected! Sending identify...")
        await connection.send(encode_identify())
        print("Listening for frames. Press Ctrl+C to exit.")
        try:
            async for frame in connection:
                if isinstance(frame, bytes):
                    print(f"<binary frame: {len(frame)} bytes>")
                else:
                    print(frame)
        except ConnectionClosedError as exc:
            print(f"Error: {exc}", file=sys.stderr)
            return 1
    print("Connection closed.")
    return 0


def _start_stdin_reader(loop: asyncio.AbstractEventLoop, lines: "asyncio.Queue[str]") -> None:
    def _pump() -> None:
        for line in sys.stdin:
            loop.call_soon_threadsafe(lines.put_nowait, line)
        loop.call_soon_threadsafe(lines.put_nowait, "")

    threading.Thread(target=_pump, name="kinetic-stdin", daemon=True).start()


async def _read_commands(monitor: KineticMonitor, preferences: DisplayPreferences, stop: asyncio.Event) -> None:
    lines: "asyncio.Queue[str]" = asyncio.Queue()
    _start_stdin_reader(asyncio.get_running_loop(), lines)
    while not stop.is_set():
        line = await lines.get()
        if not line:
            return
        command = line.strip().lower()
        try:
            if command in {"q", "quit", "exit"}:
                stop.set()
            elif command == "p":
                profile = monitor.cycle_profile()
                print(f"Profile: {profile.name}")
            elif command == "u":
                print(f"Units: {preferences.toggle_units()}")
            elif command == "pulse":
                await monitor.pulse()
            elif command == "open":
                await monitor.open_window()
            elif command:
                print(f"Unknown command '{command}' (p, u, pulse, open, q)")
        except SessionClosedError:
            stop.set()


async def watch(
    settings: MonitorSettings,
    *,
    preferences: DisplayPreferences,
    recorder: Optional[EventRecorder] = None,
    clear: bool = True,
) -> int:
    stop = asyncio.Event()
    async with KineticMonitor(settings) as monitor:
        reader = asyncio.create_task(_read_commands(monitor, preferences, stop))
        stopper = asyncio.create_task(stop.wait())
        try:
            while not stop.is_set():
                next_event = asyncio.ensure_future(monitor.next_event())
                done, _ = await asyncio.wait({next_event, stopper}, return_when=asyncio.FIRST_COMPLETED)
                if next_event not in done:
                    next_event.cancel()
                    break
                event = next_event.result()
                if recorder is not None:
                    recorder(event)
                if isinstance(event, Diagnostic):
                    logging.getLogger("kinetic.monitor").debug(event.message)
                    continue
                if clear:
                    print("\033c", end="")
                for line in summary_lines(monitor.latest, monitor.profile, preferences):
                    print(line)
                if isinstance(event, Disconnected):
                    print(f"Reconnecting in {settings.reconnect_delay:.0f}s...")
        finally:
            reader.cancel()
            stopper.cancel()
        report = energy_report(monitor.latest.accumulated_work_joules)
    print(f"Session work: {report.joules:.4f} J ({report.kilocalories:.6f} kcal). {report.describe_running()}.")
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.list_profiles:
        print(list_profiles())
        return 0

    try:
        settings = MonitorSettings.from_env(
            endpoint=args.endpoint,
            profile=args.profile,
            reconnect_delay=args.reconnect_delay,
            log_level=args.log_level,
        )
    except ConfigurationError as exc:
        parser.error(str(exc))

    configure_logging("kinetic", settings.log_level)

    if args.show_config:
        print(json.dumps(asdict(settings), indent=2))

    if args.raw:
        return asyncio.run(stream_raw(settings.endpoint))

    recorder = None
    if args.record is not None:
        recorder = EventRecorder(args.record, component="monitor")
        recorder.start(endpoint=settings.endpoint, profile=settings.profile)
    try:
        return asyncio.run(
            watch(
                settings,
                preferences=DisplayPreferences(units=args.units),
                recorder=recorder,
                clear=not args.no_clear,
            )
        )
    except KeyboardInterrupt:
        return 0
    finally:
        if recorder is not None:
            recorder.close()


if __name__ == "__main__":  # pragma: no cover
    signal.signal(signal.SIGINT, lambda sig, frame: sys.exit(0))
    sys.exit(main())
