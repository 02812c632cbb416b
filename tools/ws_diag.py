"""Probe the telemetry daemon with candidate subscription frames.

Useful when a daemon release changes its handshake: every probe is sent once,
then every frame the daemon answers with is printed until it disconnects.
"""

from __future__ import annotations

import argparse
import asyncio
import sys

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

DEFAULT_PROBES = (
    '{"source":"plugin","action":"identify"}',
    '{"action": "realtime"}',
    "/v1/realtime",
    "realtime",
    '{"request": "realtime"}',
)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Send probe frames to the telemetry daemon and dump replies.")
    parser.add_argument("--endpoint", default="ws://127.0.0.1:3489", help="WebSocket URL of the daemon")
    parser.add_argument(
        "--probe",
        action="append",
        dest="probes",
        help="Frame to send (repeatable). Defaults to a built-in probe list.",
    )
    parser.add_argument("--interval", type=float, default=0.5, help="Seconds between probes")
    return parser


async def probe(endpoint: str, frames: list[str], interval: float) -> int:
    print(f"Connecting to {endpoint}...")
    try:
        connection = await websockets.connect(endpoint)
    except (OSError, WebSocketException) as exc:
        print(f"Failed to connect: {exc}")
        return 1

    async with connection:
        print(f"Connected to {endpoint}!")
        for frame in frames:
            print(f"Sending: {frame}")
            try:
                await connection.send(frame)
            except ConnectionClosed as exc:
                print(f"Failed to send: {exc}")
                return 1
            await asyncio.sleep(interval)

        print("Waiting for messages...")
        try:
            async for message in connection:
                if isinstance(message, bytes):
                    print(f"Received Binary: {len(message)} bytes")
                else:
                    print(f"Received Text: {message}")
        except ConnectionClosed as exc:
            print(f"Error: {exc}")
            return 1
    print("Connection closed")
    return 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        return asyncio.run(probe(args.endpoint, args.probes or list(DEFAULT_PROBES), args.interval))
    except KeyboardInterrupt:
        return 0


if __name__ == "__main__":
    sys.exit(main())
