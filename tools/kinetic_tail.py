"""Follow a kinetic event recording (``run_monitor.py --record``) like ``tail -f``.

Prints the last few records of the file, then every record appended to it
while the monitor keeps running.  ``--once`` prints the backlog and exits.
"""

from __future__ import annotations

import argparse
import sys
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Set, TextIO

from kinetic.telemetry import RECORDING_KINDS, parse_record


class RecordingFollower:
    """Incremental reader that only hands out complete lines."""

    def __init__(self, handle: TextIO, kinds: Optional[Set[str]] = None) -> None:
        self._handle = handle
        self._kinds = kinds
        self._partial = ""

    def poll(self) -> List[Dict[str, Any]]:
        records = []
        while True:
            chunk = self._handle.readline()
            if not chunk:
                break
            if not chunk.endswith("\n"):
                # The writer is mid-line; keep it for the next poll.
                self._partial += chunk
                break
            line, self._partial = self._partial + chunk, ""
            record = parse_record(line)
            if record is not None and (not self._kinds or record["kind"] in self._kinds):
                records.append(record)
        return records


def format_event(record: Dict[str, Any]) -> str:
    stamp = time.strftime("%H:%M:%S", time.localtime(float(record.get("timestamp") or 0.0)))
    kind = record.get("kind")
    if kind == "start":
        return f"[{stamp}] recording started: {record.get('endpoint', '?')} ({record.get('profile', '?')})"
    if kind == "diagnostic":
        return f"[{stamp}] diagnostic: {record.get('message', '')}"
    state = record.get("state") or {}
    line = (
        f"[{stamp}] {kind}: {state.get('currentPowerWatts', 0.0):.4f} W, "
        f"work {state.get('accumulatedWorkJoules', 0.0):.4f} J"
    )
    if kind == "disconnected":
        line += f" ({record.get('reason') or 'no reason'})"
    return line


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Follow a kinetic JSONL recording.")
    parser.add_argument("input", type=Path, help="Path to the JSONL recording")
    parser.add_argument("--backlog", type=int, default=10, help="Records to show from before startup")
    parser.add_argument("--interval", type=float, default=0.5, help="Seconds between polls for new records")
    parser.add_argument(
        "--kind",
        action="append",
        choices=RECORDING_KINDS,
        help="Only show these record kinds (repeatable)",
    )
    parser.add_argument("--once", action="store_true", help="Print the backlog and exit")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    if args.backlog < 0:
        build_parser().error("--backlog cannot be negative")
    kinds = set(args.kind) if args.kind else None
    try:
        handle = args.input.open(encoding="utf-8")
    except FileNotFoundError:
        print(f"No recording at {args.input}", file=sys.stderr)
        return 1

    with handle:
        follower = RecordingFollower(handle, kinds)
        backlog = follower.poll()
        for record in backlog[-args.backlog:] if args.backlog else []:
            print(format_event(record))
        if args.once:
            return 0
        try:
            while True:
                for record in follower.poll():
                    print(format_event(record), flush=True)
                time.sleep(args.interval)
        except KeyboardInterrupt:
            return 0


if __name__ == "__main__":
    sys.exit(main())
