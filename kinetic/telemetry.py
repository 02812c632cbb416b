"""JSONL recording of connection events.

A recording is a plain text file with one JSON object per line.  Every line is
the event's own :meth:`as_dict` payload tagged with the component that wrote
it, for example::

    {"component": "monitor", "kind": "sample", "timestamp": 1700000000.5,
     "sample": {...}, "state": {...}}

Each time a recorder opens the file it first appends a ``start`` line carrying
the monitor context (endpoint and profile), so several sessions can share one
file and still be told apart.
"""

from __future__ import annotations

import json
import time
from pathlib import Path
from typing import Any, Dict, Optional

from .events import ConnectionEvent

__all__ = [
    "RECORDING_KINDS",
    "EventRecorder",
    "parse_record",
]

RECORDING_KINDS = ("start", "connected", "disconnected", "sample", "diagnostic")


class EventRecorder:
    """Append connection events to ``path``; usable as a context manager."""

    def __init__(self, path: Path, *, component: str = "monitor") -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        self.path = path
        self.component = component
        self._file = path.open("a", encoding="utf-8")

    def __enter__(self) -> "EventRecorder":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def start(self, **context: object) -> None:
        self._append({"kind": "start", "timestamp": time.time(), **context})

    def __call__(self, event: ConnectionEvent) -> None:
        self._append(event.as_dict())

    def _append(self, payload: Dict[str, Any]) -> None:
        # Flushed per line so a tailing reader never waits on a full buffer.
        self._file.write(json.dumps({"component": self.component, **payload}, ensure_ascii=False) + "\n")
        self._file.flush()

    def close(self) -> None:
        if not self._file.closed:
            self._file.close()


def parse_record(line: str) -> Optional[Dict[str, Any]]:
    """Decode one recording line; blank, truncated or foreign lines give ``None``."""

    line = line.strip()
    if not line:
        return None
    try:
        record = json.loads(line)
    except ValueError:
        return None
    if not isinstance(record, dict) or record.get("kind") not in RECORDING_KINDS:
        return None
    return record

