"""Status and metric events emitted by the telemetry session."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Dict, Optional, Union

from .codec import RawSample
from .physics import KineticSnapshot

__all__ = [
    "Connected",
    "ConnectionEvent",
    "Diagnostic",
    "Disconnected",
    "Sample",
]


@dataclass(frozen=True)
class Connected:
    state: KineticSnapshot
    timestamp: float = field(default_factory=time.time)

    kind = "connected"

    def as_dict(self) -> Dict[str, object]:
        return {"kind": self.kind, "timestamp": self.timestamp, "state": self.state.as_dict()}


@dataclass(frozen=True)
class Disconnected:
    reason: Optional[str]
    state: KineticSnapshot
    timestamp: float = field(default_factory=time.time)

    kind = "disconnected"

    def as_dict(self) -> Dict[str, object]:
        return {
            "kind": self.kind,
            "timestamp": self.timestamp,
            "reason": self.reason,
            "state": self.state.as_dict(),
        }


@dataclass(frozen=True)
class Sample:
    """A decoded status reading together with the state derived from it."""

    sample: RawSample
    state: KineticSnapshot
    timestamp: float = field(default_factory=time.time)

    kind = "sample"

    def as_dict(self) -> Dict[str, object]:
        return {
            "kind": self.kind,
            "timestamp": self.timestamp,
            "sample": self.sample.as_dict(),
            "state": self.state.as_dict(),
        }


@dataclass(frozen=True)
class Diagnostic:
    message: str
    timestamp: float = field(default_factory=time.time)

    kind = "diagnostic"

    def as_dict(self) -> Dict[str, object]:
        return {"kind": self.kind, "timestamp": self.timestamp, "message": self.message}


ConnectionEvent = Union[Connected, Disconnected, Sample, Diagnostic]
