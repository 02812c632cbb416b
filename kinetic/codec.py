"""Wire codec for the local telemetry daemon's WebSocket protocol.

The daemon speaks loosely-typed JSON text frames.  Outbound requests are
small ``{"source": "plugin", "action": ...}`` objects; inbound frames carry an
``action`` tag and, for status updates, a nested ``data`` payload.  This module
turns both directions into typed values without touching any socket, and it
never raises on malformed input: every inbound frame decodes to exactly one
of :class:`StatusUpdate`, :class:`UnknownAction` or :class:`Unparseable`.
"""

from __future__ import annotations

import enum
import json
import math
import re
from dataclasses import dataclass, field
from typing import Any, Mapping, Union

__all__ = [
    "DecodedMessage",
    "OutboundCommand",
    "RawSample",
    "StatusUpdate",
    "UnknownAction",
    "Unparseable",
    "decode",
    "encode_command",
    "encode_identify",
    "parse_localized_float",
]

SOURCE = "plugin"
STATUS_ACTION = "update-status"

_NUMBER = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")


class OutboundCommand(enum.Enum):
    """Commands the consumer may relay to the daemon."""

    TRIGGER_PULSE = "pulse"
    OPEN_EXTERNAL_WINDOW = "open-window"

    @property
    def action(self) -> str:
        return self.value


@dataclass(frozen=True)
class RawSample:
    """One status reading as reported by the daemon."""

    unpulsed_keys: int
    unpulsed_clicks: int
    keys_per_second: float
    unpulsed_scrolls: int = 0
    heatmap: Mapping[str, int] = field(default_factory=dict)

    def as_dict(self) -> dict[str, object]:
        return {
            "unpulsedKeys": self.unpulsed_keys,
            "unpulsedClicks": self.unpulsed_clicks,
            "unpulsedScrolls": self.unpulsed_scrolls,
            "keysPerSecond": self.keys_per_second,
            "heatmap": dict(self.heatmap),
        }


@dataclass(frozen=True)
class StatusUpdate:
    sample: RawSample


@dataclass(frozen=True)
class UnknownAction:
    action: str
    raw: str


@dataclass(frozen=True)
class Unparseable:
    raw: str
    reason: str


DecodedMessage = Union[StatusUpdate, UnknownAction, Unparseable]


def _encode(action: str) -> str:
    return json.dumps({"source": SOURCE, "action": action}, separators=(",", ":"))


def encode_identify() -> str:
    """Return the handshake frame announcing this client as a plugin."""

    return _encode("identify")


def encode_command(command: OutboundCommand) -> str:
    return _encode(command.action)


def parse_localized_float(text: str) -> float:
    """Parse ``"2,17"`` or ``"2.17"`` as ``2.17``; anything else yields ``0.0``."""

    normalized = str(text).replace(",", ".")
    if not _NUMBER.fullmatch(normalized):
        return 0.0
    try:
        value = float(normalized)
    except ValueError:
        return 0.0
    if not math.isfinite(value):
        return 0.0
    return value


def _as_int(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, float) and math.isfinite(value):
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return 0
    return 0


def _as_mapping(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, dict) else {}


def _heatmap(value: Any) -> dict[str, int]:
    counts: dict[str, int] = {}
    for key, count in _as_mapping(value).items():
        if isinstance(count, int) and not isinstance(count, bool):
            counts[str(key)] = count
    return counts


def _sample_from(data: Mapping[str, Any]) -> RawSample:
    realtime = _as_mapping(data.get("realtime"))
    unpulsed = _as_mapping(data.get("unpulsed"))
    keys = realtime.get("keys")
    return RawSample(
        unpulsed_keys=_as_int(unpulsed.get("keys")),
        unpulsed_clicks=_as_int(unpulsed.get("clicks")),
        unpulsed_scrolls=_as_int(unpulsed.get("scrolls")),
        keys_per_second=parse_localized_float(keys) if keys is not None else 0.0,
        heatmap=_heatmap(data.get("heatmap")),
    )


def decode(text: str) -> DecodedMessage:
    """Decode one inbound text frame."""

    try:
        payload = json.loads(text)
    except (TypeError, ValueError) as exc:
        return Unparseable(raw=text, reason=f"invalid JSON: {exc}")

    if not isinstance(payload, dict):
        return Unparseable(raw=text, reason="frame is not a JSON object")
    action = payload.get("action")
    if not isinstance(action, str):
        return Unparseable(raw=text, reason="missing action")
    if action != STATUS_ACTION:
        return UnknownAction(action=action, raw=text)

    data = payload.get("data")
    if not isinstance(data, dict):
        return Unparseable(raw=text, reason="status update without data")
    return StatusUpdate(sample=_sample_from(data))
