"""Realtime kinetic telemetry client for the local keystroke daemon."""

__version__ = "0.1.0"

from .bus import Channel, EventBus
from .codec import (
    OutboundCommand,
    RawSample,
    StatusUpdate,
    UnknownAction,
    Unparseable,
    decode,
    encode_command,
    encode_identify,
    parse_localized_float,
)
from .config import MonitorSettings
from .errors import (
    ChannelClosed,
    ConfigurationError,
    KineticError,
    SessionClosedError,
    UnknownProfileError,
)
from .events import Connected, ConnectionEvent, Diagnostic, Disconnected, Sample
from .monitor import KineticMonitor
from .physics import DeviceProfile, KineticSnapshot, KineticState, advance
from .profiles import PROFILES, resolve_profile
from .session import SessionState, TelemetrySession

__all__ = [
    "Channel",
    "ChannelClosed",
    "ConfigurationError",
    "Connected",
    "ConnectionEvent",
    "DeviceProfile",
    "Diagnostic",
    "Disconnected",
    "EventBus",
    "KineticError",
    "KineticMonitor",
    "KineticSnapshot",
    "KineticState",
    "MonitorSettings",
    "OutboundCommand",
    "PROFILES",
    "RawSample",
    "Sample",
    "SessionClosedError",
    "SessionState",
    "StatusUpdate",
    "TelemetrySession",
    "UnknownAction",
    "UnknownProfileError",
    "Unparseable",
    "advance",
    "decode",
    "encode_command",
    "encode_identify",
    "parse_localized_float",
    "resolve_profile",
    "__version__",
]
