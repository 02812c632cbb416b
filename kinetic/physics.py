"""Kinetic state derivation from raw keystroke telemetry.

Each status sample reports the daemon's unpulsed key counter and the current
keys-per-second rate.  Combined with the actuation force and travel distance
of the input device this yields an estimate of the mechanical power, finger
velocity, burst acceleration and accumulated work of typing.

:func:`advance` is the only mutator of :class:`KineticState`.  It performs no
I/O and takes the wall-clock timestamp as an argument so it can be driven
deterministically from tests.
"""

from __future__ import annotations

from collections import deque
from decimal import ROUND_HALF_UP, Decimal
from dataclasses import dataclass, field
from typing import Deque, Dict, Optional, Tuple

from .codec import RawSample

__all__ = [
    "DEFAULT_HISTORY_CAPACITY",
    "DeviceProfile",
    "KineticSnapshot",
    "KineticState",
    "advance",
]

DEFAULT_HISTORY_CAPACITY = 100


@dataclass(frozen=True)
class DeviceProfile:
    """Actuation parameters of an input device."""

    name: str
    force_newtons: float
    distance_meters: float

    @property
    def work_per_keystroke(self) -> float:
        """Joules spent on one full actuation."""

        return self.force_newtons * self.distance_meters

    def as_dict(self) -> Dict[str, object]:
        return {
            "name": self.name,
            "forceNewtons": self.force_newtons,
            "distanceMeters": self.distance_meters,
        }


@dataclass(frozen=True)
class KineticSnapshot:
    """Immutable copy of :class:`KineticState` handed to consumers."""

    current_power_watts: float = 0.0
    peak_velocity_mps: float = 0.0
    accumulated_work_joules: float = 0.0
    burst_acceleration: float = 0.0
    history_power_milliwatts: Tuple[int, ...] = ()
    is_connected: bool = False
    connection_error: Optional[str] = None
    last_unpulsed_keys: int = 0
    last_velocity_mps: float = 0.0
    last_update: Optional[float] = None

    def as_dict(self) -> Dict[str, object]:
        return {
            "currentPowerWatts": self.current_power_watts,
            "peakVelocityMps": self.peak_velocity_mps,
            "accumulatedWorkJoules": self.accumulated_work_joules,
            "burstAcceleration": self.burst_acceleration,
            "historyPowerMilliwatts": list(self.history_power_milliwatts),
            "isConnected": self.is_connected,
            "connectionError": self.connection_error,
            "lastUnpulsedKeys": self.last_unpulsed_keys,
            "lastVelocityMps": self.last_velocity_mps,
            "lastUpdate": self.last_update,
        }


@dataclass
class KineticState:
    """Running physical metrics for the lifetime of a telemetry session.

    Peak velocity and burst acceleration are high-water marks and accumulated
    work only grows; none of them is reset when the transport reconnects.
    """

    current_power_watts: float = 0.0
    peak_velocity_mps: float = 0.0
    accumulated_work_joules: float = 0.0
    burst_acceleration: float = 0.0
    history_power_milliwatts: Deque[int] = field(
        default_factory=lambda: deque(maxlen=DEFAULT_HISTORY_CAPACITY)
    )
    is_connected: bool = False
    connection_error: Optional[str] = None
    last_unpulsed_keys: int = 0
    last_velocity_mps: float = 0.0
    last_update: Optional[float] = None

    @classmethod
    def with_capacity(cls, capacity: int) -> "KineticState":
        if capacity <= 0:
            raise ValueError("history capacity must be positive")
        return cls(history_power_milliwatts=deque(maxlen=capacity))

    def mark_connected(self, error: Optional[str] = None) -> None:
        self.is_connected = True
        self.connection_error = error

    def mark_disconnected(self, reason: Optional[str]) -> None:
        self.is_connected = False
        self.connection_error = reason

    def snapshot(self) -> KineticSnapshot:
        return KineticSnapshot(
            current_power_watts=self.current_power_watts,
            peak_velocity_mps=self.peak_velocity_mps,
            accumulated_work_joules=self.accumulated_work_joules,
            burst_acceleration=self.burst_acceleration,
            history_power_milliwatts=tuple(self.history_power_milliwatts),
            is_connected=self.is_connected,
            connection_error=self.connection_error,
            last_unpulsed_keys=self.last_unpulsed_keys,
            last_velocity_mps=self.last_velocity_mps,
            last_update=self.last_update,
        )


def _round_half_away(value: float) -> int:
    # Exact on the binary value, so 0.49999999999999994 stays below the tie.
    return int(Decimal(value).to_integral_value(rounding=ROUND_HALF_UP))


def _milliwatts(power_watts: float) -> int:
    # The history only stores non-negative readings.
    return max(0, _round_half_away(power_watts * 1000.0))


def advance(
    state: KineticState,
    sample: RawSample,
    profile: DeviceProfile,
    now: float,
) -> KineticState:
    """Fold ``sample`` into ``state`` and return it.

    ``now`` is a timestamp in seconds.  The profile only shapes this update,
    so switching profiles mid-stream never rewrites earlier totals.
    """

    dt = 0.0 if state.last_update is None else now - state.last_update
    state.last_update = now

    # A zero counter means no prior reading; the first reading only seeds it.
    if state.last_unpulsed_keys == 0:
        delta = 0
    else:
        delta = max(0, sample.unpulsed_keys - state.last_unpulsed_keys)
    state.last_unpulsed_keys = sample.unpulsed_keys

    power = profile.force_newtons * profile.distance_meters * sample.keys_per_second
    velocity = sample.keys_per_second * profile.distance_meters

    if dt > 0:
        acceleration = abs(velocity - state.last_velocity_mps) / dt
        state.burst_acceleration = max(state.burst_acceleration, acceleration)
    state.last_velocity_mps = velocity

    state.accumulated_work_joules += profile.force_newtons * profile.distance_meters * delta

    state.current_power_watts = power
    state.peak_velocity_mps = max(state.peak_velocity_mps, velocity)

    state.history_power_milliwatts.append(_milliwatts(power))
    return state
