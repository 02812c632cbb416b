"""Display preferences and status text for kinetic readings."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Dict, Literal, Optional, Tuple

from .energy import (
    HEALTH_LIMIT_JOULES_PER_HOUR,
    MAX_GAUGE_POWER_WATTS,
    hourly_intensity,
    intensity_level,
    power_gauge_ratio,
)
from .physics import DeviceProfile, KineticSnapshot

UnitSystem = Literal["metric", "centimeters"]

_REFUSED_MARKERS = ("No connection could be made", "Connection refused", "Connect call failed")


@dataclass(slots=True)
class DisplayPreferences:
    """Unit system used when rendering velocities and accelerations."""

    units: UnitSystem = "metric"

    def update(self, *, units: UnitSystem | None = None) -> None:
        if units is not None:
            self.units = validate_units(units)

    def toggle_units(self) -> UnitSystem:
        self.units = "centimeters" if self.units == "metric" else "metric"
        return self.units

    def as_dict(self) -> dict[str, str]:
        return {"units": self.units}


def validate_units(units: str) -> UnitSystem:
    if units not in {"metric", "centimeters"}:
        raise ValueError("Unsupported unit system")
    return units  # type: ignore[return-value]


def format_motion(snapshot: KineticSnapshot, units: UnitSystem) -> Tuple[str, str, str]:
    """Return ``(peak velocity, burst acceleration, unit)`` strings."""

    if units == "centimeters":
        return (
            f"{snapshot.peak_velocity_mps * 100.0:.2f}",
            f"{snapshot.burst_acceleration * 100.0:.2f}",
            "cm/s",
        )
    return (
        f"{snapshot.peak_velocity_mps:.4f}",
        f"{snapshot.burst_acceleration:.4f}",
        "m/s",
    )


def gauge_bar(power_watts: float, width: int = 20) -> str:
    """Render ``power_watts`` against the gauge full scale as ``[####----]  40%``."""

    ratio = power_gauge_ratio(power_watts)
    filled = int(ratio * width + 0.5)
    return f"[{'#' * filled}{'-' * (width - filled)}] {ratio * 100:3.0f}%"


def status_text(snapshot: KineticSnapshot) -> str:
    if snapshot.is_connected:
        if snapshot.connection_error:
            return f"ERROR: {snapshot.connection_error}"
        if snapshot.last_update is not None:
            return time.strftime("%H:%M:%S", time.localtime(snapshot.last_update))
        return "WAITING..."
    error = snapshot.connection_error or "Retrying..."
    if any(marker in error for marker in _REFUSED_MARKERS):
        error = "Connection Refused (Check the telemetry daemon settings)"
    return f"DISCONNECTED: {error}"


def summary_lines(
    snapshot: KineticSnapshot,
    profile: DeviceProfile,
    preferences: Optional[DisplayPreferences] = None,
) -> list[str]:
    """Render a plain-text block describing ``snapshot``."""

    units = (preferences or DisplayPreferences()).units
    velocity, acceleration, unit = format_motion(snapshot, units)
    hourly = hourly_intensity(snapshot.current_power_watts)
    return [
        f"Kinetic Dashboard | {status_text(snapshot)}",
        f"Profile: {profile.name} ({profile.force_newtons * 100:.1f} cN, "
        f"{profile.distance_meters * 1000:.1f} mm)",
        f"Power:            {snapshot.current_power_watts:.4f} W",
        f"Gauge:            {gauge_bar(snapshot.current_power_watts)} of {MAX_GAUGE_POWER_WATTS:.3f} W",
        f"Velocity (peak):  {velocity} {unit}",
        f"Burst accel:      {acceleration} {unit}²",
        f"Hourly rate:      {hourly:.2f} J/h (limit {HEALTH_LIMIT_JOULES_PER_HOUR:.1f} J/h, "
        f"{intensity_level(snapshot.current_power_watts)})",
        f"Current session:  {snapshot.accumulated_work_joules:.4f} J",
    ]


def snapshot_view(snapshot: KineticSnapshot, preferences: DisplayPreferences) -> Dict[str, object]:
    velocity, acceleration, unit = format_motion(snapshot, preferences.units)
    return {
        "status": status_text(snapshot),
        "peakVelocity": velocity,
        "burstAcceleration": acceleration,
        "unit": unit,
        "gaugeRatio": power_gauge_ratio(snapshot.current_power_watts),
        "hourlyJoules": hourly_intensity(snapshot.current_power_watts),
        "intensity": intensity_level(snapshot.current_power_watts),
    }
