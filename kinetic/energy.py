"""Energy bookkeeping helpers for kinetic readings.

Typing power is tiny: a 305 WPM burst is roughly 25 keys per second, which at
0.45 N over 4 mm is about 0.061 W.  The gauge full scale below frames that
human peak, and the hourly limit corresponds to roughly 70 WPM sustained.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict

__all__ = [
    "EnergyReport",
    "HEALTH_LIMIT_JOULES_PER_HOUR",
    "MAX_GAUGE_POWER_WATTS",
    "energy_report",
    "hourly_intensity",
    "intensity_level",
    "power_gauge_ratio",
]

MAX_GAUGE_POWER_WATTS = 0.065
HEALTH_LIMIT_JOULES_PER_HOUR = 50.0

JOULES_PER_CALORIE = 4.184
KCAL_PER_M_AND_M = 10.0
KCAL_PER_MINUTE_RUNNING = 10.0


@dataclass(frozen=True)
class EnergyReport:
    joules: float
    calories: float
    kilocalories: float
    m_and_ms: float
    running_minutes: float

    def as_dict(self) -> Dict[str, float]:
        return {
            "joules": self.joules,
            "calories": self.calories,
            "kilocalories": self.kilocalories,
            "mAndMs": self.m_and_ms,
            "runningMinutes": self.running_minutes,
        }

    def describe_running(self) -> str:
        if self.running_minutes >= 1.0:
            return f"Like running for {self.running_minutes:.1f} minutes"
        return f"Like running for {self.running_minutes * 60.0:.0f} seconds"


def energy_report(joules: float) -> EnergyReport:
    calories = joules / JOULES_PER_CALORIE
    kilocalories = calories / 1000.0
    return EnergyReport(
        joules=joules,
        calories=calories,
        kilocalories=kilocalories,
        m_and_ms=kilocalories / KCAL_PER_M_AND_M,
        running_minutes=kilocalories / KCAL_PER_MINUTE_RUNNING,
    )


def hourly_intensity(power_watts: float) -> float:
    """Joules per hour if ``power_watts`` were sustained."""

    return power_watts * 3600.0


def power_gauge_ratio(power_watts: float) -> float:
    return min(1.0, max(0.0, power_watts / MAX_GAUGE_POWER_WATTS))


def intensity_level(power_watts: float) -> str:
    ratio = min(1.0, hourly_intensity(power_watts) / HEALTH_LIMIT_JOULES_PER_HOUR)
    if ratio > 0.9:
        return "high"
    if ratio > 0.7:
        return "elevated"
    return "ok"
