"""Device profile catalog shared by the monitor, CLI and dashboard."""

from __future__ import annotations

from typing import Mapping, Optional, Tuple

from .errors import UnknownProfileError
from .physics import DeviceProfile

__all__ = [
    "DEFAULT_PROFILE",
    "PROFILES",
    "list_profiles",
    "next_profile_key",
    "profile_key",
    "resolve_profile",
]

# Insertion order is the cycling order used by ``next_profile_key``.
PROFILES: Mapping[str, DeviceProfile] = {
    "cherry_mx_red": DeviceProfile("Cherry MX Red", force_newtons=0.45, distance_meters=0.004),
    "cherry_mx_blue": DeviceProfile("Cherry MX Blue", force_newtons=0.50, distance_meters=0.004),
    "cherry_mx_brown": DeviceProfile("Cherry MX Brown", force_newtons=0.55, distance_meters=0.004),
    "membrane": DeviceProfile("Membrane", force_newtons=0.60, distance_meters=0.0035),
}

DEFAULT_PROFILE = "cherry_mx_red"


def list_profiles() -> str:
    """Return a formatted table of the catalog."""

    lines = ["Available device profiles:"]
    for key, profile in PROFILES.items():
        lines.append(
            f"  - {key}: {profile.name} "
            f"({profile.force_newtons * 100:.0f} cN, {profile.distance_meters * 1000:.1f} mm)"
        )
    return "\n".join(lines)


def resolve_profile(key: Optional[str]) -> DeviceProfile:
    """Look up a catalog entry, falling back to the default when ``key`` is empty."""

    if not key:
        return PROFILES[DEFAULT_PROFILE]
    normalised = key.strip().lower().replace("-", "_")
    profile = PROFILES.get(normalised)
    if profile is None:
        raise UnknownProfileError(
            f"Unknown device profile '{key}'. Choose one of: {', '.join(PROFILES)}."
        )
    return profile


def profile_key(profile: DeviceProfile) -> Optional[str]:
    for key, candidate in PROFILES.items():
        if candidate == profile:
            return key
    return None


def next_profile_key(current: Optional[str]) -> str:
    keys: Tuple[str, ...] = tuple(PROFILES)
    if current not in keys:
        return keys[0]
    return keys[(keys.index(current) + 1) % len(keys)]
