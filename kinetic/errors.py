"""Exception hierarchy shared by the kinetic telemetry client."""

from __future__ import annotations

__all__ = [
    "ChannelClosed",
    "ConfigurationError",
    "KineticError",
    "SessionClosedError",
    "UnknownProfileError",
]


class KineticError(Exception):
    """Base class for every error raised by this package."""


class ConfigurationError(KineticError, ValueError):
    """Raised when settings or environment overrides are invalid."""


class UnknownProfileError(ConfigurationError, KeyError):
    """Raised when a device profile key is not part of the catalog."""

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the plain message instead.
        return str(self.args[0]) if self.args else ""


class ChannelClosed(KineticError):
    """Raised by a :class:`kinetic.bus.Channel` once it has been closed."""


class SessionClosedError(KineticError, RuntimeError):
    """Raised when a command is sent to a monitor that is no longer running."""
