"""Settings and logging setup for the kinetic telemetry client."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, replace
from typing import Mapping, Optional

from .errors import ConfigurationError
from .profiles import DEFAULT_PROFILE, PROFILES

__all__ = [
    "DEFAULT_ENDPOINT",
    "DEFAULT_RECONNECT_DELAY",
    "MonitorSettings",
    "coerce_log_level",
    "configure_logging",
]

DEFAULT_ENDPOINT = "ws://127.0.0.1:3489"
DEFAULT_RECONNECT_DELAY = 5.0

ENV_PREFIX = "KINETIC_"


def coerce_log_level(level: int | str) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.upper())
    if isinstance(resolved, str):
        raise ConfigurationError(f"Unknown log level: {level}")
    return resolved


def configure_logging(name: str, level: int | str = logging.INFO) -> logging.Logger:
    """Return ``name``'s logger with a console handler attached once."""

    logger = logging.getLogger(name)
    root = logging.getLogger(name.split(".")[0])
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(
            logging.Formatter("[%(asctime)s] %(levelname)s - %(message)s", "%H:%M:%S")
        )
        root.addHandler(handler)
    root.setLevel(coerce_log_level(level))
    return logger


@dataclass(frozen=True)
class MonitorSettings:
    """Connection and buffering parameters of a monitor session."""

    endpoint: str = DEFAULT_ENDPOINT
    reconnect_delay: float = DEFAULT_RECONNECT_DELAY
    event_capacity: int = 10
    command_capacity: int = 10
    history_capacity: int = 100
    profile: str = DEFAULT_PROFILE
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if not self.endpoint.startswith(("ws://", "wss://")):
            raise ConfigurationError(f"endpoint must be a ws:// URL, got '{self.endpoint}'")
        if self.reconnect_delay < 0:
            raise ConfigurationError("reconnect_delay cannot be negative.")
        for name in ("event_capacity", "command_capacity", "history_capacity"):
            if getattr(self, name) <= 0:
                raise ConfigurationError(f"{name} must be positive.")
        if self.profile not in PROFILES:
            raise ConfigurationError(
                f"Unknown device profile '{self.profile}'. Choose one of: {', '.join(PROFILES)}."
            )
        coerce_log_level(self.log_level)

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        **overrides: object,
    ) -> "MonitorSettings":
        """Build settings from ``KINETIC_*`` variables, then explicit overrides."""

        env = os.environ if environ is None else environ
        values: dict[str, object] = {}
        if env.get(ENV_PREFIX + "ENDPOINT"):
            values["endpoint"] = env[ENV_PREFIX + "ENDPOINT"]
        if env.get(ENV_PREFIX + "RECONNECT_DELAY"):
            raw = env[ENV_PREFIX + "RECONNECT_DELAY"]
            try:
                values["reconnect_delay"] = float(raw)
            except ValueError as exc:
                raise ConfigurationError(
                    f"{ENV_PREFIX}RECONNECT_DELAY must be a number, got '{raw}'"
                ) from exc
        if env.get(ENV_PREFIX + "PROFILE"):
            values["profile"] = env[ENV_PREFIX + "PROFILE"].strip().lower().replace("-", "_")
        if env.get(ENV_PREFIX + "LOG_LEVEL"):
            values["log_level"] = env[ENV_PREFIX + "LOG_LEVEL"].upper()
        values.update({key: value for key, value in overrides.items() if value is not None})
        return cls(**values)  # type: ignore[arg-type]

    def with_overrides(self, **changes: object) -> "MonitorSettings":
        return replace(self, **{k: v for k, v in changes.items() if v is not None})
