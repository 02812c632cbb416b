"""HTTP dashboard launcher for realtime kinetic telemetry."""

from __future__ import annotations

import argparse
import signal
import sys
from typing import Optional

import uvicorn

from kinetic import ConfigurationError, MonitorSettings
from kinetic.config import configure_logging
from kinetic.dashboard import create_app
from kinetic.profiles import PROFILES


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Serve the kinetic telemetry dashboard over HTTP")
    parser.add_argument("--host", type=str, default="127.0.0.1", help="Bind address")
    parser.add_argument("--port", type=int, default=8081, help="Port to listen on")
    parser.add_argument("--endpoint", type=str, default=None, help="WebSocket URL of the telemetry daemon")
    parser.add_argument(
        "--profile",
        choices=sorted(PROFILES.keys()),
        default=None,
        help="Initial device profile",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging verbosity for session diagnostics",
        choices=["CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"],
    )
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    if not 0 < args.port < 65536:
        parser.error("--port must be between 1 and 65535")

    try:
        settings = MonitorSettings.from_env(
            endpoint=args.endpoint,
            profile=args.profile,
            log_level=args.log_level,
        )
    except ConfigurationError as exc:
        parser.error(str(exc))

    configure_logging("kinetic", settings.log_level)
    print(f"Serving kinetic dashboard on http://{args.host}:{args.port} (daemon={settings.endpoint})")
    uvicorn.run(create_app(settings), host=args.host, port=args.port, log_level=settings.log_level.lower())
    return 0


if __name__ == "__main__":  # pragma: no cover
    signal.signal(signal.SIGINT, lambda sig, frame: sys.exit(0))
    sys.exit(main())
