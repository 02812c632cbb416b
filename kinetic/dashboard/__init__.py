"""Kinetic HTTP dashboard package."""

from .app import create_app
from .stream import KineticStream

__all__ = ["create_app", "KineticStream"]
