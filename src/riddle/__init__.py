"""Onchain riddle — rotator and participant submission client."""

__version__ = "0.1.0"
