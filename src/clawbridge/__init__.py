"""Clawbridge runner: agent-driven connection discovery."""

__version__ = "1.2.0"
