"""Installer-style step runner with live progress and interactive pacing."""

__version__ = "0.1.0"
