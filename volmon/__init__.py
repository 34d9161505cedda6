"""Periodic storage volume monitor."""

__version__ = "1.0.0"
