"""Fuel station trading network synchronization."""

__version__ = "0.1.0"
