"""Lingua AI desktop client: offline-resilient authentication core."""

__version__ = "0.1.0"
