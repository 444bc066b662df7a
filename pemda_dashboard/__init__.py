"""PEMDA DIY dashboard API."""

__version__ = "1.0.0"
