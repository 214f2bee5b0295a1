"""Chatline: a real-time two-party messaging gateway."""

__version__ = "0.1.0"
