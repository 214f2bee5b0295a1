"""Realtime connection layer: presence, rooms and per-connection sessions."""

from .hub import Connection, ConnectionHub, get_connection_hub
from .presence import PresenceRegistry, get_presence_registry
from .session import ChatSession, SessionState

__all__ = [
    "ChatSession",
    "Connection",
    "ConnectionHub",
    "PresenceRegistry",
    "SessionState",
    "get_connection_hub",
    "get_presence_registry",
]
