"""API endpoint modules for version 1."""

from .auth import router as auth_router
from .chat import router as chat_router
from .socket import router as socket_router
from .system import router as system_router

__all__ = [
    "auth_router",
    "chat_router",
    "socket_router",
    "system_router",
]
