"""Version 1 API endpoints."""

from .endpoints import auth_router, chat_router, socket_router, system_router

__all__ = [
    "auth_router",
    "chat_router",
    "socket_router",
    "system_router",
]
