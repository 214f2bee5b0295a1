"""Data access for users and messages."""

from .message_repo import MessageRepository
from .user_repo import UserRepository

__all__ = ["MessageRepository", "UserRepository"]
