"""SQLAlchemy models for the Chatline gateway."""

from .message import Message
from .user import User

__all__ = ["Message", "User"]
