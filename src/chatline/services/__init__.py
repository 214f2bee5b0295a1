# src/chatline/services/__init__.py
"""Business logic services for the Chatline gateway."""

from .cipher import MessageCipher
from .identity import Identity, IdentityVerifier
from .message_pipeline import Attachment, MessagePipeline
from .rooms import room_for

__all__ = [
    "Attachment",
    "Identity",
    "IdentityVerifier",
    "MessageCipher",
    "MessagePipeline",
    "room_for",
]
