"""Error taxonomy shared by the message pipeline and realtime sessions.

Every per-event failure is one of these. None of them is fatal to a
connection; only ``AuthError`` is ever visible to the client, as a refused
connection or a 401.
"""

from __future__ import annotations


class ChatError(RuntimeError):
    """Base exception for all gateway failures."""


class AuthError(ChatError):
    """Raised when a token cannot be turned into a known identity."""


class AuthorizationError(ChatError):
    """Raised when an identity attempts to mutate something it does not own."""


class ValidationError(ChatError):
    """Raised when an inbound message or payload is malformed."""


class DecryptionError(ChatError):
    """Raised when stored ciphertext cannot be decrypted."""


class NotFoundError(ChatError):
    """Raised when the target of a lookup or mutation does not exist."""


class StoreError(ChatError):
    """Raised when the persistent store fails."""


__all__ = [
    "ChatError",
    "AuthError",
    "AuthorizationError",
    "ValidationError",
    "DecryptionError",
    "NotFoundError",
    "StoreError",
]
