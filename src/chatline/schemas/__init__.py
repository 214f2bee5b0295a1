"""
Pydantic schemas for HTTP payloads and realtime event frames.

These schemas define the structure of data crossing the transport edge.
"""

from .events import (
    ChatMessageEvent,
    DeleteMessageEvent,
    EditMessageEvent,
    EventFrame,
    JoinRoomEvent,
    RegisterUsersEvent,
    TypingEvent,
)
from .message import AttachmentView, MarkReadRequest, MarkReadResponse, MessageView, UnreadCount
from .user import (
    AuthResponse,
    ContactResponse,
    FederatedLoginRequest,
    LoginRequest,
    ProfileResponse,
    ProfileUpdateRequest,
    RegisterRequest,
    UserSummary,
)

__all__ = [
    "ChatMessageEvent", "DeleteMessageEvent", "EditMessageEvent", "EventFrame",
    "JoinRoomEvent", "RegisterUsersEvent", "TypingEvent",
    "AttachmentView", "MarkReadRequest", "MarkReadResponse", "MessageView", "UnreadCount",
    "AuthResponse", "ContactResponse", "FederatedLoginRequest", "LoginRequest", "ProfileResponse",
    "ProfileUpdateRequest", "RegisterRequest", "UserSummary",
]
