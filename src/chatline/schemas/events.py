"""Inbound realtime event payloads.

Wire names are camelCase; attributes are snake_case.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


class _EventModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class EventFrame(_EventModel):
    """Envelope of every frame: ``{"event": name, "data": payload}``."""

    event: str = Field(..., min_length=1)
    data: Any = None


class RegisterUsersEvent(_EventModel):
    identity: str = Field(..., min_length=1)

    @model_validator(mode="before")
    @classmethod
    def accept_bare_identity(cls, value: Any) -> Any:
        if isinstance(value, str):
            return {"identity": value}
        return value


class JoinRoomEvent(_EventModel):
    room_id: str = Field(..., alias="roomId", min_length=1)

    @model_validator(mode="before")
    @classmethod
    def accept_bare_room(cls, value: Any) -> Any:
        if isinstance(value, str):
            return {"roomId": value}
        return value


class ChatMessageEvent(_EventModel):
    """Send request. Content or image is required; checked by the pipeline."""

    sender: str = Field(..., min_length=1)
    receiver: str = Field(..., min_length=1)
    content: str | None = None
    image_base64: str | None = Field(None, alias="imageBase64")
    image_type: str | None = Field(None, alias="imageType")


class TypingEvent(_EventModel):
    room_id: str = Field(..., alias="roomId", min_length=1)
    sender: str | None = None


class DeleteMessageEvent(_EventModel):
    message_id: int = Field(..., alias="messageId")
    room_id: str = Field(..., alias="roomId", min_length=1)


class EditMessageEvent(_EventModel):
    message_id: int = Field(..., alias="messageId")
    new_content: str = Field(..., alias="newContent")
    room_id: str = Field(..., alias="roomId", min_length=1)
