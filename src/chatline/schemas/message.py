"""Message views as they leave the process, plus chat history payloads."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class AttachmentView(BaseModel):
    """Image attachment re-encoded for transport."""

    data: str = Field(..., description="Base64-encoded image bytes")
    content_type: str = Field(..., alias="contentType", description="MIME type of the image")

    model_config = ConfigDict(populate_by_name=True)


class MessageView(BaseModel):
    """A rehydrated message: plaintext content and base64 attachment.

    This is the only shape in which a stored message is ever emitted.
    """

    id: int
    sender: str
    receiver: str
    content: str | None = None
    image: AttachmentView | None = None
    is_read: bool = Field(False, alias="isRead")
    timestamp: datetime

    model_config = ConfigDict(populate_by_name=True)

    def to_payload(self) -> dict:
        """Return the JSON-safe dict sent to clients."""
        return self.model_dump(mode="json", by_alias=True)


class MarkReadRequest(BaseModel):
    """Mark every unread message from ``sender`` to ``receiver`` as read."""

    sender: str
    receiver: str


class MarkReadResponse(BaseModel):
    msg: str
    count: int


class UnreadCount(BaseModel):
    """Number of unread messages from one sender."""

    sender: str
    count: int
