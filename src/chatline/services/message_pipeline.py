"""Message pipeline: validate, encrypt, persist and rehydrate messages.

Everything stored goes through here, and so does everything that leaves the
process. Outbound messages are always ``MessageView`` instances: text
decrypted (or replaced by a placeholder) and image bytes base64-encoded.
Mutations (edit, delete) are allowed only for the original sender.

The methods are synchronous and open one short-lived session per call; the
realtime layer runs them in worker threads.
"""

from __future__ import annotations

import base64
import binascii
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC

from sqlalchemy.orm import Session

from chatline.core.errors import AuthorizationError, NotFoundError, ValidationError
from chatline.core.settings import settings
from chatline.db.session import SessionLocal
from chatline.models.message import Message
from chatline.repositories.message_repo import MessageRepository
from chatline.repositories.user_repo import UserRepository
from chatline.schemas.message import AttachmentView, MessageView
from chatline.services.cipher import MessageCipher, get_message_cipher

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Attachment:
    """Binary image attachment as stored: raw bytes plus a MIME type."""

    data: bytes
    content_type: str

    @classmethod
    def from_base64(
        cls,
        encoded: str | None,
        content_type: str | None,
        *,
        max_bytes: int | None = None,
    ) -> Attachment | None:
        """Decode an attachment arriving from a client.

        Accepts a bare base64 string or a ``data:<type>;base64,`` URL.
        Returns None when no image was sent.

        Raises:
            ValidationError: On bad base64, a missing type, or an oversize image.
        """
        if not encoded:
            return None
        if encoded.startswith("data:") and "," in encoded:
            header, encoded = encoded.split(",", 1)
            if not content_type:
                content_type = header[5:].split(";", 1)[0] or None
        if not content_type:
            raise ValidationError("Image attachment requires a content type")
        try:
            data = base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise ValidationError("Image attachment must be valid base64") from exc
        limit = settings.max_image_bytes if max_bytes is None else max_bytes
        if len(data) > limit:
            raise ValidationError(f"Image attachment exceeds {limit} bytes")
        return cls(data=data, content_type=content_type)


class MessagePipeline:
    """Store and retrieve messages, enforcing content and ownership rules."""

    def __init__(
        self,
        session_factory: Callable[[], Session] | None = None,
        cipher: MessageCipher | None = None,
    ) -> None:
        self._session_factory = session_factory or SessionLocal
        self.cipher = cipher

    # --- encode / decode ------------------------------------------------------------
    def _seal(self, text: str) -> str:
        return self.cipher.encrypt(text) if self.cipher else text

    def _open(self, stored: str | None) -> str | None:
        if stored is None or self.cipher is None:
            return stored
        return self.cipher.decrypt_or_placeholder(stored)

    def rehydrate(self, message: Message) -> MessageView:
        """Build the transport view of a stored message."""
        image = None
        if message.image_data:
            image = AttachmentView(
                data=base64.b64encode(message.image_data).decode("ascii"),
                content_type=message.image_content_type or "application/octet-stream",
            )
        timestamp = message.timestamp
        if timestamp.tzinfo is None:
            # SQLite drops tzinfo; stored values are always UTC.
            timestamp = timestamp.replace(tzinfo=UTC)
        return MessageView(
            id=message.id,
            sender=message.sender_id,
            receiver=message.receiver_id,
            content=self._open(message.content),
            image=image,
            is_read=message.is_read,
            timestamp=timestamp,
        )

    # --- operations -----------------------------------------------------------------
    def send(
        self,
        sender_id: str,
        receiver_id: str,
        text: str | None = None,
        attachment: Attachment | None = None,
    ) -> MessageView:
        """Validate and persist a new message, returning its rehydrated view.

        Raises:
            ValidationError: Unknown sender/receiver, or neither text nor image.
            StoreError: The store failed.
        """
        has_text = bool(text and text.strip())
        has_image = bool(attachment and attachment.data)
        if not has_text and not has_image:
            raise ValidationError("Message needs text content or an image")

        with self._session_factory() as db:
            users = UserRepository(db)
            if not sender_id or users.find_by_id(sender_id) is None:
                raise ValidationError(f"Unknown sender {sender_id!r}")
            if not receiver_id or users.find_by_id(receiver_id) is None:
                raise ValidationError(f"Unknown receiver {receiver_id!r}")

            message = MessageRepository(db).create(
                sender_id=sender_id,
                receiver_id=receiver_id,
                content=self._seal(text) if has_text and text else None,
                image_data=attachment.data if has_image and attachment else None,
                image_content_type=attachment.content_type if has_image and attachment else None,
            )
            logger.info("Stored message %s from %s to %s", message.id, sender_id, receiver_id)
            return self.rehydrate(message)

    def list_conversation(self, user_a: str, user_b: str) -> list[MessageView]:
        """Return both directions of a conversation, oldest first."""
        with self._session_factory() as db:
            messages = MessageRepository(db).find_conversation(user_a, user_b)
            return [self.rehydrate(message) for message in messages]

    def mark_read(self, sender_id: str, receiver_id: str) -> int:
        """Mark every unread ``sender -> receiver`` message read; return the count."""
        with self._session_factory() as db:
            count = MessageRepository(db).mark_read(sender_id, receiver_id)
        logger.info("Marked %d messages from %s to %s as read", count, sender_id, receiver_id)
        return count

    def unread_counts(self, receiver_id: str) -> dict[str, int]:
        """Return unread message counts addressed to ``receiver_id``, by sender."""
        with self._session_factory() as db:
            return MessageRepository(db).count_unread_by_sender(receiver_id)

    def _load_owned(self, repo: MessageRepository, message_id: int, acting_id: str) -> Message:
        message = repo.find_by_id(message_id)
        if message is None:
            raise NotFoundError(f"Message {message_id} not found")
        if message.sender_id != acting_id:
            raise AuthorizationError(
                f"{acting_id} may not modify message {message_id} sent by {message.sender_id}"
            )
        return message

    def edit(self, message_id: int, acting_id: str, new_text: str) -> MessageView:
        """Replace the text of a message owned by ``acting_id``.

        Raises:
            NotFoundError: No such message.
            AuthorizationError: ``acting_id`` is not the sender.
            ValidationError: The edit would leave the message with no content.
        """
        with self._session_factory() as db:
            repo = MessageRepository(db)
            message = self._load_owned(repo, message_id, acting_id)
            has_text = bool(new_text and new_text.strip())
            if not has_text and not message.image_data:
                raise ValidationError("Edited message needs text content")
            updated = repo.update_by_id(
                message_id, content=self._seal(new_text) if has_text else None
            )
            if updated is None:
                raise NotFoundError(f"Message {message_id} not found")
            logger.info("Message %s edited by %s", message_id, acting_id)
            return self.rehydrate(updated)

    def delete(self, message_id: int, acting_id: str) -> None:
        """Permanently remove a message owned by ``acting_id``.

        Raises:
            NotFoundError: No such message.
            AuthorizationError: ``acting_id`` is not the sender.
        """
        with self._session_factory() as db:
            repo = MessageRepository(db)
            self._load_owned(repo, message_id, acting_id)
            if not repo.delete_by_id(message_id):
                raise NotFoundError(f"Message {message_id} not found")
        logger.info("Message %s deleted by %s", message_id, acting_id)


_message_pipeline: MessagePipeline | None = None


def get_message_pipeline() -> MessagePipeline:
    """Return the process-wide message pipeline."""
    global _message_pipeline
    if _message_pipeline is None:
        _message_pipeline = MessagePipeline(cipher=get_message_cipher())
    return _message_pipeline
