"""Data access helpers for working with messages."""
from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from sqlalchemy import and_, delete, func, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from chatline.core.errors import StoreError
from chatline.models.message import Message

__all__ = ["MessageRepository", "store_guard"]


@contextmanager
def store_guard(session: Session, action: str) -> Iterator[None]:
    """Translate SQLAlchemy failures into ``StoreError`` and roll back."""
    try:
        yield
    except SQLAlchemyError as exc:
        session.rollback()
        raise StoreError(f"Failed to {action}: {exc}") from exc


class MessageRepository:
    """Thin wrapper around database access for message entities.

    Each method issues one logical store operation and commits it.
    """

    def __init__(self, session: Session) -> None:
        self.session = session

    def find_by_id(self, message_id: int) -> Message | None:
        """Return a message by identifier."""
        with store_guard(self.session, "load message"):
            return self.session.get(Message, message_id)

    def create(
        self,
        *,
        sender_id: str,
        receiver_id: str,
        content: str | None,
        image_data: bytes | None,
        image_content_type: str | None,
    ) -> Message:
        """Insert a new message and return the persisted ORM instance."""
        message = Message(
            sender_id=sender_id,
            receiver_id=receiver_id,
            content=content,
            image_data=image_data,
            image_content_type=image_content_type,
            is_read=False,
        )
        with store_guard(self.session, "create message"):
            self.session.add(message)
            self.session.commit()
            self.session.refresh(message)
        return message

    def update_by_id(self, message_id: int, **values: Any) -> Message | None:
        """Apply ``values`` to a message; return it, or None when absent."""
        with store_guard(self.session, "update message"):
            message = self.session.get(Message, message_id)
            if message is None:
                return None
            for key, value in values.items():
                setattr(message, key, value)
            self.session.commit()
            self.session.refresh(message)
        return message

    def delete_by_id(self, message_id: int) -> bool:
        """Delete a message, returning True if a row was removed."""
        with store_guard(self.session, "delete message"):
            result = self.session.execute(delete(Message).where(Message.id == message_id))
            self.session.commit()
        return bool(result.rowcount)

    def find_conversation(self, user_a: str, user_b: str) -> list[Message]:
        """Return messages exchanged between two users, oldest first."""
        stmt = (
            select(Message)
            .where(
                or_(
                    and_(Message.sender_id == user_a, Message.receiver_id == user_b),
                    and_(Message.sender_id == user_b, Message.receiver_id == user_a),
                )
            )
            .order_by(Message.timestamp.asc(), Message.id.asc())
        )
        with store_guard(self.session, "list conversation"):
            return list(self.session.execute(stmt).scalars())

    def mark_read(self, sender_id: str, receiver_id: str) -> int:
        """Flip ``is_read`` on unread messages in one direction; return the count."""
        stmt = (
            update(Message)
            .where(
                Message.sender_id == sender_id,
                Message.receiver_id == receiver_id,
                Message.is_read.is_(False),
            )
            .values(is_read=True)
            .execution_options(synchronize_session=False)
        )
        with store_guard(self.session, "mark messages read"):
            result = self.session.execute(stmt)
            self.session.commit()
        return int(result.rowcount or 0)

    def count_unread_by_sender(self, receiver_id: str) -> dict[str, int]:
        """Return ``{sender_id: unread_count}`` for messages addressed to ``receiver_id``."""
        stmt = (
            select(Message.sender_id, func.count(Message.id))
            .where(Message.receiver_id == receiver_id, Message.is_read.is_(False))
            .group_by(Message.sender_id)
        )
        with store_guard(self.session, "count unread messages"):
            rows = self.session.execute(stmt).all()
        return {sender_id: int(count) for sender_id, count in rows}
