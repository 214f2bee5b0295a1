"""Model describing a message exchanged between two users."""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, LargeBinary, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from chatline.db.session import Base
from chatline.db.time import utcnow


class Message(Base):
    """Message from ``sender_id`` to ``receiver_id``.

    ``content`` holds ciphertext whenever an encryption key is configured.
    Image attachments are stored as raw bytes; they are only base64-encoded
    when a message leaves the process.
    """

    __tablename__ = "message"
    __table_args__ = (
        Index("ix_message_pair_timestamp", "sender_id", "receiver_id", "timestamp"),
        Index("ix_message_receiver_unread", "receiver_id", "is_read"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    sender_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("user_account.id", ondelete="CASCADE"), nullable=False
    )
    receiver_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("user_account.id", ondelete="CASCADE"), nullable=False
    )

    content: Mapped[str | None] = mapped_column(Text, nullable=True)
    image_data: Mapped[bytes | None] = mapped_column(LargeBinary, nullable=True)
    image_content_type: Mapped[str | None] = mapped_column(String(128), nullable=True)

    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
