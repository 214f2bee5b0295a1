"""SQLAlchemy model for registered user identities."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from chatline.db.session import Base
from chatline.db.time import utcnow


def new_user_id() -> str:
    """Return a fresh opaque user identifier."""
    return uuid.uuid4().hex


class User(Base):
    """A registered account, addressable by an opaque hex id.

    Users created through a federated sign-in carry the issuer's subject in
    ``external_subject`` and may have no local password.
    """

    __tablename__ = "user_account"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_user_id)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)
    password_hash: Mapped[str | None] = mapped_column(Text, nullable=True)
    avatar: Mapped[str | None] = mapped_column(Text, nullable=True)
    external_subject: Mapped[str | None] = mapped_column(
        String(128), unique=True, nullable=True
    )
    is_federated: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )
