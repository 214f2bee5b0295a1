"""Data access helpers for user accounts."""
from __future__ import annotations

from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from chatline.models.user import User
from chatline.repositories.message_repo import store_guard

__all__ = ["UserRepository"]


class UserRepository:
    """Lookup and persistence for ``User`` rows."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def find_by_id(self, user_id: str) -> User | None:
        with store_guard(self.session, "load user"):
            return self.session.get(User, user_id)

    def find_by_email(self, email: str) -> User | None:
        with store_guard(self.session, "load user by email"):
            return self.session.execute(
                select(User).where(User.email == email)
            ).scalars().first()

    def find_by_external_subject(self, subject: str) -> User | None:
        """Return the user linked to a federated subject id, if any."""
        with store_guard(self.session, "load user by external subject"):
            return self.session.execute(
                select(User).where(User.external_subject == subject)
            ).scalars().first()

    def list_excluding(self, user_id: str | None = None) -> list[User]:
        """Return all users except ``user_id``, ordered by name."""
        stmt = select(User).order_by(User.name.asc())
        if user_id:
            stmt = stmt.where(User.id != user_id)
        with store_guard(self.session, "list users"):
            return list(self.session.execute(stmt).scalars())

    def create(self, **fields: Any) -> User:
        user = User(**fields)
        with store_guard(self.session, "create user"):
            self.session.add(user)
            self.session.commit()
            self.session.refresh(user)
        return user

    def update(self, user: User, **values: Any) -> User:
        with store_guard(self.session, "update user"):
            for key, value in values.items():
                setattr(user, key, value)
            self.session.add(user)
            self.session.commit()
            self.session.refresh(user)
        return user
