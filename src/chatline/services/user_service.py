"""Account helpers: registration, login and profile updates."""
from __future__ import annotations

from typing import Sequence

from sqlalchemy.orm import Session

from chatline.core import security
from chatline.core.errors import NotFoundError, ValidationError
from chatline.models.user import User
from chatline.repositories.user_repo import UserRepository
from chatline.schemas.user import ProfileUpdateRequest, RegisterRequest

__all__ = [
    "register_user",
    "authenticate_user",
    "provision_federated_user",
    "get_user",
    "list_contacts",
    "update_profile",
]


def register_user(db: Session, payload: RegisterRequest) -> User:
    """Create a password-based account.

    Raises:
        ValidationError: If the email is already registered.
    """
    users = UserRepository(db)
    if users.find_by_email(payload.email) is not None:
        raise ValidationError("Email already exists")
    return users.create(
        name=payload.name,
        email=payload.email,
        password_hash=security.hash_password(payload.password),
    )


def authenticate_user(db: Session, email: str, password: str) -> User | None:
    """Return the user when the credentials match, else None."""
    user = UserRepository(db).find_by_email(email)
    if user is None or not security.verify_password(password, user.password_hash):
        return None
    return user


def get_user(db: Session, user_id: str) -> User:
    """Return a user by id.

    Raises:
        NotFoundError: If no such user exists.
    """
    user = UserRepository(db).find_by_id(user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


def list_contacts(db: Session, exclude: str | None = None) -> Sequence[User]:
    """Return every user other than ``exclude``."""
    return UserRepository(db).list_excluding(exclude)


def update_profile(db: Session, user_id: str, update: ProfileUpdateRequest) -> User:
    """Apply a partial profile update to ``user_id``.

    Raises:
        NotFoundError: If the user no longer exists.
        ValidationError: If the new email belongs to another account.
    """
    users = UserRepository(db)
    user = users.find_by_id(user_id)
    if user is None:
        raise NotFoundError("User not found")
    changes = {key: value for key, value in update.model_dump(exclude_unset=True).items() if value}
    new_email = changes.get("email")
    if new_email and new_email != user.email:
        other = users.find_by_email(new_email)
        if other is not None and other.id != user.id:
            raise ValidationError("Email already exists")
    if not changes:
        return user
    return users.update(user, **changes)


def provision_federated_user(
    db: Session,
    subject: str,
    *,
    email: str | None,
    email_verified: bool = False,
    name: str | None = None,
    avatar: str | None = None,
) -> User:
    """Return the local account for a federated subject, creating or linking it.

    An account already linked to ``subject`` is returned unchanged. Otherwise
    a password account with the same email is linked, but only when the
    provider has verified that email. Failing both, a new federated-only
    account is created.

    Raises:
        ValidationError: If the token carries no email, or the email belongs
            to an account that cannot be linked.
    """
    users = UserRepository(db)
    user = users.find_by_external_subject(subject)
    if user is not None:
        return user

    address = (email or "").strip().lower()
    if "@" not in address:
        raise ValidationError("Federated account has no email address")

    existing = users.find_by_email(address)
    if existing is not None:
        if existing.external_subject or not email_verified:
            raise ValidationError("Email already exists")
        return users.update(existing, external_subject=subject, is_federated=True)

    return users.create(
        name=(name or "").strip() or address.split("@", 1)[0],
        email=address,
        avatar=avatar,
        external_subject=subject,
        is_federated=True,
    )
