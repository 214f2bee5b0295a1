"""Password hashing and locally issued access tokens."""
from __future__ import annotations

import base64
import secrets
from datetime import UTC, datetime, timedelta
from typing import Any

from cryptography.exceptions import InvalidKey
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt
from jose import jwt

from chatline.core.settings import settings

_SCRYPT_N = 2**14
_SCRYPT_R = 8
_SCRYPT_P = 1
_SCRYPT_LENGTH = 32
_SALT_BYTES = 16
_HASH_SCHEME = "scrypt"


def _b64e(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode().rstrip("=")


def _b64d(data: str) -> bytes:
    padding = "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(data + padding)


def _kdf(salt: bytes) -> Scrypt:
    return Scrypt(salt=salt, length=_SCRYPT_LENGTH, n=_SCRYPT_N, r=_SCRYPT_R, p=_SCRYPT_P)


def hash_password(password: str) -> str:
    """Return a salted scrypt hash encoded as ``scrypt$<salt>$<digest>``."""
    salt = secrets.token_bytes(_SALT_BYTES)
    digest = _kdf(salt).derive(password.encode("utf-8"))
    return f"{_HASH_SCHEME}${_b64e(salt)}${_b64e(digest)}"


def verify_password(password: str, stored: str | None) -> bool:
    """Check ``password`` against a hash produced by :func:`hash_password`."""
    if not stored:
        return False
    try:
        scheme, salt_b64, digest_b64 = stored.split("$")
    except ValueError:
        return False
    if scheme != _HASH_SCHEME:
        return False
    try:
        _kdf(_b64d(salt_b64)).verify(password.encode("utf-8"), _b64d(digest_b64))
    except (InvalidKey, ValueError):
        return False
    return True


def create_access_token(subject: str, extra_claims: dict[str, Any] | None = None) -> str:
    """Create a JWT access token whose ``sub`` is the user id."""
    to_encode: dict[str, Any] = {"sub": subject}
    if extra_claims:
        to_encode.update(extra_claims)
    now = datetime.now(UTC)
    to_encode["iat"] = now
    to_encode["exp"] = now + timedelta(minutes=settings.access_token_expire_minutes)
    encoded_jwt: str = jwt.encode(
        to_encode,
        settings.secret_key,
        algorithm=settings.jwt_algorithm,
    )
    return encoded_jwt
