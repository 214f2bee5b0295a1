"""Tests for password hashing and local token issuance."""

from jose import jwt

from chatline.core.security import create_access_token, hash_password, verify_password
from chatline.core.settings import settings


def test_password_hash_verifies() -> None:
    stored = hash_password("s3cret-pass")

    assert stored.startswith("scrypt$")
    assert "s3cret-pass" not in stored
    assert verify_password("s3cret-pass", stored)
    assert not verify_password("wrong-pass", stored)


def test_password_hashes_are_salted() -> None:
    assert hash_password("repeat") != hash_password("repeat")


def test_verify_rejects_missing_or_foreign_hashes() -> None:
    assert not verify_password("anything", None)
    assert not verify_password("anything", "")
    assert not verify_password("anything", "bcrypt$abc$def")
    assert not verify_password("anything", "no-separators")


def test_access_token_carries_subject() -> None:
    token = create_access_token("user-123", {"scope": "chat"})

    claims = jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    assert claims["sub"] == "user-123"
    assert claims["scope"] == "chat"
    assert claims["exp"] > claims["iat"]
