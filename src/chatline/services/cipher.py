# src/chatline/services/cipher.py
"""Symmetric at-rest encryption for message text.

Ciphertext is ``urlsafe_b64(nonce || AES-256-GCM(plaintext))``. The AES key is
derived from the configured shared secret with HKDF-SHA256, so any string
works as a secret. A fresh random nonce is drawn for every message.
"""

from __future__ import annotations

import base64
import binascii
import logging
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from chatline.core.errors import DecryptionError
from chatline.core.settings import settings

logger = logging.getLogger(__name__)

PLACEHOLDER_TEXT = "[Encrypted message]"
NONCE_BYTES = 12
KEY_BYTES = 32
_HKDF_INFO = b"chatline-message-at-rest"


def derive_key(secret: str) -> bytes:
    """Derive a 256-bit AES key from an arbitrary shared secret."""
    return HKDF(
        algorithm=hashes.SHA256(),
        length=KEY_BYTES,
        salt=None,
        info=_HKDF_INFO,
    ).derive(secret.encode("utf-8"))


def _encrypt_with_key(key: bytes, plaintext: str) -> str:
    nonce = os.urandom(NONCE_BYTES)
    sealed = AESGCM(key).encrypt(nonce, plaintext.encode("utf-8"), None)
    return base64.urlsafe_b64encode(nonce + sealed).decode("ascii")


def _decrypt_with_key(key: bytes, ciphertext: str) -> str:
    try:
        raw = base64.urlsafe_b64decode(ciphertext.encode("ascii"))
    except (binascii.Error, ValueError, UnicodeEncodeError) as err:
        raise DecryptionError("Ciphertext is not valid base64") from err
    if len(raw) <= NONCE_BYTES:
        raise DecryptionError("Ciphertext is too short")
    nonce, sealed = raw[:NONCE_BYTES], raw[NONCE_BYTES:]
    try:
        plaintext = AESGCM(key).decrypt(nonce, sealed, None)
    except InvalidTag as err:
        raise DecryptionError("Ciphertext failed authentication") from err
    try:
        return plaintext.decode("utf-8")
    except UnicodeDecodeError as err:
        raise DecryptionError("Plaintext is not valid UTF-8") from err


def encrypt(plaintext: str, secret: str) -> str:
    """Encrypt ``plaintext`` under ``secret``."""
    return _encrypt_with_key(derive_key(secret), plaintext)


def decrypt(ciphertext: str, secret: str) -> str:
    """Decrypt a value produced by :func:`encrypt`.

    Raises:
        DecryptionError: If the ciphertext is malformed or the secret is wrong.
    """
    return _decrypt_with_key(derive_key(secret), ciphertext)


class MessageCipher:
    """Cipher bound to one secret, with the key derived once."""

    def __init__(self, secret: str) -> None:
        if not secret:
            raise ValueError("Message cipher requires a non-empty secret")
        self._key = derive_key(secret)

    def encrypt(self, plaintext: str) -> str:
        return _encrypt_with_key(self._key, plaintext)

    def decrypt(self, ciphertext: str) -> str:
        return _decrypt_with_key(self._key, ciphertext)

    def decrypt_or_placeholder(self, ciphertext: str) -> str:
        """Decrypt for display; unrecoverable content becomes a placeholder."""
        try:
            return self.decrypt(ciphertext)
        except DecryptionError as exc:
            logger.warning("Message content unavailable: %s", exc)
            return PLACEHOLDER_TEXT


def get_message_cipher() -> MessageCipher | None:
    """Return a cipher for the configured key, or None for plaintext storage."""
    if not settings.encryption_enabled:
        return None
    return MessageCipher(settings.message_encryption_key or "")
