"""Token verification for connections and HTTP requests.

Two verifiers are tried in a fixed order:

- ``LocalTokenVerifier`` checks tokens this service issued (HS256 JWT). It
  is cheap and runs synchronously.
- ``FederatedTokenVerifier`` checks RS256 ID tokens from a third-party issuer
  against the issuer's published x509 certificates.

``IdentityVerifier`` combines them and resolves the result to an
``Identity``. Each verifier fails with its own message for logging; callers
only ever see ``AuthError("invalid token")`` or ``AuthError("user not found")``.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import httpx
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from chatline.core.errors import AuthError
from chatline.core.settings import settings
from chatline.db.session import SessionLocal
from chatline.models.user import User
from chatline.repositories.user_repo import UserRepository

logger = logging.getLogger(__name__)

FEDERATED_ALGORITHM = "RS256"
HTTP_OK = 200


@dataclass(frozen=True)
class Identity:
    """A verified user as seen by the realtime layer. Read-only."""

    id: str
    name: str
    avatar: str | None = None

    @classmethod
    def from_user(cls, user: User) -> Identity:
        return cls(id=user.id, name=user.name, avatar=user.avatar)


class LocalTokenVerifier:
    """Validate locally issued JWTs and return the subject user id."""

    def __init__(self, secret_key: str | None = None, algorithm: str | None = None) -> None:
        self._secret_key = secret_key or settings.secret_key
        self._algorithm = algorithm or settings.jwt_algorithm

    def verify(self, token: str) -> str:
        try:
            payload = jwt.decode(token, self._secret_key, algorithms=[self._algorithm])
        except JWTError as err:
            raise AuthError(f"local token rejected: {err}") from err
        subject = payload.get("sub")
        if not subject or not isinstance(subject, str):
            raise AuthError("local token has no subject")
        return subject


class FederatedTokenVerifier:
    """Validate third-party ID tokens and return the external subject.

    Signing certificates are fetched with ``httpx`` and cached for
    ``certs_ttl_seconds``. With no project id configured every token fails.
    """

    def __init__(
        self,
        project_id: str | None = None,
        *,
        certs_url: str | None = None,
        issuer_prefix: str | None = None,
        timeout_seconds: float | None = None,
        certs_ttl_seconds: int | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.project_id = project_id if project_id is not None else settings.federated_project_id
        self.certs_url = certs_url or settings.federated_certs_url
        self.issuer_prefix = issuer_prefix or settings.federated_issuer_prefix
        self._timeout = timeout_seconds or settings.federated_http_timeout_seconds
        self._ttl = certs_ttl_seconds if certs_ttl_seconds is not None else settings.federated_certs_ttl_seconds
        self._client = client
        self._certs: dict[str, str] = {}
        self._certs_fetched_at = 0.0
        self._certs_lock = asyncio.Lock()

    @property
    def enabled(self) -> bool:
        return bool(self.project_id)

    @property
    def issuer(self) -> str:
        return f"{self.issuer_prefix}{self.project_id}"

    async def _fetch_certs(self) -> dict[str, str]:
        try:
            if self._client is not None:
                response = await self._client.get(self.certs_url)
            else:
                async with httpx.AsyncClient(timeout=httpx.Timeout(self._timeout)) as client:
                    response = await client.get(self.certs_url)
        except httpx.HTTPError as exc:
            raise AuthError(f"federated certificates unavailable: {exc}") from exc
        if response.status_code != HTTP_OK:
            raise AuthError(
                f"federated certificate endpoint responded with {response.status_code}"
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise AuthError("federated certificate payload is not JSON") from exc
        if not isinstance(payload, dict):
            raise AuthError("federated certificate payload is not an object")
        return {str(kid): str(cert) for kid, cert in payload.items()}

    async def _signing_certs(self) -> dict[str, str]:
        # The lock guards the cache only; it is never held across the fetch.
        async with self._certs_lock:
            if self._certs and time.monotonic() - self._certs_fetched_at <= self._ttl:
                return self._certs
        certs = await self._fetch_certs()
        async with self._certs_lock:
            self._certs = certs
            self._certs_fetched_at = time.monotonic()
        return certs

    async def verify(self, token: str) -> str:
        """Return the external subject of a valid federated token."""
        claims = await self.verify_claims(token)
        subject = claims.get("sub")
        if not subject or not isinstance(subject, str):
            raise AuthError("federated token has no subject")
        return subject

    async def verify_claims(self, token: str) -> dict[str, Any]:
        """Validate a federated token and return all of its claims.

        Raises:
            AuthError: If the token is not a valid ID token for this project.
        """
        if not self.enabled:
            raise AuthError("federated verification is not configured")
        try:
            header = jwt.get_unverified_header(token)
        except JWTError as err:
            raise AuthError(f"federated token header unreadable: {err}") from err
        if header.get("alg") != FEDERATED_ALGORITHM:
            raise AuthError("federated token uses an unexpected algorithm")

        certs = await self._signing_certs()
        cert = certs.get(str(header.get("kid")))
        if cert is None:
            raise AuthError("federated token signed with an unknown key")

        try:
            claims = jwt.decode(
                token,
                cert,
                algorithms=[FEDERATED_ALGORITHM],
                audience=self.project_id,
                issuer=self.issuer,
            )
        except JWTError as err:
            raise AuthError(f"federated token rejected: {err}") from err
        return claims


class IdentityVerifier:
    """Turn an opaque token into a verified ``Identity``.

    Holds no per-call state; safe to share between connections.
    """

    def __init__(
        self,
        local: LocalTokenVerifier | None = None,
        federated: FederatedTokenVerifier | None = None,
        session_factory: Callable[[], Session] | None = None,
    ) -> None:
        self.local = local or LocalTokenVerifier()
        self.federated = federated or FederatedTokenVerifier()
        self._session_factory = session_factory or SessionLocal

    def _find_by_id(self, user_id: str) -> Identity | None:
        with self._session_factory() as db:
            user = UserRepository(db).find_by_id(user_id)
            return Identity.from_user(user) if user else None

    def _find_by_subject(self, subject: str) -> Identity | None:
        with self._session_factory() as db:
            user = UserRepository(db).find_by_external_subject(subject)
            return Identity.from_user(user) if user else None

    async def verify(self, token: str | None) -> Identity:
        """Return the identity behind ``token``.

        Raises:
            AuthError: ``"invalid token"`` when neither verifier accepts the
                token, ``"user not found"`` when it is valid but no local user
                matches.
        """
        if not token:
            raise AuthError("invalid token")

        try:
            user_id = self.local.verify(token)
        except AuthError as local_err:
            logger.debug("Local verification failed: %s", local_err)
        else:
            identity = await asyncio.to_thread(self._find_by_id, user_id)
            if identity is None:
                raise AuthError("user not found")
            return identity

        try:
            subject = await self.federated.verify(token)
        except AuthError as federated_err:
            logger.debug("Federated verification failed: %s", federated_err)
            raise AuthError("invalid token") from federated_err

        identity = await asyncio.to_thread(self._find_by_subject, subject)
        if identity is None:
            raise AuthError("user not found")
        return identity


_identity_verifier: IdentityVerifier | None = None


def get_identity_verifier() -> IdentityVerifier:
    """Return the process-wide identity verifier."""
    global _identity_verifier
    if _identity_verifier is None:
        _identity_verifier = IdentityVerifier()
    return _identity_verifier
