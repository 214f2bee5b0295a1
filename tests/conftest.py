# tests/conftest.py
from __future__ import annotations

import os
from collections.abc import Callable, Generator, Iterator
from datetime import UTC, datetime, timedelta
from typing import Any

import httpx
import pytest

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("MESSAGE_ENCRYPTION_KEY", "test-message-key")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("PRESENCE_GRACE_SECONDS", "0.05")

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID
from fastapi import FastAPI
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from chatline.api.v1 import dependencies
from chatline.core.security import create_access_token, hash_password
from chatline.db.session import Base
from chatline.db.session import get_db as app_get_session
from chatline.main import app as fastapi_app
from chatline.models import User
from chatline.realtime.hub import ConnectionHub
from chatline.realtime.presence import PresenceRegistry
from chatline.repositories.user_repo import UserRepository
from chatline.services.cipher import MessageCipher
from chatline.services.identity import (
    FederatedTokenVerifier,
    IdentityVerifier,
    LocalTokenVerifier,
)
from chatline.services.message_pipeline import MessagePipeline

TEST_DB_URL = "sqlite://"
TEST_MESSAGE_KEY = "test-message-key"
TEST_PASSWORD = "correct horse battery"

FEDERATED_PROJECT_ID = "chatline-test"
FEDERATED_KEY_ID = "test-key-1"
FEDERATED_CERTS_URL = "https://certs.example.test/x509"
FEDERATED_ISSUER_PREFIX = "https://securetoken.google.com/"

# Hashing is slow on purpose; hash the shared test password once.
_TEST_PASSWORD_HASH = hash_password(TEST_PASSWORD)


@pytest.fixture(scope="session")
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def session_factory(engine: Engine) -> Iterator[Callable[[], Session]]:
    factory = sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )
    try:
        yield factory
    finally:
        # Ensure each test sees a clean database even if commits occurred.
        with engine.begin() as cleanup_conn:
            for table in reversed(Base.metadata.sorted_tables):
                cleanup_conn.execute(table.delete())


@pytest.fixture()
def db_session(session_factory: Callable[[], Session]) -> Iterator[Session]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def cipher() -> MessageCipher:
    return MessageCipher(TEST_MESSAGE_KEY)


@pytest.fixture()
def pipeline(session_factory: Callable[[], Session], cipher: MessageCipher) -> MessagePipeline:
    return MessagePipeline(session_factory=session_factory, cipher=cipher)


@pytest.fixture()
def verifier(session_factory: Callable[[], Session]) -> IdentityVerifier:
    """Identity verifier with the federated path switched off."""
    return IdentityVerifier(
        local=LocalTokenVerifier(),
        federated=FederatedTokenVerifier(project_id=""),
        session_factory=session_factory,
    )


@pytest.fixture()
def presence() -> PresenceRegistry:
    return PresenceRegistry()


@pytest.fixture()
def hub() -> ConnectionHub:
    return ConnectionHub()


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture(autouse=True)
def override_dependencies(
    app: FastAPI,
    session_factory: Callable[[], Session],
    pipeline: MessagePipeline,
    verifier: IdentityVerifier,
    presence: PresenceRegistry,
    hub: ConnectionHub,
) -> Iterator[None]:
    def _get_session_override() -> Generator[Session, None, None]:
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    overrides: dict[Callable[..., Any], Callable[..., Any]] = {
        app_get_session: _get_session_override,
        dependencies.get_message_pipeline_dep: lambda: pipeline,
        dependencies.get_identity_verifier_dep: lambda: verifier,
        dependencies.get_presence_registry_dep: lambda: presence,
        dependencies.get_connection_hub_dep: lambda: hub,
    }
    app.dependency_overrides.update(overrides)
    try:
        yield
    finally:
        for dependency in overrides:
            app.dependency_overrides.pop(dependency, None)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture()
def make_user(session_factory: Callable[[], Session]) -> Callable[..., User]:
    """Return a factory that persists users with the shared test password."""

    def _make_user(name: str, email: str | None = None, **fields: Any) -> User:
        fields.setdefault("password_hash", _TEST_PASSWORD_HASH)
        with session_factory() as db:
            return UserRepository(db).create(
                name=name,
                email=email or f"{name.lower()}@example.com",
                **fields,
            )

    return _make_user


@pytest.fixture()
def alice(make_user: Callable[..., User]) -> User:
    return make_user("Alice")


@pytest.fixture()
def bob(make_user: Callable[..., User]) -> User:
    return make_user("Bob")


@pytest.fixture()
def carol(make_user: Callable[..., User]) -> User:
    return make_user("Carol")


@pytest.fixture()
def alice_token(alice: User) -> str:
    return create_access_token(alice.id)


@pytest.fixture()
def bob_token(bob: User) -> str:
    return create_access_token(bob.id)


@pytest.fixture()
def carol_token(carol: User) -> str:
    return create_access_token(carol.id)


@pytest.fixture()
def alice_headers(alice_token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {alice_token}"}


@pytest.fixture()
def bob_headers(bob_token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {bob_token}"}


@pytest.fixture()
def user_password() -> str:
    """Plaintext password of every user built by ``make_user``."""
    return TEST_PASSWORD


class CertEndpoint:
    """Serves a fixed x509 key set and counts how often it is fetched."""

    def __init__(self, certs: dict[str, str], status_code: int = 200) -> None:
        self.certs = certs
        self.status_code = status_code
        self.calls = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls += 1
        assert str(request.url) == FEDERATED_CERTS_URL
        return httpx.Response(self.status_code, json=self.certs)


@pytest.fixture(scope="session")
def signing_material() -> tuple[str, str]:
    """Return (private key PEM, self-signed certificate PEM) for federated tokens."""
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "federated-test-issuer")])
    now = datetime.now(UTC)
    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(days=1))
        .not_valid_after(now + timedelta(days=1))
        .sign(key, hashes.SHA256())
    )
    key_pem = key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    ).decode()
    cert_pem = cert.public_bytes(serialization.Encoding.PEM).decode()
    return key_pem, cert_pem


@pytest.fixture()
def federated_token(signing_material: tuple[str, str]) -> Callable[..., str]:
    """Return a factory for RS256 ID tokens signed like a federated issuer's."""
    key_pem, _ = signing_material

    def _issue(subject: str, **claims: Any) -> str:
        now = datetime.now(UTC)
        payload: dict[str, Any] = {
            "iss": f"{FEDERATED_ISSUER_PREFIX}{FEDERATED_PROJECT_ID}",
            "aud": FEDERATED_PROJECT_ID,
            "sub": subject,
            "iat": now,
            "exp": now + timedelta(minutes=5),
        }
        payload.update(claims)
        return jwt.encode(payload, key_pem, algorithm="RS256", headers={"kid": FEDERATED_KEY_ID})

    return _issue


@pytest.fixture()
def make_federated(
    signing_material: tuple[str, str],
) -> Callable[..., tuple[FederatedTokenVerifier, Any]]:
    """Return a factory for federated verifiers backed by a mock certificate endpoint.

    ``handler`` replaces the default ``CertEndpoint`` when a test needs to
    control the response itself.
    """
    _, cert_pem = signing_material

    def _make(
        certs: dict[str, str] | None = None,
        status_code: int = 200,
        handler: Callable[[httpx.Request], Any] | None = None,
    ) -> tuple[FederatedTokenVerifier, Any]:
        endpoint = handler or CertEndpoint(
            {FEDERATED_KEY_ID: cert_pem} if certs is None else certs, status_code
        )
        verifier = FederatedTokenVerifier(
            FEDERATED_PROJECT_ID,
            certs_url=FEDERATED_CERTS_URL,
            issuer_prefix=FEDERATED_ISSUER_PREFIX,
            client=httpx.AsyncClient(transport=httpx.MockTransport(endpoint)),
        )
        return verifier, endpoint

    return _make
