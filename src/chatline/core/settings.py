"""Application settings and configuration.

This module defines all configuration options for the Chatline gateway.
Settings are loaded from environment variables with sensible defaults.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    """

    # Application metadata
    app_name: str = Field(default="Chatline", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Security and authentication
    secret_key: str = Field(alias="SECRET_KEY")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(
        default=60 * 24 * 7,
        alias="ACCESS_TOKEN_EXPIRE_MINUTES",
    )

    # At-rest message encryption; unset means plaintext storage
    message_encryption_key: str | None = Field(default=None, alias="MESSAGE_ENCRYPTION_KEY")

    # Database configuration
    database_url: str = Field(default="sqlite:///./chatline.db", alias="DATABASE_URL")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")

    # Federated (third-party issued) ID tokens
    federated_project_id: str | None = Field(default=None, alias="FEDERATED_PROJECT_ID")
    federated_certs_url: str = Field(
        default=(
            "https://www.googleapis.com/robot/v1/metadata/x509/"
            "securetoken@system.gserviceaccount.com"
        ),
        alias="FEDERATED_CERTS_URL",
    )
    federated_issuer_prefix: str = Field(
        default="https://securetoken.google.com/",
        alias="FEDERATED_ISSUER_PREFIX",
    )
    federated_http_timeout_seconds: float = Field(
        default=5.0,
        alias="FEDERATED_HTTP_TIMEOUT_SECONDS",
    )
    federated_certs_ttl_seconds: int = Field(
        default=3600,
        alias="FEDERATED_CERTS_TTL_SECONDS",
    )

    # Realtime session behaviour
    presence_grace_seconds: float = Field(default=5.0, alias="PRESENCE_GRACE_SECONDS")
    max_image_bytes: int = Field(default=10 * 1024 * 1024, alias="MAX_IMAGE_BYTES")

    # CORS configuration for web frontend access
    cors_origins: list[str] = Field(default=["*"], alias="CORS_ORIGINS")
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")
    cors_allow_methods: list[str] = Field(
        default=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        alias="CORS_ALLOW_METHODS",
    )
    cors_allow_headers: list[str] = Field(default=["*"], alias="CORS_ALLOW_HEADERS")

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
    )

    @property
    def encryption_enabled(self) -> bool:
        """Return True when message text is encrypted before storage."""
        return bool(self.message_encryption_key)

    @property
    def federated_enabled(self) -> bool:
        """Return True when third-party ID tokens can be verified."""
        return bool(self.federated_project_id)

    @property
    def database_url_sync(self) -> str:
        """Return a sync-compatible database URL for tooling such as Alembic."""
        url = self.database_url
        if url.startswith("postgresql+asyncpg"):
            return url.replace("postgresql+asyncpg", "postgresql+psycopg", 1)
        return url


settings = Settings()  # type: ignore[call-arg]
