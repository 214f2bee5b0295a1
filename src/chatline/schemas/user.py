"""Account-related Pydantic schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator


class RegisterRequest(BaseModel):
    """Schema for password-based account registration."""

    name: str = Field(..., min_length=1, max_length=100, description="Display name")
    email: str = Field(..., min_length=3, max_length=320, description="Login email address")
    password: str = Field(..., min_length=6, description="Plaintext password, hashed on receipt")

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        """Lower-case the address and require an ``@``."""
        v = v.strip().lower()
        if "@" not in v:
            raise ValueError("Email must contain '@'")
        return v


class LoginRequest(BaseModel):
    """Schema for login submissions."""

    email: str = Field(..., description="Login email address")
    password: str = Field(..., description="Plaintext password")

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()


class UserSummary(BaseModel):
    """Public identity fields returned after authentication."""

    id: str
    name: str
    email: str

    model_config = ConfigDict(from_attributes=True)


class AuthResponse(BaseModel):
    """Response returned after a successful register or login."""

    user: UserSummary
    token: str = Field(..., description="JWT access token")


class ContactResponse(BaseModel):
    """Minimal entry in the contact list."""

    id: str
    name: str

    model_config = ConfigDict(from_attributes=True)


class ProfileResponse(BaseModel):
    """Profile information, never including credentials."""

    id: str
    name: str
    email: str
    avatar: str | None = None
    created_at: datetime | None = Field(None, serialization_alias="createdAt")
    updated_at: datetime | None = Field(None, serialization_alias="updatedAt")

    model_config = ConfigDict(from_attributes=True)


class ProfileUpdateRequest(BaseModel):
    """Partial profile update; omitted fields are left untouched."""

    name: str | None = Field(None, min_length=1, max_length=100)
    email: str | None = Field(None, min_length=3, max_length=320)
    avatar: str | None = Field(None, description="Avatar URL")

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip().lower()
        if "@" not in v:
            raise ValueError("Email must contain '@'")
        return v


class FederatedLoginRequest(BaseModel):
    """Sign in with an ID token from the federated identity provider."""

    token: str = Field(..., min_length=1, description="RS256 ID token issued by the provider")
