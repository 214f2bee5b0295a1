# src/chatline/api/v1/endpoints/auth.py
"""Account endpoints: register, login, federated sign-in, contacts and profile."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Query, status

from chatline.api.v1.dependencies import CurrentIdentityDep, SessionDep, VerifierDep
from chatline.core.errors import AuthError, NotFoundError, StoreError, ValidationError
from chatline.core.security import create_access_token
from chatline.schemas.user import (
    AuthResponse,
    ContactResponse,
    FederatedLoginRequest,
    LoginRequest,
    ProfileResponse,
    ProfileUpdateRequest,
    RegisterRequest,
    UserSummary,
)
from chatline.services import user_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["authentication"])


def _store_failure(action: str, err: StoreError) -> HTTPException:
    logger.error("Store failure while %s: %s", action, err)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Error {action}",
    )


@router.post("/register", status_code=status.HTTP_201_CREATED, response_model=AuthResponse)
async def register(payload: RegisterRequest, db: SessionDep) -> AuthResponse:
    """Create an account and return it with a fresh access token."""
    try:
        user = user_service.register_user(db, payload)
    except ValidationError as err:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(err)) from err
    except StoreError as err:
        raise _store_failure("registering user", err) from err
    logger.info("Registered user %s", user.id)
    return AuthResponse(user=UserSummary.model_validate(user), token=create_access_token(user.id))


@router.post("/login", response_model=AuthResponse)
async def login(payload: LoginRequest, db: SessionDep) -> AuthResponse:
    """Exchange email and password for an access token."""
    try:
        user = user_service.authenticate_user(db, payload.email, payload.password)
    except StoreError as err:
        raise _store_failure("logging in user", err) from err
    if user is None:
        logger.info("Failed login for %s", payload.email)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid email or password",
        )
    return AuthResponse(user=UserSummary.model_validate(user), token=create_access_token(user.id))


@router.post("/federated-login", response_model=AuthResponse)
async def federated_login(
    payload: FederatedLoginRequest,
    db: SessionDep,
    verifier: VerifierDep,
) -> AuthResponse:
    """Exchange a federated ID token for a local account and access token.

    The account is created on first sign-in, or linked to an existing
    account with the same verified email.
    """
    try:
        claims = await verifier.federated.verify_claims(payload.token)
    except AuthError as err:
        logger.info("Rejected federated login: %s", err)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token") from err
    subject = claims.get("sub")
    if not subject or not isinstance(subject, str):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    try:
        user = user_service.provision_federated_user(
            db,
            subject,
            email=claims.get("email"),
            email_verified=claims.get("email_verified") is True,
            name=claims.get("name"),
            avatar=claims.get("picture"),
        )
    except ValidationError as err:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(err)) from err
    except StoreError as err:
        raise _store_failure("signing in federated user", err) from err
    logger.info("Federated sign-in for user %s", user.id)
    return AuthResponse(user=UserSummary.model_validate(user), token=create_access_token(user.id))


@router.get("/users", response_model=list[ContactResponse])
async def list_users(
    db: SessionDep,
    exclude: str | None = Query(None, description="User id to leave out"),
) -> list[ContactResponse]:
    """Return the contact list."""
    try:
        users = user_service.list_contacts(db, exclude)
    except StoreError as err:
        raise _store_failure("fetching users", err) from err
    return [ContactResponse.model_validate(user) for user in users]


@router.get("/profile", response_model=ProfileResponse, response_model_by_alias=True)
async def get_profile(db: SessionDep, id: str = Query(..., description="User id")) -> ProfileResponse:
    """Return a user's profile without credentials."""
    try:
        user = user_service.get_user(db, id)
    except NotFoundError as err:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found") from err
    except StoreError as err:
        raise _store_failure("fetching user profile", err) from err
    return ProfileResponse.model_validate(user)


@router.put("/profile", response_model=ProfileResponse, response_model_by_alias=True)
async def update_profile(
    payload: ProfileUpdateRequest,
    current: CurrentIdentityDep,
    db: SessionDep,
) -> ProfileResponse:
    """Update the authenticated user's own profile."""
    try:
        user = user_service.update_profile(db, current.id, payload)
    except NotFoundError as err:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found") from err
    except ValidationError as err:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(err)) from err
    except StoreError as err:
        raise _store_failure("updating user profile", err) from err
    return ProfileResponse.model_validate(user)
