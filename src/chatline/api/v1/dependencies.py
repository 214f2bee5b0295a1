"""Shared API dependencies for authentication and common functionality."""

from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from chatline.core.errors import AuthError, StoreError
from chatline.db.session import get_db
from chatline.realtime.hub import ConnectionHub, get_connection_hub
from chatline.realtime.presence import PresenceRegistry, get_presence_registry
from chatline.services.identity import Identity, IdentityVerifier, get_identity_verifier
from chatline.services.message_pipeline import MessagePipeline, get_message_pipeline

# HTTP Bearer scheme; missing credentials are reported as 401 below
bearer_scheme = HTTPBearer(auto_error=False)


def get_identity_verifier_dep() -> IdentityVerifier:
    return get_identity_verifier()


def get_message_pipeline_dep() -> MessagePipeline:
    return get_message_pipeline()


def get_presence_registry_dep() -> PresenceRegistry:
    return get_presence_registry()


def get_connection_hub_dep() -> ConnectionHub:
    return get_connection_hub()


SessionDep = Annotated[Session, Depends(get_db)]
VerifierDep = Annotated[IdentityVerifier, Depends(get_identity_verifier_dep)]
PipelineDep = Annotated[MessagePipeline, Depends(get_message_pipeline_dep)]
PresenceDep = Annotated[PresenceRegistry, Depends(get_presence_registry_dep)]
HubDep = Annotated[ConnectionHub, Depends(get_connection_hub_dep)]


async def get_current_identity(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
    verifier: VerifierDep,
) -> Identity:
    """Resolve the bearer token (local or federated) to an identity.

    Raises:
        HTTPException: 401 if the token is missing, invalid or unknown.
    """
    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized - No token provided",
        )
    try:
        return await verifier.verify(credentials.credentials)
    except AuthError as err:
        detail = "User not found" if str(err) == "user not found" else "Invalid token"
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail) from err
    except StoreError as err:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Could not validate credentials",
        ) from err


# Type alias for current identity dependency
CurrentIdentityDep = Annotated[Identity, Depends(get_current_identity)]
