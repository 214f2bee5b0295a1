"""System endpoints for Chatline."""

from __future__ import annotations

from fastapi import APIRouter

from chatline.api.v1.dependencies import HubDep, PresenceDep
from chatline.core.settings import settings

router = APIRouter(prefix="/system", tags=["system"])


@router.get("/presence")
async def get_presence(presence: PresenceDep, hub: HubDep) -> dict[str, int]:
    """Return how many identities are online and how many sockets are open."""
    return {"online": len(presence), "connections": len(hub)}


@router.get("/config")
async def get_public_config() -> dict[str, object]:
    """Return a sanitized snapshot of public runtime configuration."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "encryption_enabled": settings.encryption_enabled,
        "federated_login_enabled": settings.federated_enabled,
        "presence_grace_seconds": settings.presence_grace_seconds,
        "max_image_bytes": settings.max_image_bytes,
    }
