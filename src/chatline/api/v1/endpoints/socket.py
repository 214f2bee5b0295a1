# src/chatline/api/v1/endpoints/socket.py
"""Websocket endpoint carrying the realtime chat events."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Query, WebSocket

from chatline.api.v1.dependencies import HubDep, PipelineDep, PresenceDep, VerifierDep
from chatline.realtime.session import ChatSession

logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])


@router.websocket("/ws")
async def chat_socket(
    websocket: WebSocket,
    verifier: VerifierDep,
    pipeline: PipelineDep,
    presence: PresenceDep,
    hub: HubDep,
    token: str | None = Query(None),
) -> None:
    """Authenticate on connect, then pump frames into a ``ChatSession``."""
    session = ChatSession(
        websocket,
        verifier=verifier,
        pipeline=pipeline,
        presence=presence,
        hub=hub,
    )
    if not await session.open(token):
        return
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                logger.debug("Websocket closed with code %s", message.get("code"))
                break
            # Text and binary frames carry the same JSON envelope.
            frame = message.get("text")
            if frame is None:
                frame = message.get("bytes")
            if frame is None:
                continue
            await session.handle_frame(frame)
    finally:
        await session.close()
