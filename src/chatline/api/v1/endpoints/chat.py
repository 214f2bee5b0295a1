# src/chatline/api/v1/endpoints/chat.py
"""Chat history endpoints: conversation listing, read receipts, unread counts."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, HTTPException, Query, status

from chatline.api.v1.dependencies import CurrentIdentityDep, PipelineDep
from chatline.core.errors import StoreError
from chatline.schemas.message import MarkReadRequest, MarkReadResponse, UnreadCount

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat", tags=["chat"])


@router.get("/messages")
async def get_chat_messages(
    current: CurrentIdentityDep,
    pipeline: PipelineDep,
    user1: str | None = Query(None),
    user2: str | None = Query(None),
) -> list[dict[str, Any]]:
    """Return the conversation between ``user1`` and ``user2``, oldest first.

    The caller must be one of the two participants.
    """
    if not user1 or not user2:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Both user IDs are required",
        )
    if current.id not in (user1, user2):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not a participant in this conversation",
        )
    try:
        messages = pipeline.list_conversation(user1, user2)
    except StoreError as err:
        logger.error("Error fetching messages: %s", err)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error fetching messages",
        ) from err
    logger.debug("Found %d messages between %s and %s", len(messages), user1, user2)
    return [message.to_payload() for message in messages]


@router.post("/mark-read", response_model=MarkReadResponse)
async def mark_messages_as_read(
    payload: MarkReadRequest,
    current: CurrentIdentityDep,
    pipeline: PipelineDep,
) -> MarkReadResponse:
    """Mark all unread messages from ``sender`` to the caller as read."""
    if current.id != payload.receiver:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the receiver can mark messages as read",
        )
    try:
        count = pipeline.mark_read(payload.sender, payload.receiver)
    except StoreError as err:
        logger.error("Error marking messages as read: %s", err)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error marking messages as read",
        ) from err
    return MarkReadResponse(msg="Messages marked as read", count=count)


@router.get("/unread-counts", response_model=list[UnreadCount])
async def get_unread_counts(
    current: CurrentIdentityDep,
    pipeline: PipelineDep,
    user_id: str | None = Query(None, alias="userId"),
) -> list[UnreadCount]:
    """Return unread counts addressed to the caller, grouped by sender."""
    if user_id is not None and user_id != current.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Unread counts are only available for yourself",
        )
    try:
        counts = pipeline.unread_counts(current.id)
    except StoreError as err:
        logger.error("Error fetching unread counts: %s", err)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error fetching unread counts",
        ) from err
    return [UnreadCount(sender=sender, count=count) for sender, count in sorted(counts.items())]
