"""Per-connection session: authenticate, then dispatch inbound events.

Lifecycle::

    CONNECTING -> AUTHENTICATED -> JOINED -> DISCONNECTED

A session never reconnects; a reconnecting client gets a new session. No
single inbound event can end the session: every per-event failure is
logged and dropped.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any, Protocol

from pydantic import ValidationError as PayloadError

from chatline.core.errors import AuthorizationError, ChatError, NotFoundError, StoreError
from chatline.core.settings import settings
from chatline.realtime.hub import Connection, ConnectionHub
from chatline.realtime.presence import PresenceRegistry
from chatline.schemas.events import (
    ChatMessageEvent,
    DeleteMessageEvent,
    EditMessageEvent,
    EventFrame,
    JoinRoomEvent,
    RegisterUsersEvent,
    TypingEvent,
)
from chatline.services.identity import Identity, IdentityVerifier
from chatline.services.message_pipeline import Attachment, MessagePipeline
from chatline.services.rooms import room_for

logger = logging.getLogger(__name__)

# RFC 6455 policy violation
WS_POLICY_VIOLATION = 1008

# Outbound event names
EVENT_ONLINE_USERS = "online-users"
EVENT_CHAT_MESSAGE = "chat-message"
EVENT_MESSAGE_DELETED = "message-deleted"
EVENT_MESSAGE_EDITED = "message-edited"
EVENT_TYPING = "typing"
EVENT_STOP_TYPING = "stop-typing"

# Strong references to pending grace-period removals
_PENDING_REMOVALS: set[asyncio.Task[None]] = set()


class SessionState(str, Enum):
    """Connection lifecycle states."""

    CONNECTING = "connecting"
    AUTHENTICATED = "authenticated"
    JOINED = "joined"
    DISCONNECTED = "disconnected"


class SessionTransport(Protocol):
    """What a session needs from the underlying websocket."""

    async def accept(self) -> None: ...

    async def close(self, code: int = 1000) -> None: ...

    async def send_json(self, data: Any) -> None: ...


class ChatSession:
    """Drive one client connection from handshake to disconnect."""

    def __init__(
        self,
        transport: SessionTransport,
        *,
        verifier: IdentityVerifier,
        pipeline: MessagePipeline,
        presence: PresenceRegistry,
        hub: ConnectionHub,
        grace_seconds: float | None = None,
        max_image_bytes: int | None = None,
    ) -> None:
        self.transport = transport
        self.state = SessionState.CONNECTING
        self.connection: Connection | None = None
        self.removal_task: asyncio.Task[None] | None = None
        self._verifier = verifier
        self._pipeline = pipeline
        self._presence = presence
        self._hub = hub
        self._grace_seconds = (
            settings.presence_grace_seconds if grace_seconds is None else grace_seconds
        )
        self._max_image_bytes = max_image_bytes
        self._handlers: dict[str, Callable[[Any], Awaitable[None]]] = {
            "register-users": self.on_register_users,
            "join-room": self.on_join_room,
            "chat-message": self.on_chat_message,
            "typing": self.on_typing,
            "stop-typing": self.on_stop_typing,
            "delete-message": self.on_delete_message,
            "edit-message": self.on_edit_message,
        }

    @property
    def identity(self) -> Identity | None:
        return self.connection.identity if self.connection else None

    # --- lifecycle ------------------------------------------------------------------
    async def open(self, token: str | None) -> bool:
        """Authenticate the handshake token and go online.

        On failure the transport is closed with a policy violation and no
        presence entry is created. Returns True when the session is live.
        """
        if self.state is not SessionState.CONNECTING:
            raise RuntimeError(f"Cannot open a session in state {self.state.value}")
        try:
            identity = await self._verifier.verify(token)
        except ChatError as exc:
            logger.warning("Refusing connection: %s", exc)
            self.state = SessionState.DISCONNECTED
            await self.transport.close(code=WS_POLICY_VIOLATION)
            return False

        await self.transport.accept()
        connection = Connection(self.transport, identity)
        self.connection = connection
        self._hub.add(connection)
        self._presence.register(identity.id, connection)
        self.state = SessionState.AUTHENTICATED
        logger.info("Identity %s connected on %s", identity.id, connection.id)
        await self.broadcast_presence()
        return True

    async def close(self) -> None:
        """Handle transport close; presence is removed after the grace delay."""
        if self.state is SessionState.DISCONNECTED:
            return
        self.state = SessionState.DISCONNECTED
        connection = self.connection
        if connection is None:
            return
        self._hub.discard(connection)
        logger.info("Identity %s disconnected from %s", connection.identity.id, connection.id)
        task = asyncio.create_task(self._expire_presence(connection))
        _PENDING_REMOVALS.add(task)
        task.add_done_callback(_PENDING_REMOVALS.discard)
        self.removal_task = task

    async def _expire_presence(self, connection: Connection) -> None:
        await asyncio.sleep(self._grace_seconds)
        if self._presence.remove_if_current(connection.identity.id, connection):
            logger.info("Identity %s is now offline", connection.identity.id)
            await self.broadcast_presence()

    async def broadcast_presence(self) -> None:
        await self._hub.emit_all(EVENT_ONLINE_USERS, sorted(self._presence.snapshot()))

    # --- inbound frames -------------------------------------------------------------
    async def handle_frame(self, raw: str | bytes | dict[str, Any]) -> None:
        """Parse one ``{"event", "data"}`` frame and dispatch it."""
        if isinstance(raw, (str, bytes)):
            try:
                raw = json.loads(raw)
            except (ValueError, RecursionError):
                logger.warning("Ignoring non-JSON frame from %r", self.connection)
                return
        try:
            frame = EventFrame.model_validate(raw)
        except PayloadError:
            logger.warning("Ignoring malformed frame from %r", self.connection)
            return
        await self.dispatch(frame.event, frame.data)

    async def dispatch(self, event: str, data: Any) -> None:
        """Run the handler for ``event``, isolating any failure to this event."""
        if self.connection is None or self.state is SessionState.DISCONNECTED:
            logger.warning("Ignoring %s on a session that is not live", event)
            return
        handler = self._handlers.get(event)
        if handler is None:
            logger.warning("Ignoring unknown event %r from %r", event, self.connection)
            return
        try:
            await handler(data)
        except PayloadError as exc:
            logger.warning(
                "Dropping malformed %s from %r: %d error(s)", event, self.connection, exc.error_count()
            )
        except StoreError as exc:
            logger.error("Dropping %s from %r after store failure: %s", event, self.connection, exc)
        except ChatError as exc:
            logger.warning(
                "Dropping %s from %r (%s): %s", event, self.connection, type(exc).__name__, exc
            )
        except Exception:
            logger.exception("Unexpected failure handling %s from %r", event, self.connection)

    def _live(self) -> Connection:
        if self.connection is None:
            raise RuntimeError("Session has no bound connection")
        return self.connection

    async def on_register_users(self, data: Any) -> None:
        connection = self._live()
        payload = RegisterUsersEvent.model_validate(data)
        if payload.identity != connection.identity.id:
            logger.warning(
                "Rejecting register-users for %s from %r", payload.identity, connection
            )
            return
        self._presence.register(connection.identity.id, connection)
        await self.broadcast_presence()

    async def on_join_room(self, data: Any) -> None:
        connection = self._live()
        payload = JoinRoomEvent.model_validate(data)
        self._hub.join(connection, payload.room_id)
        self.state = SessionState.JOINED
        logger.debug("%r joined room %s", connection, payload.room_id)

    async def on_chat_message(self, data: Any) -> None:
        connection = self._live()
        payload = ChatMessageEvent.model_validate(data)
        if payload.sender != connection.identity.id:
            logger.warning(
                "Rejecting chat-message claiming sender %s from %r", payload.sender, connection
            )
            return
        attachment = Attachment.from_base64(
            payload.image_base64, payload.image_type, max_bytes=self._max_image_bytes
        )
        view = await asyncio.to_thread(
            self._pipeline.send, payload.sender, payload.receiver, payload.content, attachment
        )
        await self._hub.emit_room(
            room_for(payload.sender, payload.receiver), EVENT_CHAT_MESSAGE, view.to_payload()
        )

    async def _relay_typing(self, event: str, data: Any) -> None:
        connection = self._live()
        payload = TypingEvent.model_validate(data)
        if not self._hub.is_member(connection, payload.room_id):
            logger.warning("Ignoring %s for unjoined room %s from %r", event, payload.room_id, connection)
            return
        await self._hub.emit_room_except(
            payload.room_id, connection, event, connection.identity.id
        )

    async def on_typing(self, data: Any) -> None:
        await self._relay_typing(EVENT_TYPING, data)

    async def on_stop_typing(self, data: Any) -> None:
        await self._relay_typing(EVENT_STOP_TYPING, data)

    async def on_delete_message(self, data: Any) -> None:
        connection = self._live()
        payload = DeleteMessageEvent.model_validate(data)
        try:
            await asyncio.to_thread(
                self._pipeline.delete, payload.message_id, connection.identity.id
            )
        except (AuthorizationError, NotFoundError) as exc:
            logger.warning("Delete of message %s dropped: %s", payload.message_id, exc)
            return
        await self._hub.emit_room(
            payload.room_id, EVENT_MESSAGE_DELETED, {"messageId": payload.message_id}
        )

    async def on_edit_message(self, data: Any) -> None:
        connection = self._live()
        payload = EditMessageEvent.model_validate(data)
        try:
            view = await asyncio.to_thread(
                self._pipeline.edit,
                payload.message_id,
                connection.identity.id,
                payload.new_content,
            )
        except (AuthorizationError, NotFoundError) as exc:
            logger.warning("Edit of message %s dropped: %s", payload.message_id, exc)
            return
        await self._hub.emit_room(payload.room_id, EVENT_MESSAGE_EDITED, view.to_payload())
