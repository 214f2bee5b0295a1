"""Live connections and room-keyed broadcast.

Broadcast is best effort: sends run concurrently with ``asyncio.gather`` and
a connection whose send fails is forgotten without retry.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Any, Protocol

from chatline.services.identity import Identity

logger = logging.getLogger(__name__)


class JsonTransport(Protocol):
    """The part of a websocket a connection needs to push frames."""

    async def send_json(self, data: Any) -> None: ...


class Connection:
    """Handle for one live transport session bound to one identity.

    The identity is fixed at construction and never changes. Handles compare
    by object identity.
    """

    def __init__(self, transport: JsonTransport, identity: Identity) -> None:
        self.id = uuid.uuid4().hex
        self.transport = transport
        self.identity = identity
        self.rooms: set[str] = set()

    async def send(self, event: str, data: Any) -> None:
        await self.transport.send_json({"event": event, "data": data})

    def __repr__(self) -> str:
        return f"Connection(id={self.id!r}, identity={self.identity.id!r})"


class ConnectionHub:
    """Tracks connections and their room subscriptions on one event loop."""

    def __init__(self) -> None:
        self._connections: set[Connection] = set()
        self._rooms: dict[str, set[Connection]] = {}

    def add(self, connection: Connection) -> None:
        self._connections.add(connection)

    def discard(self, connection: Connection) -> None:
        """Forget a connection and drop it from every room."""
        self._connections.discard(connection)
        for room_id in list(connection.rooms):
            members = self._rooms.get(room_id)
            if members is not None:
                members.discard(connection)
                if not members:
                    del self._rooms[room_id]
        connection.rooms.clear()

    def join(self, connection: Connection, room_id: str) -> None:
        """Subscribe ``connection`` to ``room_id``. Idempotent."""
        self._rooms.setdefault(room_id, set()).add(connection)
        connection.rooms.add(room_id)

    def members(self, room_id: str) -> list[Connection]:
        return list(self._rooms.get(room_id, ()))

    def is_member(self, connection: Connection, room_id: str) -> bool:
        return connection in self._rooms.get(room_id, ())

    def __len__(self) -> int:
        return len(self._connections)

    async def emit_all(self, event: str, data: Any) -> None:
        await self._deliver(list(self._connections), event, data)

    async def emit_room(self, room_id: str, event: str, data: Any) -> None:
        await self._deliver(self.members(room_id), event, data)

    async def emit_room_except(
        self, room_id: str, exclude: Connection, event: str, data: Any
    ) -> None:
        targets = [member for member in self.members(room_id) if member is not exclude]
        await self._deliver(targets, event, data)

    async def _deliver(self, targets: list[Connection], event: str, data: Any) -> None:
        if not targets:
            return
        results = await asyncio.gather(
            *(self._safe_send(target, event, data) for target in targets)
        )
        for target, delivered in zip(targets, results):
            if not delivered:
                self.discard(target)

    async def _safe_send(self, connection: Connection, event: str, data: Any) -> bool:
        try:
            await connection.send(event, data)
            return True
        except Exception as exc:
            logger.warning("Dropping %r after failed %s send: %s", connection, event, exc)
            return False


_connection_hub = ConnectionHub()


def get_connection_hub() -> ConnectionHub:
    """Return the process-wide connection hub."""
    return _connection_hub
