"""Process-wide registry of which identity is online on which connection."""

from __future__ import annotations

from collections.abc import Hashable
from threading import Lock


class PresenceRegistry:
    """Map identity id -> live connection handle, last connection wins.

    Every operation runs under one lock, so a delayed removal racing with a
    fresh register can never drop the newer connection.
    """

    def __init__(self) -> None:
        self._entries: dict[str, Hashable] = {}
        self._lock = Lock()

    def register(self, identity_id: str, connection: Hashable) -> None:
        """Insert or replace the connection for ``identity_id``."""
        with self._lock:
            self._entries[identity_id] = connection

    def remove_if_current(self, identity_id: str, connection: Hashable) -> bool:
        """Remove the entry only if it still points at ``connection``.

        Returns True when an entry was removed.
        """
        with self._lock:
            if self._entries.get(identity_id) is connection:
                del self._entries[identity_id]
                return True
            return False

    def connection_for(self, identity_id: str) -> Hashable | None:
        with self._lock:
            return self._entries.get(identity_id)

    def identity_for(self, connection: Hashable) -> str | None:
        """Return the identity currently bound to ``connection``, if any."""
        with self._lock:
            for identity_id, current in self._entries.items():
                if current is connection:
                    return identity_id
            return None

    def snapshot(self) -> frozenset[str]:
        """Point-in-time copy of all online identity ids."""
        with self._lock:
            return frozenset(self._entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, identity_id: object) -> bool:
        with self._lock:
            return identity_id in self._entries


_presence_registry = PresenceRegistry()


def get_presence_registry() -> PresenceRegistry:
    """Return the process-wide presence registry."""
    return _presence_registry
