# tests/realtime/conftest.py
from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

import pytest

from chatline.realtime.hub import Connection
from chatline.realtime.session import ChatSession
from chatline.services.identity import Identity


class FakeTransport:
    """Records what a session does to its websocket."""

    def __init__(self, fail_sends: bool = False) -> None:
        self.accepted = False
        self.closed_code: int | None = None
        self.frames: list[dict[str, Any]] = []
        self.fail_sends = fail_sends

    async def accept(self) -> None:
        self.accepted = True

    async def close(self, code: int = 1000) -> None:
        self.closed_code = code

    async def send_json(self, data: Any) -> None:
        if self.fail_sends:
            raise ConnectionError("peer went away")
        self.frames.append(data)

    def events(self, name: str) -> list[Any]:
        return [frame["data"] for frame in self.frames if frame["event"] == name]


def frame(event: str, data: Any) -> str:
    return json.dumps({"event": event, "data": data})


@pytest.fixture()
def make_session(verifier, pipeline, presence, hub) -> Callable[..., tuple[ChatSession, FakeTransport]]:
    """Return a factory for sessions sharing the test registry and hub."""

    def _make(grace_seconds: float = 0.01) -> tuple[ChatSession, FakeTransport]:
        transport = FakeTransport()
        session = ChatSession(
            transport,
            verifier=verifier,
            pipeline=pipeline,
            presence=presence,
            hub=hub,
            grace_seconds=grace_seconds,
        )
        return session, transport

    return _make


@pytest.fixture()
def make_connection() -> Callable[..., Connection]:
    """Return a factory for hub connections backed by fake transports."""

    def _make(name: str, fail_sends: bool = False) -> Connection:
        return Connection(FakeTransport(fail_sends=fail_sends), Identity(id=name, name=name.title()))

    return _make


@pytest.fixture()
def encode_frame() -> Callable[[str, Any], str]:
    return frame
