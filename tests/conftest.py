from __future__ import annotations

import pytest

from lrcd.config import RelayRuntimeConfig
from lrcd.service import RelayService


class FakeConnection:
    """Records what the relay sends instead of writing to a socket."""

    def __init__(self) -> None:
        self.sent: list[str] = []
        self.closed = False

    def send(self, text: str) -> None:
        self.sent.append(text)

    def close(self) -> None:
        self.closed = True

    def take(self) -> list[str]:
        out, self.sent = self.sent, []
        return out


@pytest.fixture
def relay() -> RelayService:
    return RelayService(RelayRuntimeConfig())


@pytest.fixture
def connect(relay: RelayService):
    def _connect(username: str | None = None, channel: str | None = None) -> FakeConnection:
        conn = FakeConnection()
        relay.on_connect(conn)
        if username is not None:
            relay.on_line(conn, username)
        if channel is not None:
            relay.on_line(conn, f"/join {channel}")
        conn.take()
        return conn

    return _connect
