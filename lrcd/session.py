from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol

from .errors import InvalidName, NameTaken
from .util import normalize_username

if TYPE_CHECKING:
    from .service import RelayService


class Connection(Protocol):
    """Outbound side of a transport connection.

    Both methods must return without blocking on network I/O; they are
    called while the relay state lock is held.
    """

    def send(self, text: str) -> None: ...

    def close(self) -> None: ...


@dataclass(frozen=True)
class Unnamed:
    """A connected client that has not registered a username yet."""


@dataclass
class Named:
    """A registered client. The username never changes once bound."""

    username: str
    channel: str | None = None
    reply_to: str | None = None


@dataclass(eq=False)
class Session:
    connection: Connection
    session_id: int
    state: Unnamed | Named = field(default_factory=Unnamed)

    @property
    def named(self) -> Named | None:
        return self.state if isinstance(self.state, Named) else None

    @property
    def username(self) -> str | None:
        st = self.named
        return st.username if st is not None else None

    @property
    def channel(self) -> str | None:
        st = self.named
        return st.channel if st is not None else None

    def __repr__(self) -> str:
        return f"Session(id={self.session_id}, username={self.username!r})"


class SessionManager:
    """
    Tracks live sessions and the usernames bound to them.

    This class is responsible for:
    - Session creation on connect and removal on disconnect
    - Username registration and uniqueness among live sessions
    - Username lookups for private messages

    All methods must be called with the relay state lock held.
    """

    def __init__(self, hub: RelayService) -> None:
        self.hub = hub
        self.log = logging.getLogger("lrcd.session")
        self.sessions: dict[Connection, Session] = {}
        self._index_by_name: dict[str, Session] = {}
        self._ids = itertools.count(1)

    def on_connect(self, connection: Connection) -> Session:
        sess = Session(connection=connection, session_id=next(self._ids))
        self.sessions[connection] = sess
        self.log.info("Session created session_id=%s", sess.session_id)
        return sess

    def on_close(
        self, connection: Connection, reason: str = "disconnect"
    ) -> Session | None:
        """
        Drop the session for a connection and detach it from its channel.

        Returns the removed session, or None if the connection was unknown
        (already closed or quit).
        """
        sess = self.sessions.pop(connection, None)
        if sess is None:
            return None

        username = sess.username
        if username is not None and self._index_by_name.get(username) is sess:
            self._index_by_name.pop(username, None)

        if sess.channel is not None:
            self.hub.channel_manager.remove_session(sess)

        self.log.info(
            "Session closed session_id=%s username=%r reason=%s",
            sess.session_id,
            username,
            reason,
        )
        return sess

    def get_session(self, connection: Connection) -> Session | None:
        return self.sessions.get(connection)

    def is_username_taken(self, username: str) -> bool:
        return username in self._index_by_name

    def find_by_username(self, username: str | None) -> Session | None:
        if not username:
            return None
        return self._index_by_name.get(username)

    def register_username(self, sess: Session, candidate: str) -> str | None:
        """
        Bind a username to an unnamed session.

        Returns the bound name, or None when the candidate is blank (the
        line is ignored). Raises InvalidName or NameTaken otherwise; the
        session then stays unnamed.
        """
        if sess.named is not None:
            raise RuntimeError(f"session {sess.session_id} already has a username")

        max_chars = int(self.hub.config.username_max_chars)
        username = normalize_username(candidate, max_chars)
        if username is None:
            raise InvalidName(max_chars)
        if not username:
            return None

        if self.is_username_taken(username):
            raise NameTaken(username)

        sess.state = Named(username=username)
        self._index_by_name[username] = sess
        self.log.info(
            "Username registered session_id=%s username=%r", sess.session_id, username
        )
        return username

    def clear_all(self) -> list[Connection]:
        """Forget every session and return their connections for teardown."""
        connections = list(self.sessions.keys())
        self.sessions.clear()
        self._index_by_name.clear()
        return connections

    def get_stats(self) -> dict[str, Any]:
        total = len(self.sessions)
        named = len(self._index_by_name)
        in_channel = sum(1 for s in self.sessions.values() if s.channel is not None)
        return {"total": total, "named": named, "in_channel": in_channel}
