"""Channel membership for the lrcd relay.

Channels are created on first join and are never removed: a channel whose
last member left is still listed by ``/channels``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from .errors import AlreadyInChannel, NotInChannel

if TYPE_CHECKING:
    from .service import RelayService
    from .session import Session


class ChannelManager:
    """Maps channel names to their members. Call with the state lock held."""

    def __init__(self, hub: RelayService) -> None:
        self.hub = hub
        self.log = logging.getLogger("lrcd.channels")
        # Values are insertion-ordered sets: members iterate in join order.
        self.channels: dict[str, dict[Session, None]] = {}

    def join(self, sess: Session, channel: str) -> None:
        st = sess.named
        if st is None:
            raise RuntimeError(f"session {sess.session_id} has no username")
        if st.channel is not None:
            raise AlreadyInChannel(st.channel)

        self.channels.setdefault(channel, {})[sess] = None
        st.channel = channel
        self.log.info("User %s joined the %s channel", st.username, channel)

    def leave(self, sess: Session) -> str:
        """Leave the current channel and return its name."""
        st = sess.named
        if st is None or st.channel is None:
            raise NotInChannel()

        channel = st.channel
        self.channels.get(channel, {}).pop(sess, None)
        st.channel = None
        self.log.info("User %s left the %s channel", st.username, channel)
        return channel

    def remove_session(self, sess: Session) -> None:
        """Detach a disconnecting session; a no-op when it is in no channel."""
        try:
            self.leave(sess)
        except NotInChannel:
            pass

    def list_channels(self) -> list[str]:
        return list(self.channels.keys())

    def members_of(self, channel: str | None) -> list[Session]:
        if channel is None:
            return []
        return list(self.channels.get(channel, {}))

    def is_member(self, channel: str, sess: Session) -> bool:
        return sess in self.channels.get(channel, {})

    def clear_all(self) -> None:
        self.channels.clear()

    def get_stats(self) -> dict[str, Any]:
        memberships = sum(len(v) for v in self.channels.values())
        top = sorted(
            ((name, len(members)) for name, members in self.channels.items()),
            key=lambda x: (-x[1], x[0]),
        )[:5]
        return {
            "channels_total": len(self.channels),
            "memberships": memberships,
            "top_channels": top,
        }
