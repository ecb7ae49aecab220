from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

from .commands import parse_command
from .constants import (
    MENTION_FMT,
    MENTION_PATTERN,
    PRIVATE_IN_FMT,
    PRIVATE_OUT_FMT,
    REACTION_FMT,
)
from .errors import (
    MessageNotFound,
    NoChannel,
    NoPriorSender,
    NotInSameChannel,
    RelayError,
    UserNotFound,
)

if TYPE_CHECKING:
    from .messages import Outgoing
    from .service import RelayService
    from .session import Session

_MENTION_RE = re.compile(MENTION_PATTERN, re.ASCII)


def find_mentions(text: str) -> list[str]:
    """Distinct mentioned names in order of first appearance."""
    return list(dict.fromkeys(_MENTION_RE.findall(text)))


class MessageRouter:
    """
    Routes inbound lines and decides who receives what.

    This class is responsible for:
    - Username registration for unnamed sessions
    - Handing named sessions' lines to the command handler
    - Channel broadcasts with mention delivery
    - Private messages and replies
    - Reactions to recorded channel messages

    Every method expects the state lock to be held.
    """

    def __init__(self, hub: RelayService) -> None:
        self.hub = hub
        self.log = logging.getLogger("lrcd.router")

    def route_line(self, sess: Session, line: str, outgoing: Outgoing) -> None:
        """Main entry point for one inbound line from a session."""
        self.hub.stats_manager.inc("lines_in")

        try:
            if sess.named is None:
                self._handle_username(sess, line, outgoing)
                return

            cmd = parse_command(line)
            if self.log.isEnabledFor(logging.DEBUG):
                self.log.debug(
                    "RX session_id=%s kind=%s chars=%s",
                    sess.session_id,
                    cmd.kind.value,
                    len(line),
                )
            if not self.hub.command_handler.handle_command(sess, cmd, outgoing):
                self.broadcast(sess, cmd.line, outgoing)
        except RelayError as e:
            self.log.debug(
                "Rejected session_id=%s kind=%s", sess.session_id, e.kind.value
            )
            self.hub.message_helper.queue_error(outgoing, sess.connection, e)

    def _handle_username(self, sess: Session, line: str, outgoing: Outgoing) -> None:
        username = self.hub.session_manager.register_username(sess, line)
        if username is None:
            return
        self.hub.message_helper.queue_welcome(outgoing, sess.connection, username)

    def broadcast(self, sess: Session, text: str, outgoing: Outgoing) -> None:
        """Send text to every member of the sender's channel and record it."""
        st = sess.named
        if st is None or st.channel is None:
            raise NoChannel()

        channel = st.channel
        members = self.hub.channel_manager.members_of(channel)
        msg = self.hub.ledger.record_message(st.username, channel, text)
        helper = self.hub.message_helper

        by_name = {m.username: m for m in members}
        for name in find_mentions(text):
            target = by_name.get(name)
            if target is None:
                continue
            helper.queue_text(
                outgoing,
                target.connection,
                MENTION_FMT.format(sender=st.username, text=text),
            )
            self.hub.stats_manager.inc("mentions")

        line = msg.render() + "\n"
        for member in members:
            helper.queue_text(outgoing, member.connection, line)

        self.hub.stats_manager.inc("broadcasts")
        self.log.info(
            "User %s sent message id=%s to the %s channel recipients=%s",
            st.username,
            msg.id,
            channel,
            len(members),
        )

    def send_private(
        self, sess: Session, recipient: str | None, text: str, outgoing: Outgoing
    ) -> None:
        st = sess.named
        if st is None:
            return

        target = self.hub.session_manager.find_by_username(recipient)
        target_st = target.named if target is not None else None
        if target is None or target_st is None:
            raise UserNotFound(recipient)

        helper = self.hub.message_helper
        helper.queue_text(
            outgoing,
            target.connection,
            PRIVATE_IN_FMT.format(sender=st.username, text=text),
        )
        helper.queue_text(
            outgoing,
            sess.connection,
            PRIVATE_OUT_FMT.format(recipient=target_st.username, text=text),
        )
        target_st.reply_to = st.username
        helper.queue_prompt(outgoing, target.connection)

        self.hub.stats_manager.inc("private_msgs")
        self.log.info(
            "User %s sent a private message to %s", st.username, target_st.username
        )

    def reply(self, sess: Session, text: str, outgoing: Outgoing) -> None:
        st = sess.named
        if st is None or not st.reply_to:
            raise NoPriorSender()
        self.send_private(sess, st.reply_to, text, outgoing)

    def react(
        self,
        sess: Session,
        message_id: str | None,
        emoji: str | None,
        outgoing: Outgoing,
    ) -> None:
        st = sess.named
        if st is None:
            return

        ledger = self.hub.ledger
        msg = ledger.find_by_id(message_id)
        if msg is None:
            raise MessageNotFound(message_id)

        channels = self.hub.channel_manager
        if not channels.is_member(msg.channel, sess):
            raise NotInSameChannel()

        emoji = emoji or self.hub.config.default_reaction
        ledger.add_reaction(msg, emoji, st.username)

        line = REACTION_FMT.format(username=st.username, emoji=emoji, message=msg.render())
        for member in channels.members_of(msg.channel):
            self.hub.message_helper.queue_text(outgoing, member.connection, line)

        self.hub.stats_manager.inc("reactions")
        self.log.info(
            "User %s reacted with %s to message id=%s", st.username, emoji, msg.id
        )
