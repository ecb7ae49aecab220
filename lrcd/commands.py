"""Command parsing and handling for the lrcd line protocol."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .constants import (
    CHANNELS_HEADER,
    CHANNELS_NONE,
    CMD_CHANNELS,
    CMD_JOIN,
    CMD_LEAVE,
    CMD_PM,
    CMD_QUIT,
    CMD_REACT,
    CMD_REPLY,
    CMD_REPLY_SHORT,
    GOODBYE,
    JOIN_HINT_FMT,
    JOINED_FMT,
    LEFT_FMT,
)
from .errors import AlreadyInChannel

if TYPE_CHECKING:
    from .messages import Outgoing
    from .service import RelayService
    from .session import Session


class CommandKind(enum.Enum):
    JOIN = "join"
    LEAVE = "leave"
    PM = "pm"
    REPLY = "reply"
    REACT = "react"
    CHANNELS = "channels"
    QUIT = "quit"
    BROADCAST = "broadcast"


_KINDS: dict[str, CommandKind] = {
    CMD_JOIN: CommandKind.JOIN,
    CMD_LEAVE: CommandKind.LEAVE,
    CMD_PM: CommandKind.PM,
    CMD_REPLY: CommandKind.REPLY,
    CMD_REPLY_SHORT: CommandKind.REPLY,
    CMD_REACT: CommandKind.REACT,
    CMD_CHANNELS: CommandKind.CHANNELS,
    CMD_QUIT: CommandKind.QUIT,
}


@dataclass(frozen=True)
class Command:
    kind: CommandKind
    line: str
    args: tuple[str | None, ...] = ()

    def arg(self, index: int) -> str | None:
        return self.args[index] if index < len(self.args) else None


def _word(parts: list[str], index: int) -> str | None:
    return parts[index] if index < len(parts) else None


def parse_command(line: str) -> Command:
    """
    Split one inbound line into a command and its arguments.

    Missing arguments come back as None. For /pm and /reply the message text
    keeps its internal spacing. Anything that is not a known command token is
    a BROADCAST of the whole line.
    """
    parts = line.split(None, 1)
    kind = _KINDS.get(parts[0]) if parts else None
    if kind is None:
        return Command(CommandKind.BROADCAST, line)

    if kind is CommandKind.JOIN:
        words = line.split()
        return Command(kind, line, (_word(words, 1),))

    if kind is CommandKind.PM:
        pm = line.split(None, 2)
        return Command(kind, line, (_word(pm, 1), _word(pm, 2) or ""))

    if kind is CommandKind.REPLY:
        return Command(kind, line, (_word(parts, 1) or "",))

    if kind is CommandKind.REACT:
        words = line.split()
        return Command(kind, line, (_word(words, 1), _word(words, 2)))

    return Command(kind, line)


class CommandHandler:
    """Handles slash commands for named sessions."""

    def __init__(self, hub: RelayService) -> None:
        self.hub = hub

    def handle_command(self, sess: Session, cmd: Command, outgoing: Outgoing) -> bool:
        """Handle a parsed command.

        Returns False for BROADCAST so the caller can forward the line as
        channel chat. Registry errors propagate to the router.
        """
        kind = cmd.kind
        conn = sess.connection
        helper = self.hub.message_helper

        if kind is CommandKind.BROADCAST:
            return False

        if kind is CommandKind.JOIN:
            channel = cmd.arg(0)
            if not channel:
                current = sess.channel
                if current is not None:
                    raise AlreadyInChannel(current)
                # Nothing to join; absorbed like the other missing-argument cases.
                return True
            self.hub.channel_manager.join(sess, channel)
            self.hub.stats_manager.inc("joins")
            helper.queue_text(outgoing, conn, JOINED_FMT.format(channel=channel))
            helper.queue_text(outgoing, conn, JOIN_HINT_FMT.format(channel=channel))
            return True

        if kind is CommandKind.LEAVE:
            channel = self.hub.channel_manager.leave(sess)
            self.hub.stats_manager.inc("leaves")
            helper.queue_text(outgoing, conn, LEFT_FMT.format(channel=channel))
            helper.queue_prompt(outgoing, conn)
            return True

        if kind is CommandKind.PM:
            self.hub.router.send_private(sess, cmd.arg(0), cmd.arg(1) or "", outgoing)
            return True

        if kind is CommandKind.REPLY:
            self.hub.router.reply(sess, cmd.arg(0) or "", outgoing)
            return True

        if kind is CommandKind.REACT:
            self.hub.router.react(sess, cmd.arg(0), cmd.arg(1), outgoing)
            return True

        if kind is CommandKind.CHANNELS:
            names = self.hub.channel_manager.list_channels()
            if names:
                helper.queue_list(outgoing, conn, CHANNELS_HEADER, names)
            else:
                helper.queue_text(outgoing, conn, CHANNELS_NONE)
            helper.queue_prompt(outgoing, conn)
            return True

        if kind is CommandKind.QUIT:
            helper.queue_text(outgoing, conn, GOODBYE)
            helper.queue_close(outgoing, conn)
            self.hub.session_manager.on_close(conn, reason="quit")
            return True

        raise AssertionError(f"unhandled command kind {kind}")
