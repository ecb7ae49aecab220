from __future__ import annotations

import itertools
from dataclasses import dataclass, field

from .constants import CHANNEL_MSG_FMT


@dataclass
class Message:
    id: str
    sender: str
    channel: str
    text: str
    reactions: list[tuple[str, str]] = field(default_factory=list)

    def render(self) -> str:
        """Channel line without the trailing newline."""
        return CHANNEL_MSG_FMT.format(
            channel=self.channel, id=self.id, sender=self.sender, text=self.text
        )


class MessageLedger:
    """
    Append-only store of channel messages, keyed by id.

    Ids are the decimal string of a process-wide counter starting at 1. They
    are never reused, even after the sender disconnects. Call with the state
    lock held.
    """

    def __init__(self) -> None:
        self._counter = itertools.count(1)
        self._messages: dict[str, Message] = {}

    def record_message(self, sender: str, channel: str, text: str) -> Message:
        msg = Message(id=str(next(self._counter)), sender=sender, channel=channel, text=text)
        self._messages[msg.id] = msg
        return msg

    def find_by_id(self, message_id: str | None) -> Message | None:
        if message_id is None:
            return None
        return self._messages.get(message_id)

    def add_reaction(self, message: Message, emoji: str, username: str) -> None:
        message.reactions.append((emoji, username))

    def messages(self) -> list[Message]:
        return list(self._messages.values())

    def __len__(self) -> int:
        return len(self._messages)
