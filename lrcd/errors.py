"""User-visible error conditions raised by the relay registries.

Every error is local and non-fatal: the router catches :class:`RelayError`
and sends ``str(err)`` back to the session that caused it.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(Enum):
    NAME_TAKEN = "name_taken"
    INVALID_NAME = "invalid_name"
    ALREADY_IN_CHANNEL = "already_in_channel"
    NOT_IN_CHANNEL = "not_in_channel"
    USER_NOT_FOUND = "user_not_found"
    NO_PRIOR_SENDER = "no_prior_sender"
    MESSAGE_NOT_FOUND = "message_not_found"
    NOT_IN_SAME_CHANNEL = "not_in_same_channel"
    NO_CHANNEL = "no_channel"


class RelayError(Exception):
    kind: ErrorKind

    def __init__(self, text: str) -> None:
        super().__init__(text)
        self.text = text

    def __str__(self) -> str:
        return self.text


class NameTaken(RelayError):
    kind = ErrorKind.NAME_TAKEN

    def __init__(self, username: str) -> None:
        super().__init__(
            "Username is already taken. Please choose a different username.\n"
        )
        self.username = username


class InvalidName(RelayError):
    kind = ErrorKind.INVALID_NAME

    def __init__(self, max_chars: int) -> None:
        super().__init__(
            f"Invalid username. Use at most {max_chars} characters.\n"
        )


class AlreadyInChannel(RelayError):
    kind = ErrorKind.ALREADY_IN_CHANNEL

    def __init__(self, channel: str) -> None:
        super().__init__(f"You are already in the {channel} channel.\n")
        self.channel = channel


class NotInChannel(RelayError):
    kind = ErrorKind.NOT_IN_CHANNEL

    def __init__(self) -> None:
        super().__init__("You are not in any channel.\n")


class NoChannel(RelayError):
    kind = ErrorKind.NO_CHANNEL

    def __init__(self) -> None:
        super().__init__("You are not in any channel. Join a channel first.\n")


class UserNotFound(RelayError):
    kind = ErrorKind.USER_NOT_FOUND

    def __init__(self, username: str | None) -> None:
        super().__init__(f"User '{username or ''}' not found.\n")
        self.username = username


class NoPriorSender(RelayError):
    kind = ErrorKind.NO_PRIOR_SENDER

    def __init__(self) -> None:
        super().__init__("No previous private message sender found.\n")


class MessageNotFound(RelayError):
    kind = ErrorKind.MESSAGE_NOT_FOUND

    def __init__(self, message_id: str | None) -> None:
        super().__init__(f"Message '{message_id or ''}' not found.\n")
        self.message_id = message_id


class NotInSameChannel(RelayError):
    kind = ErrorKind.NOT_IN_SAME_CHANNEL

    def __init__(self) -> None:
        super().__init__("You are not in the same channel as the message.\n")
