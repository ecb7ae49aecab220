"""Outbound text queueing for the lrcd relay."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .constants import (
    HELP_HEADER,
    HELP_LINES,
    LIST_ITEM_FMT,
    PROMPT,
    WELCOME_FMT,
)
from .errors import RelayError

if TYPE_CHECKING:
    from .service import RelayService
    from .session import Connection

# A None text is a close request, delivered after any text queued before it.
Outgoing = list[tuple["Connection", "str | None"]]


class MessageHelper:
    """
    Helper methods for queueing outbound text.

    Handlers never write to a connection directly; they append to an
    ``outgoing`` list which the service delivers once the command has been
    fully handled.
    """

    def __init__(self, hub: RelayService) -> None:
        self.hub = hub
        self.log = logging.getLogger("lrcd.messages")

    def queue_text(self, outgoing: Outgoing, connection: Connection, text: str) -> None:
        outgoing.append((connection, text))

    def queue_prompt(self, outgoing: Outgoing, connection: Connection) -> None:
        self.queue_text(outgoing, connection, PROMPT)

    def queue_close(self, outgoing: Outgoing, connection: Connection) -> None:
        outgoing.append((connection, None))

    def queue_error(
        self, outgoing: Outgoing, connection: Connection, err: RelayError
    ) -> None:
        self.hub.stats_manager.inc("errors_sent")
        self.queue_text(outgoing, connection, str(err))

    def queue_list(
        self, outgoing: Outgoing, connection: Connection, header: str, items: list[str]
    ) -> None:
        self.queue_text(outgoing, connection, header)
        for item in items:
            self.queue_text(outgoing, connection, LIST_ITEM_FMT.format(item=item))

    def queue_welcome(
        self, outgoing: Outgoing, connection: Connection, username: str
    ) -> None:
        """Welcome line, the command listing, then the prompt."""
        self.queue_text(outgoing, connection, WELCOME_FMT.format(username=username))
        self.queue_list(outgoing, connection, HELP_HEADER, list(HELP_LINES))
        self.queue_prompt(outgoing, connection)

    def deliver(self, outgoing: Outgoing) -> None:
        """
        Hand queued text to the connections, in queue order.

        Connection.send/close only enqueue, so this is safe to call with the
        state lock held. A failing connection must not stop delivery to the
        others.
        """
        for connection, text in outgoing:
            try:
                if text is None:
                    connection.close()
                else:
                    connection.send(text)
            except Exception:
                self.log.debug("Delivery failed connection=%r", connection, exc_info=True)
