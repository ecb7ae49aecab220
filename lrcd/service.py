from __future__ import annotations

import logging
import signal
import threading
import time
from typing import TYPE_CHECKING

from .channels import ChannelManager
from .commands import CommandHandler
from .config import RelayRuntimeConfig
from .ledger import MessageLedger
from .messages import MessageHelper, Outgoing
from .router import MessageRouter
from .session import Connection, SessionManager
from .stats import StatsManager

if TYPE_CHECKING:
    from .transports import Transport


class RelayService:
    """
    Session lifecycle for the relay.

    Transports call on_connect, on_line and on_close from their own threads.
    Everything they touch is shared, so each event runs under one re-entrant
    state lock from start to finish, including delivery of the text it
    produced. Connection.send only enqueues, which keeps the lock short and
    gives every channel member the same message order.
    """

    def __init__(self, config: RelayRuntimeConfig) -> None:
        self.config = config
        self.log = logging.getLogger("lrcd.relay")

        self._state_lock = threading.RLock()
        self._shutdown = threading.Event()

        self.stats_manager = StatsManager(self)
        self.session_manager = SessionManager(self)
        self.channel_manager = ChannelManager(self)
        self.ledger = MessageLedger()
        self.message_helper = MessageHelper(self)
        self.command_handler = CommandHandler(self)
        self.router = MessageRouter(self)

        self.transport: Transport | None = None

    # Transport callbacks

    def on_connect(self, connection: Connection) -> None:
        with self._state_lock:
            self.session_manager.on_connect(connection)
            self.stats_manager.inc("connections")

    def on_line(self, connection: Connection, line: str) -> None:
        outgoing: Outgoing = []
        with self._state_lock:
            sess = self.session_manager.get_session(connection)
            if sess is None:
                return
            self.router.route_line(sess, line, outgoing)

            if self.log.isEnabledFor(logging.DEBUG) and outgoing:
                self.log.debug(
                    "Sending %d item(s) session_id=%s", len(outgoing), sess.session_id
                )
            self.message_helper.deliver(outgoing)

    def on_close(self, connection: Connection) -> None:
        with self._state_lock:
            self.session_manager.on_close(connection)

    # Process lifecycle

    def start(self) -> None:
        from .transports import create_transport

        if self.stats_manager.started_monotonic is None:
            self.stats_manager.set_start_time()

        self.transport = create_transport(self)
        self.transport.start()
        self.log.info(
            "Relay running transport=%s %s",
            self.config.transport,
            self.transport.describe(),
        )
        self.log.info(
            "Policy username_max_chars=%s default_reaction=%s",
            self.config.username_max_chars,
            self.config.default_reaction,
        )

    def run_forever(self) -> None:
        if self.transport is None:
            self.start()

        signal.signal(signal.SIGINT, lambda *_: self.stop())
        signal.signal(signal.SIGTERM, lambda *_: self.stop())

        while not self._shutdown.is_set():
            time.sleep(0.25)

    def stop(self) -> None:
        if self._shutdown.is_set():
            return
        self._shutdown.set()

        if self.transport is not None:
            self.transport.stop()

        with self._state_lock:
            summary = self.stats_manager.format_stats()
            connections = self.session_manager.clear_all()
            self.channel_manager.clear_all()

            for connection in connections:
                try:
                    connection.close()
                except Exception:
                    self.log.debug("Close failed connection=%r", connection, exc_info=True)

        self.log.info("Relay stopped\n%s", summary)
