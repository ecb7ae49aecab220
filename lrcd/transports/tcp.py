"""Raw TCP stream transport: newline-delimited UTF-8 lines."""

from __future__ import annotations

import logging
import socket
import socketserver
import threading
from typing import TYPE_CHECKING

from . import QueuedConnection

if TYPE_CHECKING:
    from ..service import RelayService

log = logging.getLogger("lrcd.transport.tcp")

# Bound on how long a closing reader waits for its writer to flush.
_WRITER_FLUSH_TIMEOUT_S = 5.0


class StreamConnection(QueuedConnection):
    def __init__(self, sock: socket.socket, peer: tuple) -> None:
        self.sock = sock
        super().__init__(f"{peer[0]}:{peer[1]}", log)

    def _write(self, text: str) -> None:
        self.sock.sendall(text.encode("utf-8"))

    def _shutdown(self) -> None:
        # Wakes the reader blocked on the socket.
        self.sock.shutdown(socket.SHUT_RDWR)


class _LineHandler(socketserver.StreamRequestHandler):
    server: _RelayTCPServer

    def handle(self) -> None:
        relay = self.server.relay
        conn = StreamConnection(self.connection, self.client_address)
        log.info("Connection accepted peer=%s", conn.name)
        relay.on_connect(conn)
        try:
            for raw in self.rfile:
                relay.on_line(conn, raw.decode("utf-8", errors="replace").strip())
        except OSError as e:
            log.warning("Connection error peer=%s err=%s", conn.name, e)
        finally:
            relay.on_close(conn)
            conn.close()
            conn.join(_WRITER_FLUSH_TIMEOUT_S)
            log.info("Connection closed peer=%s", conn.name)


class _RelayTCPServer(socketserver.ThreadingTCPServer):
    daemon_threads = True
    allow_reuse_address = True

    def __init__(self, address: tuple[str, int], relay: RelayService) -> None:
        self.relay = relay
        super().__init__(address, _LineHandler)


class TcpTransport:
    """Threaded TCP listener; one reader thread per client."""

    def __init__(self, hub: RelayService) -> None:
        self.hub = hub
        self._server: _RelayTCPServer | None = None
        self._thread: threading.Thread | None = None

    @property
    def address(self) -> tuple[str, int]:
        if self._server is None:
            return (self.hub.config.host, int(self.hub.config.port))
        host, port = self._server.server_address[:2]
        return (str(host), int(port))

    def start(self) -> None:
        self._server = _RelayTCPServer(
            (self.hub.config.host, int(self.hub.config.port)), self.hub
        )
        self._thread = threading.Thread(
            target=self._server.serve_forever, name="lrcd-tcp", daemon=True
        )
        self._thread.start()

    def stop(self) -> None:
        if self._server is None:
            return
        self._server.shutdown()
        self._server.server_close()
        self._server = None

    def describe(self) -> str:
        host, port = self.address
        return f"listen={host}:{port}"
