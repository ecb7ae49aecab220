"""Transports feeding the relay: connect, one trimmed line per event, close."""

from __future__ import annotations

import logging
import queue
import threading
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from ..service import RelayService


class Transport(Protocol):
    def start(self) -> None: ...

    def stop(self) -> None: ...

    def describe(self) -> str: ...


_CLOSE = object()


class QueuedConnection:
    """
    Connection whose send/close only enqueue.

    A writer thread per connection drains the queue in order, so a slow
    client never holds up the relay state lock. A close request is handled
    after all text queued before it.
    """

    def __init__(self, name: str, log: logging.Logger) -> None:
        self.name = name
        self.log = log
        self._queue: queue.SimpleQueue = queue.SimpleQueue()
        self._closed = threading.Event()
        self._writer = threading.Thread(
            target=self._write_loop, name=f"lrcd-writer-{name}", daemon=True
        )
        self._writer.start()

    def send(self, text: str) -> None:
        if not self._closed.is_set():
            self._queue.put(text)

    def close(self) -> None:
        if not self._closed.is_set():
            self._closed.set()
            self._queue.put(_CLOSE)

    def join(self, timeout: float | None = None) -> None:
        self._writer.join(timeout)

    def _write_loop(self) -> None:
        try:
            while True:
                item = self._queue.get()
                if item is _CLOSE:
                    break
                try:
                    self._write(item)
                except OSError as e:
                    self.log.warning("Send failed connection=%s err=%s", self.name, e)
                    break
        finally:
            self._closed.set()
            try:
                self._shutdown()
            except OSError:
                self.log.debug("Shutdown failed connection=%s", self.name, exc_info=True)

    def _write(self, text: str) -> None:
        raise NotImplementedError

    def _shutdown(self) -> None:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name})"


def create_transport(hub: RelayService) -> Transport:
    kind = str(hub.config.transport).strip().lower()
    if kind == "tcp":
        from .tcp import TcpTransport

        return TcpTransport(hub)
    if kind == "rns":
        from .rns import RnsTransport

        return RnsTransport(hub)
    raise ValueError(f"unknown transport {hub.config.transport!r}")
