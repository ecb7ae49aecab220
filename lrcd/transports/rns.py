"""Reticulum transport: each link packet carries one line of UTF-8 text."""

from __future__ import annotations

import logging
import os
import threading
from pathlib import Path
from typing import TYPE_CHECKING

import RNS

from . import QueuedConnection
from ..paths import default_identity_path, ensure_private_dir
from ..util import expand_path

if TYPE_CHECKING:
    from ..service import RelayService

log = logging.getLogger("lrcd.transport.rns")


def split_for_mdu(text: str, mdu: int | None) -> list[bytes]:
    """Encode text and split it into payloads of at most ``mdu`` bytes.

    Splits only on character boundaries so every payload decodes on its own.
    """
    data = text.encode("utf-8")
    if not mdu or mdu <= 0 or len(data) <= mdu:
        return [data]

    chunks: list[bytes] = []
    current = bytearray()
    for ch in text:
        b = ch.encode("utf-8")
        if current and len(current) + len(b) > mdu:
            chunks.append(bytes(current))
            current = bytearray()
        current.extend(b)
    if current:
        chunks.append(bytes(current))
    return chunks


def _fmt_link_id(link: RNS.Link) -> str:
    lid = getattr(link, "link_id", None)
    if isinstance(lid, (bytes, bytearray)):
        return bytes(lid).hex()
    return "-"


class LinkConnection(QueuedConnection):
    def __init__(self, link: RNS.Link) -> None:
        self.link = link
        super().__init__(_fmt_link_id(link)[:12], log)

    def _write(self, text: str) -> None:
        for payload in split_for_mdu(text, getattr(self.link, "MDU", None)):
            RNS.Packet(self.link, payload).send()

    def _shutdown(self) -> None:
        if self.link.status != RNS.Link.CLOSED:
            self.link.teardown()


def load_or_create_identity(path: str) -> RNS.Identity:
    p = expand_path(path)
    if not os.path.exists(p):
        storage_dir = os.path.dirname(p)
        if storage_dir:
            ensure_private_dir(Path(storage_dir))
        ident = RNS.Identity()
        ident.to_file(p)
        try:
            os.chmod(p, 0o600)
        except OSError:
            pass
        log.info("Created relay identity path=%s", p)
        return ident

    ident = RNS.Identity.from_file(p)
    if ident is None:
        raise RuntimeError(f"Failed to load identity from {p}")
    return ident


class RnsTransport:
    """Accepts Reticulum links on a SINGLE destination."""

    def __init__(self, hub: RelayService) -> None:
        self.hub = hub
        self.identity: RNS.Identity | None = None
        self.destination: RNS.Destination | None = None
        self._lock = threading.Lock()
        self._connections: dict[RNS.Link, LinkConnection] = {}

    def start(self) -> None:
        cfg = self.hub.config
        log.info("Starting Reticulum")
        RNS.Reticulum(configdir=cfg.configdir, require_shared_instance=False)

        self.identity = load_or_create_identity(
            cfg.identity_path or str(default_identity_path())
        )

        parts = [p for p in str(cfg.dest_name).split(".") if p]
        if not parts:
            raise ValueError("dest_name must not be empty")
        app_name, aspects = parts[0], parts[1:]

        self.destination = RNS.Destination(
            self.identity,
            RNS.Destination.IN,
            RNS.Destination.SINGLE,
            app_name,
            *aspects,
        )
        self.destination.set_link_established_callback(self._on_link)

        if cfg.announce_on_start:
            self.announce()

    def announce(self) -> None:
        if self.destination is None:
            return
        try:
            self.destination.announce(app_data=str(self.hub.config.dest_name).encode("utf-8"))
        except Exception:
            log.exception("Announce failed")

    def stop(self) -> None:
        with self._lock:
            connections = list(self._connections.values())
            self._connections.clear()

        for conn in connections:
            conn.close()
        for conn in connections:
            conn.join(timeout=5)
        if connections:
            log.info("Tore down %d link(s)", len(connections))

    def describe(self) -> str:
        dest_hash = self.destination.hash.hex() if self.destination else "-"
        return f"dest_name={self.hub.config.dest_name} dest_hash={dest_hash}"

    def _on_link(self, link: RNS.Link) -> None:
        conn = LinkConnection(link)
        with self._lock:
            self._connections[link] = conn
        self.hub.on_connect(conn)

        link.set_packet_callback(lambda data, pkt: self._on_packet(link, data))
        link.set_link_closed_callback(lambda closed_link: self._on_close(closed_link))
        log.info("Link established link_id=%s", _fmt_link_id(link))

    def _on_packet(self, link: RNS.Link, data: bytes) -> None:
        with self._lock:
            conn = self._connections.get(link)
        if conn is None:
            return
        self.hub.on_line(conn, data.decode("utf-8", errors="replace").strip())

    def _on_close(self, link: RNS.Link) -> None:
        with self._lock:
            conn = self._connections.pop(link, None)
        if conn is None:
            return
        self.hub.on_close(conn)
        conn.close()
        log.info("Link closed link_id=%s", _fmt_link_id(link))
