import socket
import time
from dataclasses import replace

import pytest
import RNS

from lrcd.config import RelayRuntimeConfig
from lrcd.service import RelayService
from lrcd.transports import create_transport
from lrcd.transports import rns as rns_transport_module
from lrcd.transports.rns import split_for_mdu


def _read_until(sock: socket.socket, marker: bytes, timeout: float = 5.0) -> bytes:
    deadline = time.monotonic() + timeout
    buf = b""
    while marker not in buf:
        if time.monotonic() > deadline:
            raise AssertionError(f"timed out waiting for {marker!r}, got {buf!r}")
        chunk = sock.recv(4096)
        if not chunk:
            break
        buf += chunk
    return buf


@pytest.fixture
def tcp_relay():
    svc = RelayService(replace(RelayRuntimeConfig(), host="127.0.0.1", port=0))
    svc.start()
    try:
        yield svc
    finally:
        svc.stop()


def test_tcp_session_end_to_end(tcp_relay) -> None:
    addr = tcp_relay.transport.address

    with socket.create_connection(addr, timeout=5) as alice, socket.create_connection(
        addr, timeout=5
    ) as bob:
        alice.sendall(b"alice\r\n")
        assert b"Welcome, alice!" in _read_until(alice, b"Enter a command: ")
        bob.sendall(b"bob\n")
        _read_until(bob, b"Enter a command: ")

        alice.sendall(b"/join general\n")
        _read_until(alice, b"/leave general\n")
        bob.sendall(b"/join general\n")
        _read_until(bob, b"/leave general\n")

        alice.sendall("  hi @bob ✨  \n".encode("utf-8"))
        got = _read_until(bob, b"general: [1] alice: hi @bob \xe2\x9c\xa8\n")
        assert got.startswith(b"[MENTION] alice: hi @bob")

        alice.sendall(b"/quit\n")
        rest = _read_until(alice, b"\x00", timeout=5)
        assert b"Goodbye! Disconnecting from the server.\n" in rest


def test_create_transport_rejects_unknown_kind() -> None:
    svc = RelayService(replace(RelayRuntimeConfig(), transport="smoke-signals"))
    with pytest.raises(ValueError):
        create_transport(svc)


def test_split_for_mdu_respects_char_boundaries() -> None:
    text = "héllo wörld ✨"
    chunks = split_for_mdu(text, 4)
    assert all(len(c) <= 4 for c in chunks)
    assert b"".join(chunks).decode("utf-8") == text
    for c in chunks:
        c.decode("utf-8")


def test_split_for_mdu_small_payload_is_one_chunk() -> None:
    assert split_for_mdu("hi\n", 400) == [b"hi\n"]
    assert split_for_mdu("hi\n", None) == [b"hi\n"]


class FakeLink:
    """Just enough of RNS.Link for the transport callbacks."""

    MDU = 400

    def __init__(self, link_id: bytes) -> None:
        self.link_id = link_id
        self.status = RNS.Link.ACTIVE
        self.payloads: list[bytes] = []
        self.packet_callback = None
        self.closed_callback = None
        self.teardowns = 0

    def set_packet_callback(self, callback) -> None:
        self.packet_callback = callback

    def set_link_closed_callback(self, callback) -> None:
        self.closed_callback = callback

    def teardown(self) -> None:
        self.status = RNS.Link.CLOSED
        if self.closed_callback is not None:
            self.closed_callback(self)
        self.teardowns += 1

    def deliver(self, data: bytes) -> None:
        self.packet_callback(data, None)

    def text(self) -> str:
        return b"".join(self.payloads).decode("utf-8")


class FakePacket:
    def __init__(self, link: FakeLink, data: bytes) -> None:
        self.link = link
        self.data = data

    def send(self) -> None:
        self.link.payloads.append(self.data)


def _wait_for(predicate, timeout: float = 5.0) -> None:
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not met in time")
        time.sleep(0.01)


@pytest.fixture
def rns_transport(monkeypatch):
    monkeypatch.setattr(rns_transport_module.RNS, "Packet", FakePacket)
    svc = RelayService(replace(RelayRuntimeConfig(), transport="rns"))
    return rns_transport_module.RnsTransport(svc)


def test_rns_link_packets_are_lines(rns_transport) -> None:
    relay = rns_transport.hub
    alice, bob = FakeLink(b"\x01" * 16), FakeLink(b"\x02" * 16)
    rns_transport._on_link(alice)
    rns_transport._on_link(bob)
    assert relay.session_manager.get_stats()["total"] == 2

    alice.deliver(b"alice\n")
    bob.deliver(b"  bob  ")
    _wait_for(lambda: alice.text().endswith("Enter a command: "))
    _wait_for(lambda: bob.text().endswith("Enter a command: "))
    assert alice.text().startswith("Welcome, alice! You are now connected.\n")

    alice.deliver(b"/join general")
    bob.deliver(b"/join general\r\n")
    _wait_for(lambda: bob.text().endswith("/leave general\n"))
    bob.payloads.clear()

    alice.deliver("hi @bob ✨".encode("utf-8"))
    _wait_for(lambda: bob.text().endswith("general: [1] alice: hi @bob ✨\n"))
    assert bob.text() == "[MENTION] alice: hi @bob ✨\ngeneral: [1] alice: hi @bob ✨\n"

    bob.closed_callback(bob)
    assert bob not in rns_transport._connections
    assert relay.session_manager.find_by_username("bob") is None
    assert relay.channel_manager.members_of("general") == [
        relay.session_manager.find_by_username("alice")
    ]
    _wait_for(lambda: bob.teardowns == 1)

    alice.deliver(b"/quit")
    _wait_for(lambda: alice.teardowns == 1)
    assert alice.text().endswith("Goodbye! Disconnecting from the server.\n")
    assert alice not in rns_transport._connections
    assert relay.session_manager.get_stats()["total"] == 0


def test_rns_stop_tears_down_open_links(rns_transport) -> None:
    link = FakeLink(b"\x03" * 16)
    rns_transport._on_link(link)

    rns_transport.stop()

    assert link.teardowns == 1
    assert link.status == RNS.Link.CLOSED
    assert rns_transport._connections == {}
