from dataclasses import replace

import pytest

from lrcd.config import RelayRuntimeConfig
from lrcd.errors import (
    AlreadyInChannel,
    ErrorKind,
    InvalidName,
    NameTaken,
    NotInChannel,
)
from lrcd.ledger import MessageLedger
from lrcd.service import RelayService
from lrcd.session import Named, Unnamed

from conftest import FakeConnection


def _session(relay, name=None):
    sess = relay.session_manager.on_connect(FakeConnection())
    if name is not None:
        relay.session_manager.register_username(sess, name)
    return sess


def test_new_session_is_unnamed(relay) -> None:
    sess = _session(relay)
    assert isinstance(sess.state, Unnamed)
    assert sess.username is None
    assert sess.channel is None


def test_register_trims_and_binds(relay) -> None:
    sess = _session(relay)
    assert relay.session_manager.register_username(sess, "  alice ") == "alice"
    assert sess.state == Named(username="alice")
    assert relay.session_manager.is_username_taken("alice")
    assert relay.session_manager.find_by_username("alice") is sess


def test_register_taken_name_leaves_session_unnamed(relay) -> None:
    _session(relay, "alice")
    other = _session(relay)
    with pytest.raises(NameTaken) as exc:
        relay.session_manager.register_username(other, "alice")
    assert exc.value.kind is ErrorKind.NAME_TAKEN
    assert other.username is None


def test_register_blank_is_ignored(relay) -> None:
    sess = _session(relay)
    assert relay.session_manager.register_username(sess, "   ") is None
    assert sess.username is None


def test_register_accepts_any_trimmed_name_by_default(relay) -> None:
    sess = _session(relay)
    long_name = "a" * 40
    assert relay.session_manager.register_username(sess, long_name) == long_name
    other = _session(relay)
    assert relay.session_manager.register_username(other, "tab\tname") == "tab\tname"


def test_register_length_limit_is_opt_in() -> None:
    relay = RelayService(replace(RelayRuntimeConfig(), username_max_chars=32))
    sess = _session(relay)
    with pytest.raises(InvalidName) as exc:
        relay.session_manager.register_username(sess, "x" * 33)
    assert exc.value.kind is ErrorKind.INVALID_NAME
    assert sess.username is None
    assert relay.session_manager.register_username(sess, "x" * 32) == "x" * 32


def test_register_twice_is_a_bug(relay) -> None:
    sess = _session(relay, "alice")
    with pytest.raises(RuntimeError):
        relay.session_manager.register_username(sess, "alice2")


def test_usernames_are_case_sensitive(relay) -> None:
    _session(relay, "alice")
    assert _session(relay, "Alice").username == "Alice"


def test_close_frees_username(relay) -> None:
    sess = _session(relay, "alice")
    assert relay.session_manager.on_close(sess.connection) is sess
    assert not relay.session_manager.is_username_taken("alice")
    assert relay.session_manager.on_close(sess.connection) is None


def test_join_and_leave(relay) -> None:
    channels = relay.channel_manager
    sess = _session(relay, "alice")

    channels.join(sess, "general")
    assert sess.channel == "general"
    assert channels.members_of("general") == [sess]

    assert channels.leave(sess) == "general"
    assert sess.channel is None
    assert channels.members_of("general") == []
    # The channel itself is kept.
    assert channels.list_channels() == ["general"]


def test_join_while_in_channel_fails_without_change(relay) -> None:
    channels = relay.channel_manager
    sess = _session(relay, "alice")
    channels.join(sess, "general")

    with pytest.raises(AlreadyInChannel) as exc:
        channels.join(sess, "random")
    assert str(exc.value) == "You are already in the general channel.\n"
    assert sess.channel == "general"
    assert channels.members_of("random") == []
    assert channels.list_channels() == ["general"]


def test_leave_without_channel_fails(relay) -> None:
    with pytest.raises(NotInChannel):
        relay.channel_manager.leave(_session(relay, "alice"))


def test_members_in_join_order(relay) -> None:
    channels = relay.channel_manager
    a, b, c = (_session(relay, n) for n in ("a", "b", "c"))
    for s in (b, a, c):
        channels.join(s, "general")
    assert channels.members_of("general") == [b, a, c]
    assert channels.members_of("nowhere") == []
    assert channels.members_of(None) == []


def test_list_channels_in_creation_order(relay) -> None:
    channels = relay.channel_manager
    for name, channel in (("a", "zeta"), ("b", "alpha"), ("c", "zeta")):
        channels.join(_session(relay, name), channel)
    assert channels.list_channels() == ["zeta", "alpha"]


def test_close_removes_channel_membership(relay) -> None:
    sess = _session(relay, "alice")
    relay.channel_manager.join(sess, "general")
    relay.session_manager.on_close(sess.connection)
    assert relay.channel_manager.members_of("general") == []
    assert relay.channel_manager.list_channels() == ["general"]


def test_ledger_ids_are_sequential_strings() -> None:
    ledger = MessageLedger()
    ids = [ledger.record_message("a", ch, "t").id for ch in ("x", "y", "x")]
    assert ids == ["1", "2", "3"]
    assert len(ledger) == 3


def test_ledger_lookup_and_reactions() -> None:
    ledger = MessageLedger()
    msg = ledger.record_message("alice", "general", "hi")
    assert ledger.find_by_id("1") is msg
    assert ledger.find_by_id("2") is None
    assert ledger.find_by_id(None) is None

    ledger.add_reaction(msg, "x", "bob")
    ledger.add_reaction(msg, "x", "bob")
    assert msg.reactions == [("x", "bob"), ("x", "bob")]
    assert msg.render() == "general: [1] alice: hi"
    assert ledger.messages() == [msg]
