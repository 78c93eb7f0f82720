import gc
from unittest import mock

import pytest

from parley.lobbyconnection import LobbyConnection
from parley.matchmaker import Session
from parley.profiles import Profile, ProfileState, Tier
from parley.protocol import DisconnectedError


@pytest.mark.parametrize("value,expected", [
    ("A1", Tier.A1),
    ("b2", Tier.B2),
    ("  c1 ", Tier.C1),
    (Tier.C2, Tier.C2),
])
def test_tier_from_value(value, expected):
    assert Tier.from_value(value) is expected


@pytest.mark.parametrize("value", ["", "D1", "A 1", None, 1, ["A1"]])
def test_tier_from_value_invalid(value):
    with pytest.raises(ValueError):
        Tier.from_value(value)


def test_new_profile_is_idle():
    profile = Profile("abc", "Alice", Tier.A1)

    assert profile.state is ProfileState.IDLE
    assert profile.session is None
    assert profile.partner_identity is None
    assert profile.lobby_connection is None


def test_partner_identity():
    alice = Profile("alice", "Alice", Tier.B1)
    session = Session("alice", "bob", Tier.B1)
    alice.session = session

    assert alice.partner_identity == "bob"


def test_public_info():
    profile = Profile("abc", "Alice", Tier.B2)

    assert profile.public_info() == {"name": "Alice", "tier": "B2"}


def test_write_message():
    conn = mock.create_autospec(LobbyConnection, instance=True)
    profile = Profile("abc", "Alice", Tier.A2, lobby_connection=conn)

    profile.write_message({"command": "test"})

    conn.write.assert_called_once_with({"command": "test"})


def test_write_message_disconnected():
    conn = mock.create_autospec(LobbyConnection, instance=True)
    conn.write.side_effect = DisconnectedError("closed")
    profile = Profile("abc", "Alice", Tier.A2, lobby_connection=conn)

    profile.write_message({"command": "test"})

    conn.write.assert_called_once()


def test_write_message_without_connection():
    profile = Profile("abc", "Alice", Tier.A2)

    # Nothing to write to
    profile.write_message({"command": "test"})


def test_lobby_connection_is_weak():
    conn = mock.create_autospec(LobbyConnection, instance=True)
    profile = Profile("abc", "Alice", Tier.A2, lobby_connection=conn)
    assert profile.lobby_connection is conn

    del conn
    gc.collect()

    assert profile.lobby_connection is None


def test_str_and_repr():
    profile = Profile("abc", "Alice", Tier.C2)

    assert "Alice" in str(profile)
    assert "abc" in repr(profile)
    assert "IDLE" in repr(profile)
