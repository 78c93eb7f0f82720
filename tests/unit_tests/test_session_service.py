import time

import pytest

from parley.matchmaker import Role, Session
from parley.matchmaker.session import SESSION_ID_PREFIX
from parley.profiles import Tier


def test_session_roles():
    session = Session("new", "old", Tier.A1)

    assert session.id.startswith(SESSION_ID_PREFIX)
    assert session.participants == ("new", "old")
    assert session.role_of("new") is Role.INITIATOR
    assert session.role_of("old") is Role.RECEIVER
    assert session.partner_of("new") == "old"
    assert session.partner_of("old") == "new"
    assert "new" in session
    assert "other" not in session


def test_session_with_itself():
    with pytest.raises(ValueError):
        Session("a", "a", Tier.A1)


def test_session_stranger():
    session = Session("a", "b", Tier.A1)

    with pytest.raises(KeyError):
        session.partner_of("c")
    with pytest.raises(KeyError):
        session.role_of("c")


def test_session_ids_unique():
    ids = {Session("a", "b", Tier.A1).id for _ in range(100)}

    assert len(ids) == 100


def test_create_session(session_service):
    session = session_service.create_session("a", "b", Tier.B1)

    assert session_service[session.id] is session
    assert session.id in session_service
    assert len(session_service) == 1
    assert list(session_service) == [session]
    assert session_service.to_dict() == {"sessions": 1}


def test_remove_session_exactly_once(session_service):
    session = session_service.create_session("a", "b", Tier.B1)

    assert session_service.remove_session(session.id, "leave") is session
    assert session_service.remove_session(session.id, "leave") is None
    assert session.id not in session_service
    assert len(session_service) == 0


def test_remove_unknown_session(session_service):
    assert session_service.remove_session("session_missing", "leave") is None


def test_iterate_while_removing(session_service):
    for i in range(3):
        session_service.create_session(f"a{i}", f"b{i}", Tier.A2)

    for session in session_service:
        session_service.remove_session(session.id, "expired")

    assert len(session_service) == 0


def test_older_than(session_service, mocker):
    old = session_service.create_session("a", "b", Tier.A1)
    mocker.patch(
        "parley.matchmaker.session.monotonic",
        return_value=time.monotonic() + 100
    )
    new = session_service.create_session("c", "d", Tier.A1)

    assert session_service.older_than(50) == [old]
    assert new.age == 0
