"""
This module is the 'top level' configuration for all the tests.

'Real world' fixtures are put here.
If a test suite needs specific mocked versions of dependencies,
these should be put in the ``conftest.py'' relative to it.
"""

import logging
from contextlib import contextmanager
from unittest import mock

import hypothesis
import pytest

from parley.config import TRACE, config
from parley.lifecycle_service import LifecycleService
from parley.lobbyconnection import LobbyConnection
from parley.matchmaker_service import MatchmakerService
from parley.profile_service import ProfileService
from parley.queue_service import QueueService
from parley.relay_service import RelayService
from parley.session_service import SessionService

logging.getLogger().setLevel(TRACE)
hypothesis.settings.register_profile(
    "nightly",
    max_examples=10_000,
    deadline=None,
    print_blob=True
)


def pytest_configure(config):
    config.addinivalue_line(
        "addopts", "--strict-markers"
    )
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )


@pytest.fixture(autouse=True)
def restore_config(monkeypatch):
    """Undo anything a test loaded into the global configuration"""
    monkeypatch.delenv("CONFIGURATION_FILE", raising=False)
    yield
    monkeypatch.delenv("CONFIGURATION_FILE", raising=False)
    config.refresh()


@pytest.fixture(scope="session")
def caplog_context():
    """
    Returns a context manager for user controlled cleanup.

    `Hypothesis` tests should not use function scoped fixtures as they will not
    be reset between examples. Use this fixture instead to ensure that cleanup
    happens every time the test function is called.
    """
    @contextmanager
    def make_caplog_context(request):
        result = pytest.LogCaptureFixture(request.node, _ispytest=True)
        yield result
        result._finalize()

    return make_caplog_context


@pytest.fixture
def profile_service() -> ProfileService:
    return ProfileService()


@pytest.fixture
def queue_service() -> QueueService:
    return QueueService()


@pytest.fixture
def session_service() -> SessionService:
    return SessionService()


@pytest.fixture
def relay_service(profile_service, session_service) -> RelayService:
    return RelayService(profile_service, session_service)


@pytest.fixture
def lifecycle_service(
    profile_service,
    queue_service,
    session_service,
    relay_service
) -> LifecycleService:
    return LifecycleService(
        profile_service,
        queue_service,
        session_service,
        relay_service
    )


@pytest.fixture
def matchmaker_service(
    profile_service,
    queue_service,
    session_service,
    relay_service,
    lifecycle_service
) -> MatchmakerService:
    return MatchmakerService(
        profile_service,
        queue_service,
        session_service,
        relay_service,
        lifecycle_service
    )


@pytest.fixture
def connection_factory():
    """
    Makes mocked lobby connections. Profiles only hold weak references to
    their connection, so the factory keeps every connection alive until the
    end of the test.
    """
    connections = []

    def make(identity: str):
        conn = mock.create_autospec(LobbyConnection, instance=True)
        conn.identity = identity
        connections.append(conn)
        return conn

    yield make

    connections.clear()


@pytest.fixture
def join(matchmaker_service, connection_factory):
    """
    Register a participant through the matchmaker and return its mocked
    connection.
    """
    def make(identity: str, tier: str = "B1", name: str = None):
        conn = connection_factory(identity)
        matchmaker_service.register(
            identity,
            name or identity.capitalize(),
            tier,
            lobby_connection=conn
        )
        return conn

    return make
