from unittest import mock

from parley.core import Service, create_services
from parley.core.service import snake_case


def test_service_registry():
    with mock.patch("parley.core.service.service_registry", {}) as registry:
        class Foo(Service):
            pass

        assert registry["foo"] is Foo
        assert registry == {"foo": Foo}


def test_service_registry_name_override():
    with mock.patch("parley.core.service.service_registry", {}) as registry:
        class Foo(Service, name="FooService"):
            pass

        assert registry["FooService"] is Foo
        assert registry == {"FooService": Foo}


def test_create_services_resolves_by_name():
    with mock.patch("parley.core.service.service_registry", {}):
        class QueueKeeper(Service):
            pass

        class Pairer(Service):
            def __init__(self, queue_keeper, clock):
                self.queue_keeper = queue_keeper
                self.clock = clock

        clock = object()
        services = create_services({"clock": clock})

    assert set(services) == {"queue_keeper", "pairer"}
    assert services["pairer"].queue_keeper is services["queue_keeper"]
    assert services["pairer"].clock is clock


def test_create_services_are_independent():
    first = create_services()
    second = create_services()

    assert set(first) == {
        "lifecycle_service",
        "matchmaker_service",
        "profile_service",
        "queue_service",
        "relay_service",
        "session_service",
    }
    assert first["profile_service"] is not second["profile_service"]
    assert (
        first["matchmaker_service"].lifecycle_service
        is first["lifecycle_service"]
    )
    assert (
        first["relay_service"].profile_service
        is first["profile_service"]
    )


def test_snake_case():
    assert snake_case("RelayService") == "relay_service"
    assert snake_case("Foo") == "foo"
