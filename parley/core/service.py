import re
from typing import Any, Optional

from .dependency_injector import DependencyInjector

CASE_PATTERN = re.compile(r"(?<!^)(?=[A-Z])")


service_registry: dict[str, type] = {}


class Service():
    """
    All services should inherit from this class.

    Services are singleton objects which manage some part of the shared
    matchmaking state. Subclasses are registered under the snake case version
    of their class name, which is also the parameter name other services use
    to depend on them.
    """
    def __init_subclass__(cls, name: Optional[str] = None, **kwargs: Any):
        super().__init_subclass__(**kwargs)
        service_registry[name or snake_case(cls.__name__)] = cls

    async def initialize(self) -> None:
        """
        Called once while the server is starting.
        """
        pass  # pragma: no cover

    async def shutdown(self) -> None:
        """
        Called once after the server received the shutdown signal.
        """
        pass  # pragma: no cover

    def on_connection_lost(self, conn) -> None:
        """
        Called every time a connection ends.
        """
        pass  # pragma: no cover


def create_services(injectables: dict[str, object] = {}) -> dict[str, Service]:
    """
    Resolve service dependencies and instantiate each service. Every call
    produces a fresh, independent set of services.
    """
    injector = DependencyInjector()
    injector.add_injectables(**injectables)

    return injector.build_classes(service_registry)


def snake_case(string: str) -> str:
    """
    >>> snake_case("MatchmakerService")
    'matchmaker_service'
    """
    return CASE_PATTERN.sub("_", string).lower()
