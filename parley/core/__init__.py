"""
Service framework

Services are the long lived singletons that own the server state. They are
built once per `ServerInstance` by resolving constructor arguments by name.
"""

from .dependency_injector import DependencyInjector
from .service import Service, create_services

__all__ = (
    "DependencyInjector",
    "Service",
    "create_services"
)
