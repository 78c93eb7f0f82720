"""
Parley conversation partner server.

# Overview
Parley pairs anonymous participants who want to practice a language with
someone at the same proficiency tier, then relays chat lines and WebRTC
signaling between the two until one of them leaves. Audio and video flow
peer to peer; the server only ever sees opaque signaling payloads.

## Registration and matching
A client registers with a display name and one of the tiers A1, A2, B1, B2,
C1 or C2. Each tier has a first come, first served queue. If somebody is
already waiting in the tier, the two are paired into a session right away and
both receive a `match_found` message. The participant who arrived last is the
`initiator` and is expected to send the WebRTC offer, the one who was waiting
is the `receiver`. If nobody is waiting, the client is queued and told so with
`queue_waiting`.

Queue entries of participants that disconnected while waiting are discarded
when they reach the head of the queue, so nobody is ever paired with a ghost.

## Sessions
A session always has exactly two participants. Chat lines are echoed to both
with a server timestamp, signaling and typing notifications go to the partner
only. When either participant leaves or disconnects the session ends and the
partner is told with `partner_disconnected`. The partner is not put back in a
queue; it has to register again.

# Technical Overview
All state is held in memory by a handful of services owned by one
`ServerInstance`:

- `ProfileService`: registered participants by connection identity
- `QueueService`: one waiting queue per tier
- `SessionService`: the active sessions
- `MatchmakerService`: registration and pair formation
- `RelayService`: delivery of messages inside a session
- `LifecycleService`: cleanup on leave, disconnect and expiry

Every operation on the shared state is a plain synchronous method, so each
one runs to completion on the event loop without interleaving with another.

## Protocol
Messages are JSON objects with a `command` field, sent either as one object
per line over TCP (`SimpleJsonProtocol`) or as one object per WebSocket text
frame (`WebSocketProtocol`).
"""

import logging
import time
from typing import Optional

from .asyncio_extensions import map_suppress, synchronizedmethod
from .config import config
from .control import ControlServer, run_control_server
from .core import Service, create_services
from .lifecycle_service import LifecycleService
from .lobbyconnection import LobbyConnection
from .matchmaker_service import MatchmakerService
from .profile_service import ProfileService
from .protocol import Protocol, SimpleJsonProtocol, WebSocketProtocol
from .queue_service import QueueService
from .relay_service import RelayService
from .servercontext import ServerContext, WebSocketServerContext
from .session_service import SessionService

__author__ = "Parley contributors"
__contact__ = "parley@example.org"
__license__ = "GPLv3"

__all__ = (
    "ControlServer",
    "LifecycleService",
    "LobbyConnection",
    "MatchmakerService",
    "ProfileService",
    "QueueService",
    "RelayService",
    "ServerContext",
    "ServerInstance",
    "SessionService",
    "WebSocketServerContext",
    "run_control_server",
)

logger = logging.getLogger("parley")


class ServerInstance(object):
    """
    A class representing a shared server state. Each `ServerInstance` may be
    exposed on multiple ports, but each port will share the same internal server
    state, i.e. the same profiles, queues and sessions.
    """

    def __init__(
        self,
        name: str,
        # For testing
        _override_services: Optional[dict[str, Service]] = None
    ):
        self.name = name
        self._logger = logging.getLogger(self.name)

        self.started = False
        self.start_time: Optional[float] = None

        self.contexts: set[ServerContext] = set()

        self.services = _override_services or create_services()

        self.connection_factory = lambda: LobbyConnection(
            profile_service=self.services["profile_service"],
            matchmaker_service=self.services["matchmaker_service"],
            relay_service=self.services["relay_service"],
            lifecycle_service=self.services["lifecycle_service"],
        )

    @property
    def uptime(self) -> float:
        if self.start_time is None:
            return 0.0
        return time.monotonic() - self.start_time

    @synchronizedmethod
    async def start_services(self) -> None:
        if self.started:
            return

        num_services = len(self.services)
        self._logger.debug("Initializing %s services", num_services)

        for service in self.services.values():
            start = time.perf_counter()
            await service.initialize()
            self._logger.debug(
                "%s initialized in %0.2f seconds",
                service.__class__.__name__,
                time.perf_counter() - start
            )

        self._logger.debug("Initialized %s services", num_services)

        self.started = True
        self.start_time = time.monotonic()

    async def listen(
        self,
        address: tuple[str, int],
        name: Optional[str] = None,
        protocol_class: type[Protocol] = SimpleJsonProtocol,
        proxy: bool = False,
        path: str = "/ws",
    ) -> ServerContext:
        """
        Start listening on a new address.

        # Params
        - `address`: Tuple indicating the host, port to listen on.
        - `name`: String used to identify this context in log messages. The
            default is to use the `protocol_class` name.
        - `protocol_class`: The protocol class implementation to use.
            `WebSocketProtocol` serves websocket upgrades on `path`.
        - `proxy`: Boolean indicating whether or not to use the PROXY protocol.
            See: https://www.haproxy.org/download/1.8/doc/proxy-protocol.txt
        """
        if not self.started:
            await self.start_services()

        ctx_name = f"{self.name}[{name or protocol_class.__name__}]"
        services = list(self.services.values())
        if issubclass(protocol_class, WebSocketProtocol):
            ctx = WebSocketServerContext(
                ctx_name,
                self.connection_factory,
                services,
                path=path
            )
        else:
            ctx = ServerContext(
                ctx_name,
                self.connection_factory,
                services,
                protocol_class
            )
        await ctx.listen(*address, proxy=proxy)

        self.contexts.add(ctx)

        return ctx

    def status(self) -> dict:
        """Summary of the shared state for the control server"""
        return {
            "online": self.started,
            "connections": sum(len(ctx.connections) for ctx in self.contexts),
            "users": len(self.services["profile_service"]),
            "sessions": len(self.services["session_service"]),
            "queues": self.services["queue_service"].to_dict(),
            "uptime": int(self.uptime),
        }

    async def shutdown(self):
        """
        Immediately shutdown the server.

        1. Stop accepting new connections
        2. Stop all services
        3. Close all existing connections
        """
        self._logger.info("Initiating full shutdown")

        await self._stop_contexts()
        await self._shutdown_services()
        await self._shutdown_contexts()

        self.contexts.clear()
        self.started = False

    async def _shutdown_services(self):
        await map_suppress(
            lambda service: service.shutdown(),
            self.services.values(),
            logger=self._logger,
            msg="when shutting down service "
        )

    async def _stop_contexts(self):
        await map_suppress(
            lambda ctx: ctx.stop(),
            self.contexts,
            logger=self._logger,
            msg="when stopping context "
        )

    async def _shutdown_contexts(self):
        await map_suppress(
            lambda ctx: ctx.shutdown(config.SHUTDOWN_TIMEOUT),
            self.contexts,
            logger=self._logger,
            msg="when shutting down context "
        )
