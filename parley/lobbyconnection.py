"""
Handles requests from connected clients
"""

import uuid
from typing import Optional

import parley.metrics as metrics

from .config import TRACE
from .decorators import with_logger
from .exceptions import ClientError, InvalidRegistration
from .lifecycle_service import LifecycleService
from .matchmaker_service import MatchmakerService
from .profile_service import ProfileService
from .profiles import Profile
from .protocol import Protocol
from .relay_service import RelayService
from .types import Address


@with_logger
class LobbyConnection:
    """
    One client connection. Inbound commands are translated into calls on the
    shared services, keyed by this connection's `identity`. The connection
    itself holds no matchmaking state.
    """

    def __init__(
        self,
        profile_service: ProfileService,
        matchmaker_service: MatchmakerService,
        relay_service: RelayService,
        lifecycle_service: LifecycleService,
    ):
        self.profile_service = profile_service
        self.matchmaker_service = matchmaker_service
        self.relay_service = relay_service
        self.lifecycle_service = lifecycle_service

        self.identity = uuid.uuid4().hex
        self.peer_address: Optional[Address] = None
        self.protocol: Optional[Protocol] = None

        self._logger.debug("LobbyConnection initialized for '%s'", self.identity)

    @property
    def profile(self) -> Optional[Profile]:
        return self.profile_service.lookup(self.identity)

    def get_user_identifier(self) -> str:
        """For logging purposes"""
        profile = self.profile
        if profile is not None:
            return f"{profile.name} ({self.identity})"

        return self.identity

    async def on_connection_made(self, protocol: Protocol, peername: Address):
        self.protocol = protocol
        self.peer_address = peername
        metrics.server_connections.inc()

    async def abort(self, logspam=""):
        self._logger.warning(
            "Aborting connection for '%s'. %s",
            self.get_user_identifier(),
            logspam
        )

        await self.protocol.close()

    async def on_message_received(self, message):
        """
        Dispatches incoming messages
        """
        self._logger.log(TRACE, "<< %s: %s", self.get_user_identifier(), message)

        try:
            cmd = message["command"]
            handler = getattr(self, f"command_{cmd}", None)
            if handler is None:
                raise ValueError(f"Unknown command: {cmd!r}")

            await handler(message)

        except InvalidRegistration as e:
            self._logger.info(
                "Registration rejected for '%s': %s",
                self.get_user_identifier(),
                e.message
            )
            await self.send({
                "command": "registration_error",
                "message": e.message
            })
        except ClientError as e:
            self._logger.warning(
                "ClientError for '%s': %s",
                self.get_user_identifier(),
                e.message,
            )
            await self.send({
                "command": "notice",
                "style": "error",
                "text": e.message
            })
            if not e.recoverable:
                await self.abort(e.message)
        except (KeyError, ValueError, TypeError) as e:
            self._logger.warning(
                "Garbage command from '%s': %r (%s)",
                self.get_user_identifier(),
                message,
                e
            )
            await self.send({"command": "invalid"})
        except ConnectionError as e:
            # Propagate connection errors to the ServerContext error handler.
            raise e
        except Exception as e:  # pragma: no cover
            await self.send({"command": "invalid"})
            self._logger.exception(e)
            await self.abort("Error processing command")

    async def command_ping(self, message):
        await self.send({"command": "pong"})

    async def command_pong(self, message):
        pass

    async def command_register(self, message):
        self.matchmaker_service.register(
            self.identity,
            message.get("name"),
            message.get("tier"),
            lobby_connection=self
        )

    async def command_message(self, message):
        self.relay_service.send_chat(self.identity, message.get("text"))

    async def command_signal(self, message):
        self.relay_service.send_signal(self.identity, message.get("data"))

    async def command_typing(self, message):
        self.relay_service.send_typing(self.identity, message.get("status"))

    async def command_leave(self, message):
        self.lifecycle_service.teardown(self.identity, "leave")

    async def send(self, message):
        """Send a message and wait for it to be sent."""
        self.write(message)
        await self.protocol.drain()

    def write(self, message):
        """Write a message into the send buffer."""
        self._logger.log(TRACE, ">>: %s", message)
        self.protocol.write_message(message)

    async def on_connection_lost(self):
        async def nop(*args, **kwargs):
            return
        self.send = nop

        self._logger.debug(
            "Connection lost for '%s'", self.get_user_identifier()
        )

    def __repr__(self) -> str:
        return f"LobbyConnection({self.identity}, {self.peer_address})"

