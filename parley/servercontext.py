"""
Manages a group of connections using the same protocol over the same port
"""

import asyncio
import socket
from asyncio import StreamReader, StreamWriter
from contextlib import contextmanager
from typing import Callable, Iterable, Optional

import humanize
from aiohttp import web
from proxyprotocol.detect import ProxyProtocolDetect
from proxyprotocol.reader import ProxyProtocolReader
from proxyprotocol.sock import SocketInfo

import parley.metrics as metrics

from .core import Service
from .decorators import with_logger
from .lobbyconnection import LobbyConnection
from .protocol import (
    DisconnectedError,
    Protocol,
    SimpleJsonProtocol,
    WebSocketProtocol
)
from .types import Address

MiB = 2 ** 20
LIMIT = 1 * MiB


@with_logger
class ServerContext:
    """
    Accepts TCP clients speaking `protocol_class` and runs one
    `LobbyConnection` per client until it disconnects.
    """

    def __init__(
        self,
        name: str,
        connection_factory: Callable[[], LobbyConnection],
        services: Iterable[Service],
        protocol_class: type[Protocol] = SimpleJsonProtocol,
    ):
        super().__init__()
        self.name = name
        self._server = None
        self._connection_factory = connection_factory
        self._services = services
        self.connections: dict[LobbyConnection, Protocol] = {}
        self.protocol_class = protocol_class

    def __repr__(self):
        return f"{self.__class__.__name__}({self.name})"

    async def listen(
        self,
        host: str,
        port: Optional[int],
        proxy: bool = False
    ):
        self._logger.debug(
            "%s: listen(%r, %r, proxy=%r)",
            self.name,
            host,
            port,
            proxy
        )

        callback = self.client_connected_callback
        if proxy:
            pp_detect = ProxyProtocolDetect()
            pp_reader = ProxyProtocolReader(pp_detect)
            callback = pp_reader.get_callback(callback)

        self._server = await asyncio.start_server(
            callback,
            host=host,
            port=port,
            limit=LIMIT,
        )

        for sock in self.sockets:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_KEEPALIVE, 1)
            host, port, *_ = sock.getsockname()
            self._logger.info("%s: listening on %s:%s", self.name, host, port)

        return self._server

    @property
    def sockets(self):
        return self._server.sockets

    @property
    def addresses(self) -> list[Address]:
        return [Address(*sock.getsockname()[:2]) for sock in self.sockets]

    async def shutdown(self, timeout: Optional[float] = 5):
        async def close_or_abort(conn, proto):
            try:
                await asyncio.wait_for(proto.close(), timeout)
            except asyncio.TimeoutError:
                proto.abort()
                self._logger.warning(
                    "%s: Protocol did not terminate cleanly for '%s'",
                    self.name,
                    conn.get_user_identifier()
                )
        self._logger.debug(
            "%s: Waiting up to %s for connections to close",
            self.name,
            humanize.naturaldelta(timeout) if timeout is not None else "ever"
        )
        for fut in asyncio.as_completed([
            close_or_abort(conn, proto)
            for conn, proto in list(self.connections.items())
        ]):
            await fut
        self._logger.debug("%s: All connections closed", self.name)
        if self._server:
            await self._server.wait_closed()

    async def stop(self):
        self._logger.debug("%s: stop()", self.name)
        if self._server:
            self._server.close()

    async def client_connected_callback(
        self,
        reader: StreamReader,
        writer: StreamWriter,
        proxy_info: Optional[SocketInfo] = None,
    ):
        if proxy_info:
            peername_writer = Address(*writer.get_extra_info("peername")[:2])

            if not proxy_info.peername:
                # See security considerations:
                # https://www.haproxy.org/download/1.8/doc/proxy-protocol.txt
                self._logger.warning(
                    "%s: Client connected from %s to a context in proxy "
                    "mode! The connection will be ignored, however this may "
                    "indicate a misconfiguration in your firewall.",
                    self.name,
                    peername_writer
                )
                writer.close()
                return

            peername = Address(*proxy_info.peername[:2])
            self._logger.info(
                "%s: Client connected from %s via proxy %s",
                self.name,
                peername,
                peername_writer
            )
        else:
            peername = Address(*writer.get_extra_info("peername")[:2])
            self._logger.info(
                "%s: Client connected from %s",
                self.name,
                peername
            )

        await self.handle_client_connected(
            self.protocol_class(reader, writer),
            peername
        )

    async def handle_client_connected(
        self,
        protocol: Protocol,
        peername: Address,
    ):
        connection = self._connection_factory()
        self.connections[connection] = protocol
        protocol_name = protocol.__class__.__name__

        try:
            await connection.on_connection_made(protocol, peername)
            metrics.user_connections.labels(protocol_name).inc()
            while protocol.is_connected():
                try:
                    message = await protocol.read_message()
                except ValueError as e:
                    # Undecodable data only affects the message it was in
                    self._logger.warning(
                        "%s: Dropping malformed message from '%s': %s",
                        self.name,
                        connection.get_user_identifier(),
                        e
                    )
                    await connection.send({"command": "invalid"})
                    continue

                with metrics.connection_on_message_received.time():
                    await connection.on_message_received(message)
        except (
            ConnectionError,
            DisconnectedError,
            TimeoutError,
            asyncio.IncompleteReadError,
            asyncio.CancelledError,
        ):
            pass
        except Exception as e:
            self._logger.exception(
                "%s: Exception in protocol for '%s': %s",
                self.name,
                connection.get_user_identifier(),
                e
            )
        finally:
            del self.connections[connection]
            # Do not wait for buffers to empty here. This could stop the process
            # from exiting if the client isn't reading data.
            protocol.abort()
            for service in self._services:
                with self.suppress_and_log(service.on_connection_lost, Exception):
                    service.on_connection_lost(connection)

            with self.suppress_and_log(connection.on_connection_lost, Exception):
                await connection.on_connection_lost()

            self._logger.info(
                "%s: Client disconnected for '%s'",
                self.name,
                connection.get_user_identifier()
            )

            metrics.user_connections.labels(protocol_name).dec()

    @contextmanager
    def suppress_and_log(self, func, *exceptions: type[BaseException]):
        try:
            yield
        except exceptions:
            if hasattr(func, "__self__"):
                desc = f"{func.__self__.__class__.__name__}.{func.__name__}"
            else:
                desc = func.__name__
            self._logger.warning(
                "Unexpected exception in %s",
                desc,
                exc_info=True
            )


class WebSocketServerContext(ServerContext):
    """
    Same connection lifecycle as `ServerContext`, but clients connect with a
    WebSocket upgrade on `path` and exchange one JSON message per frame.
    """

    def __init__(
        self,
        name: str,
        connection_factory: Callable[[], LobbyConnection],
        services: Iterable[Service],
        path: str = "/ws",
        heartbeat: Optional[float] = 10,
    ):
        super().__init__(
            name,
            connection_factory,
            services,
            protocol_class=WebSocketProtocol
        )
        self.path = path
        self.heartbeat = heartbeat
        self._runner: Optional[web.AppRunner] = None
        self._site: Optional[web.TCPSite] = None

    async def listen(
        self,
        host: str,
        port: Optional[int],
        proxy: bool = False
    ):
        self._logger.debug(
            "%s: listen(%r, %r, path=%r)", self.name, host, port, self.path
        )
        if proxy:
            self._logger.warning(
                "%s: PROXY protocol is not supported for websockets, use "
                "X-Forwarded-For instead",
                self.name
            )

        app = web.Application()
        app.add_routes([web.get(self.path, self.websocket_handler)])

        self._runner = web.AppRunner(app, access_log=None)
        await self._runner.setup()
        self._site = web.TCPSite(self._runner, host or None, port or 0)
        await self._site.start()

        for address in self.addresses:
            self._logger.info(
                "%s: listening on ws://%s%s", self.name, address, self.path
            )

        return self._runner

    @property
    def addresses(self) -> list[Address]:
        return [Address(*addr[:2]) for addr in self._runner.addresses]

    async def stop(self):
        self._logger.debug("%s: stop()", self.name)
        if self._site:
            await self._site.stop()
            self._site = None

    async def shutdown(self, timeout: Optional[float] = 5):
        await super().shutdown(timeout)
        if self._runner:
            await self._runner.cleanup()
            self._runner = None

    async def websocket_handler(self, request: web.Request):
        websocket = web.WebSocketResponse(heartbeat=self.heartbeat)
        await websocket.prepare(request)

        peername = Address(*request.transport.get_extra_info("peername")[:2])
        self._logger.info("%s: Client connected from %s", self.name, peername)

        await self.handle_client_connected(
            WebSocketProtocol(websocket, request.transport),
            peername
        )
        return websocket
