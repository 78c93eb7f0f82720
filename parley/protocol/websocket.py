import asyncio
import contextlib

from aiohttp import WSMsgType, web

from ..decorators import with_logger
from .protocol import DisconnectedError, Protocol, RawData, json_encoder


@with_logger
class WebSocketProtocol(Protocol):
    """
    One JSON object per WebSocket text frame, for browser clients.

    aiohttp only offers coroutines for sending, so written frames go into an
    outbox that a sender task flushes in order.
    """

    def __init__(self, websocket: web.WebSocketResponse, transport=None):
        self.websocket = websocket
        self.transport = transport
        self._outbox: asyncio.Queue[str] = asyncio.Queue()
        self._sender = asyncio.create_task(self._send_outbox())

    @staticmethod
    def encode_message(message: dict) -> str:
        return json_encoder.encode(message)

    def is_connected(self) -> bool:
        return not self.websocket.closed

    async def read_message(self) -> dict:
        while True:
            msg = await self.websocket.receive()
            if msg.type in (WSMsgType.TEXT, WSMsgType.BINARY):
                return WebSocketProtocol.decode_message(msg.data)
            if msg.type in (
                WSMsgType.CLOSE,
                WSMsgType.CLOSING,
                WSMsgType.CLOSED,
                WSMsgType.ERROR,
            ):
                raise DisconnectedError("The websocket connection was closed")
            # PING and PONG frames are answered by aiohttp

    def _write(self, data: RawData) -> None:
        if isinstance(data, bytes):
            data = data.decode()
        self._outbox.put_nowait(data)

    async def _send_outbox(self) -> None:
        while True:
            data = await self._outbox.get()
            try:
                await self.websocket.send_str(data)
            except ConnectionError:
                self._logger.debug("Dropping frame for closed websocket")
            finally:
                self._outbox.task_done()

    async def drain(self) -> None:
        if not self.is_connected():
            raise DisconnectedError("The websocket connection was closed")
        await self._outbox.join()

    def abort(self) -> None:
        self._sender.cancel()
        if self.transport is not None:
            self.transport.abort()

    async def close(self) -> None:
        with contextlib.suppress(Exception):
            await asyncio.wait_for(self._outbox.join(), timeout=1)
        self._sender.cancel()
        with contextlib.suppress(Exception):
            await self.websocket.close()
