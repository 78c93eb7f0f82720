import json
from abc import ABCMeta, abstractmethod
from typing import Union

import parley.metrics as metrics

json_encoder = json.JSONEncoder(separators=(",", ":"))

RawData = Union[bytes, str]


class DisconnectedError(ConnectionError):
    """For signaling that a protocol has lost connection to the remote."""


class Protocol(metaclass=ABCMeta):
    """
    Frames JSON messages on top of some transport. Outgoing messages are
    written into a buffer without waiting, which lets the matchmaking
    operations notify several clients without yielding to the event loop.
    """

    @staticmethod
    @abstractmethod
    def encode_message(message: dict) -> RawData:
        """
        Encode a message as raw data. Can be used along with `*_raw` methods.
        """
        pass  # pragma: no cover

    @staticmethod
    def decode_message(data: RawData) -> dict:
        """
        Parse a single message.

        # Errors
        Raises `ValueError` if the data is not a JSON object.
        """
        message = json.loads(data)
        if not isinstance(message, dict):
            raise ValueError(f"Expected a JSON object, got {type(message)}")
        return message

    @abstractmethod
    def is_connected(self) -> bool:
        """
        Return whether or not the connection is still alive
        """
        pass  # pragma: no cover

    @abstractmethod
    async def read_message(self) -> dict:
        """
        Asynchronously read a message from the transport

        # Returns
        The parsed message

        # Errors
        Raises `DisconnectedError` once the remote has gone away.
        """
        pass  # pragma: no cover

    @abstractmethod
    def _write(self, data: RawData) -> None:
        pass  # pragma: no cover

    @abstractmethod
    async def drain(self) -> None:
        """
        Await the write buffer to empty.

        # Errors
        Raises `DisconnectedError` if the client disconnects while waiting for
        the write buffer to empty.
        """
        pass  # pragma: no cover

    @abstractmethod
    def abort(self) -> None:
        """Drop the connection without flushing buffers."""
        pass  # pragma: no cover

    @abstractmethod
    async def close(self) -> None:
        """
        Close the connection once the buffer has emptied.

        # Errors
        Never raises.
        """
        pass  # pragma: no cover

    async def send_message(self, message: dict) -> None:
        """
        Send a single message in the form of a dictionary

        # Errors
        May raise `DisconnectedError`.
        """
        await self.send_raw(self.encode_message(message))

    async def send_raw(self, data: RawData) -> None:
        """
        Send raw data. Should generally not be used.

        # Errors
        May raise `DisconnectedError`.
        """
        self.write_raw(data)
        await self.drain()

    def write_message(self, message: dict) -> None:
        """
        Write a single message into the message buffer. Should be used when
        sending messages that are triggered by incoming messages from other
        clients.

        # Errors
        May raise `DisconnectedError`.
        """
        self.write_raw(self.encode_message(message))

    def write_raw(self, data: RawData) -> None:
        """
        Write raw data into the message buffer.

        # Errors
        May raise `DisconnectedError`.
        """
        if not self.is_connected():
            raise DisconnectedError("Protocol is not connected!")

        metrics.sent_messages.labels(self.__class__.__name__).inc()
        self._write(data)
