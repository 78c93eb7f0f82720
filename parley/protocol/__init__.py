"""
Protocol format definitions
"""

from .protocol import DisconnectedError, Protocol
from .simple_json import SimpleJsonProtocol
from .websocket import WebSocketProtocol

__all__ = (
    "DisconnectedError",
    "Protocol",
    "SimpleJsonProtocol",
    "WebSocketProtocol",
)
