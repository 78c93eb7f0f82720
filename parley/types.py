"""
General type definitions
"""

from typing import NamedTuple


class Address(NamedTuple):
    """A peer IP address"""

    host: str
    port: int

    @classmethod
    def from_string(cls, address: str) -> "Address":
        host, port = address.rsplit(":", 1)
        return cls(host, int(port))

    def __str__(self) -> str:
        return f"{self.host}:{self.port}"
