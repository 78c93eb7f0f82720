"""
Profile type definitions
"""

import weakref
from contextlib import suppress
from enum import Enum, unique
from typing import TYPE_CHECKING, Optional

from .protocol import DisconnectedError
from .timing import datetime_now

if TYPE_CHECKING:
    from .lobbyconnection import LobbyConnection
    from .matchmaker import Session


@unique
class Tier(Enum):
    """Proficiency buckets. Only profiles in the same tier are matched."""
    A1 = "A1"
    A2 = "A2"
    B1 = "B1"
    B2 = "B2"
    C1 = "C1"
    C2 = "C2"

    @staticmethod
    def from_value(value) -> "Tier":
        """
        Parse a tier name sent by a client. Case and surrounding whitespace
        are ignored.

        # Errors
        Raises `ValueError` for anything that doesn't name a tier.
        """
        if isinstance(value, Tier):
            return value
        if not isinstance(value, str):
            raise ValueError(f"Tier must be a string, got {value!r}")

        return Tier(value.strip().upper())


@unique
class ProfileState(Enum):
    IDLE = 1
    WAITING = 2
    MATCHED = 3


class Profile:
    """
    A registered participant. The profile is the only record of which
    session a connection belongs to.
    """

    def __init__(
        self,
        identity: str,
        name: str,
        tier: Tier,
        lobby_connection: Optional["LobbyConnection"] = None,
    ) -> None:
        self.identity = identity
        self.name = name
        self.tier = tier
        self.registered_at = datetime_now()

        self.session: Optional["Session"] = None
        self.state = ProfileState.IDLE

        self._lobby_connection = None
        if lobby_connection is not None:
            self.lobby_connection = lobby_connection

    @property
    def lobby_connection(self) -> Optional["LobbyConnection"]:
        if self._lobby_connection is None:
            return None
        return self._lobby_connection()

    @lobby_connection.setter
    def lobby_connection(self, conn: "LobbyConnection") -> None:
        self._lobby_connection = weakref.ref(conn)

    @property
    def partner_identity(self) -> Optional[str]:
        if self.session is None:
            return None
        return self.session.partner_of(self.identity)

    def write_message(self, message: dict) -> None:
        """
        Try to queue a message to be sent to this participant.

        Does nothing if the participant has disconnected.
        """
        conn = self.lobby_connection
        if conn is None:
            return

        with suppress(DisconnectedError):
            conn.write(message)

    def public_info(self) -> dict:
        """The part of the profile that is shown to a partner"""
        return {"name": self.name, "tier": self.tier.value}

    def __str__(self) -> str:
        return f"Profile({self.name}, {self.identity}, {self.tier.value})"

    def __repr__(self) -> str:
        return (
            f"Profile(identity={self.identity}, name={self.name}, "
            f"tier={self.tier.value}, state={self.state.name}, "
            f"session={self.session.id if self.session else None})"
        )
