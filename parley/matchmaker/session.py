import uuid
from enum import Enum, unique
from typing import TYPE_CHECKING, NamedTuple, Union

from ..timing import datetime_now, monotonic

if TYPE_CHECKING:
    from ..profiles import Profile, Tier

SESSION_ID_PREFIX = "session_"


@unique
class Role(Enum):
    """
    Breaks the symmetry between the two participants for protocols like the
    WebRTC offer/answer exchange where one side has to act first. The
    participant who arrived last is always the initiator.
    """
    INITIATOR = "initiator"
    RECEIVER = "receiver"


class Session(object):
    """
    An established pairing of exactly two distinct participants.
    """

    def __init__(self, initiator: str, receiver: str, tier: "Tier"):
        if initiator == receiver:
            raise ValueError(f"Can't create a session of {initiator} with itself")

        self.id = SESSION_ID_PREFIX + uuid.uuid4().hex
        self.initiator = initiator
        self.receiver = receiver
        self.tier = tier
        self.created_at = datetime_now()
        self._created_monotonic = monotonic()

    @property
    def participants(self) -> tuple[str, str]:
        return (self.initiator, self.receiver)

    @property
    def age(self) -> float:
        """Seconds since the session was created"""
        return monotonic() - self._created_monotonic

    def __contains__(self, identity: str) -> bool:
        return identity in self.participants

    def partner_of(self, identity: str) -> str:
        if identity == self.initiator:
            return self.receiver
        if identity == self.receiver:
            return self.initiator
        raise KeyError(f"{identity} is not a participant of {self.id}")

    def role_of(self, identity: str) -> Role:
        if identity == self.initiator:
            return Role.INITIATOR
        if identity == self.receiver:
            return Role.RECEIVER
        raise KeyError(f"{identity} is not a participant of {self.id}")

    def __repr__(self) -> str:
        return (
            f"Session({self.id}, initiator={self.initiator}, "
            f"receiver={self.receiver}, tier={self.tier.value})"
        )


class Waiting(NamedTuple):
    """The participant was put at the tail of its tier queue"""
    tier: "Tier"


class Matched(NamedTuple):
    """The participant was paired with the `partner` profile"""
    session: Session
    partner: "Profile"

    @property
    def session_id(self) -> str:
        return self.session.id


MatchResult = Union[Waiting, Matched]
