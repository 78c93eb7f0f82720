from collections import OrderedDict
from typing import TYPE_CHECKING, Iterator, Optional

from ..timing import monotonic

if TYPE_CHECKING:
    from ..profiles import Tier


class TierQueue(object):
    """
    Participants of one tier waiting for a partner, in arrival order.

    Maps identity to the monotonic time it was enqueued at.
    """

    def __init__(self, tier: "Tier"):
        self.tier = tier
        self._queue: OrderedDict[str, float] = OrderedDict()

    def __len__(self) -> int:
        return len(self._queue)

    def __iter__(self) -> Iterator[str]:
        return iter(self._queue)

    def __contains__(self, identity: str) -> bool:
        return identity in self._queue

    def push(self, identity: str) -> None:
        if identity in self._queue:
            raise ValueError(f"{identity} is already queued in {self.tier.value}")

        self._queue[identity] = monotonic()

    def peek(self) -> Optional[str]:
        return next(iter(self._queue), None)

    def pop(self) -> Optional[str]:
        """Remove and return the identity at the head of the queue"""
        if not self._queue:
            return None

        identity, _ = self._queue.popitem(last=False)
        return identity

    def remove(self, identity: str) -> bool:
        return self._queue.pop(identity, None) is not None

    def waiting_time(self, identity: str) -> Optional[float]:
        enqueued_at = self._queue.get(identity)
        if enqueued_at is None:
            return None
        return monotonic() - enqueued_at

    def waiting_longer_than(self, seconds: float) -> list[str]:
        now = monotonic()
        return [
            identity
            for identity, enqueued_at in self._queue.items()
            if now - enqueued_at > seconds
        ]

    def __repr__(self) -> str:
        return f"TierQueue({self.tier.value}, {list(self._queue)})"
