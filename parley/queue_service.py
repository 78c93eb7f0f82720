"""
Manages one waiting queue per proficiency tier
"""

from typing import Optional

import parley.metrics as metrics
from parley.decorators import with_logger
from parley.matchmaker import TierQueue
from parley.profiles import Tier

from .core import Service


@with_logger
class QueueService(Service):
    """
    An identity is queued in at most one tier at any time. Callers are
    responsible for never queueing an identity that has a session.
    """

    def __init__(self):
        self.queues: dict[Tier, TierQueue] = {
            tier: TierQueue(tier) for tier in Tier
        }

    def __contains__(self, identity: str) -> bool:
        return self.find(identity) is not None

    def __getitem__(self, tier: Tier) -> TierQueue:
        return self.queues[tier]

    def find(self, identity: str) -> Optional[Tier]:
        """Return the tier that `identity` is queued in, if any"""
        for tier, queue in self.queues.items():
            if identity in queue:
                return tier
        return None

    def enqueue(self, tier: Tier, identity: str) -> None:
        """
        Append `identity` to the tail of the tier queue.

        # Errors
        Raises `ValueError` if the identity is already queued anywhere.
        """
        queued_tier = self.find(identity)
        if queued_tier is not None:
            raise ValueError(
                f"{identity} is already queued in {queued_tier.value}"
            )

        self.queues[tier].push(identity)
        self._update_size_metric(tier)
        self._logger.debug("Queued %s in %s", identity, tier.value)

    def dequeue_next(self, tier: Tier) -> Optional[str]:
        """Pop the identity at the head of the tier queue"""
        queue = self.queues[tier]
        identity = queue.peek()
        if identity is None:
            return None

        self._observe_wait(queue, identity, "dequeued")
        queue.pop()
        self._update_size_metric(tier)
        return identity

    def remove_if_present(self, identity: str) -> bool:
        """
        Remove `identity` from whichever queue holds it. Safe to call for
        identities that aren't queued.
        """
        tier = self.find(identity)
        if tier is None:
            return False

        queue = self.queues[tier]
        self._observe_wait(queue, identity, "removed")
        queue.remove(identity)
        self._update_size_metric(tier)
        self._logger.debug("Removed %s from %s", identity, tier.value)
        return True

    def waiting_longer_than(self, seconds: float) -> list[str]:
        return [
            identity
            for queue in self.queues.values()
            for identity in queue.waiting_longer_than(seconds)
        ]

    def to_dict(self) -> dict:
        return {
            tier.value: len(queue) for tier, queue in self.queues.items()
        }

    def _observe_wait(self, queue: TierQueue, identity: str, status: str):
        waited = queue.waiting_time(identity)
        if waited is not None:
            metrics.queue_wait_duration.labels(
                queue.tier.value, status
            ).observe(waited)

    def _update_size_metric(self, tier: Tier) -> None:
        metrics.queued_participants.labels(tier.value).set(
            len(self.queues[tier])
        )
