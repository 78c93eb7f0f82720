"""
Pairs newly registered participants with someone waiting in their tier
"""

from typing import Optional

import parley.metrics as metrics
from parley.decorators import timed, with_logger
from parley.exceptions import InvalidRegistration
from parley.lifecycle_service import LifecycleService
from parley.matchmaker import Matched, MatchResult, Role, Waiting
from parley.profile_service import ProfileService
from parley.profiles import Profile, ProfileState, Tier
from parley.queue_service import QueueService
from parley.relay_service import RelayService
from parley.session_service import SessionService

from .core import Service


@with_logger
class MatchmakerService(Service):
    """
    First come, first served matching within a tier.

    Queued participants may have disconnected, registered again or been
    matched since they were queued. Such entries are discarded when they
    reach the head of the queue instead of being offered as a partner.
    """

    def __init__(
        self,
        profile_service: ProfileService,
        queue_service: QueueService,
        session_service: SessionService,
        relay_service: RelayService,
        lifecycle_service: LifecycleService,
    ):
        self.profile_service = profile_service
        self.queue_service = queue_service
        self.session_service = session_service
        self.relay_service = relay_service
        self.lifecycle_service = lifecycle_service

    def register(
        self,
        identity: str,
        raw_name,
        raw_tier,
        lobby_connection=None
    ) -> MatchResult:
        """
        Register a participant and try to match it right away.

        A previous registration of the same identity is torn down first, so
        its queue entry and session never outlive it.

        # Errors
        Raises `InvalidRegistration` without changing any state.
        """
        try:
            ProfileService.validate(raw_name, raw_tier)
        except InvalidRegistration:
            metrics.registrations.labels("rejected").inc()
            raise

        if identity in self.profile_service or identity in self.queue_service:
            self.lifecycle_service.teardown(identity, "reregister")

        profile = self.profile_service.register(
            identity,
            raw_name,
            raw_tier,
            lobby_connection
        )
        metrics.registrations.labels("accepted").inc()

        return self.attempt_match(identity, profile.tier)

    @timed
    def attempt_match(self, identity: str, tier: Tier) -> MatchResult:
        """
        Match `identity` with the first live participant in the tier queue,
        or put it at the tail of the queue if there is none.
        """
        profile = self.profile_service.lookup(identity)
        if profile is None:
            raise KeyError(f"{identity} is not registered")

        if profile.session is not None:
            self._logger.warning(
                "Ignoring match attempt for %r which is already matched", profile
            )
            partner = self.profile_service.lookup(profile.partner_identity)
            return Matched(profile.session, partner)

        if self.queue_service.remove_if_present(identity):
            self._logger.warning(
                "Match attempt for %s which was already queued", profile
            )

        partner = self._pop_live_candidate(identity, tier)
        if partner is None:
            self.queue_service.enqueue(tier, identity)
            profile.state = ProfileState.WAITING
            self.relay_service.send_to(identity, {
                "command": "queue_waiting",
                "tier": tier.value,
            })
            self._logger.info("%s is waiting in the %s queue", profile, tier.value)
            return Waiting(tier)

        return self._commit_match(profile, partner, tier)

    def _pop_live_candidate(self, identity: str, tier: Tier) -> Optional[Profile]:
        """
        Pop queue entries until one belongs to a live, unmatched profile that
        isn't `identity` itself. Terminates because every iteration removes
        one entry and nothing is put back.
        """
        while True:
            candidate_id = self.queue_service.dequeue_next(tier)
            if candidate_id is None:
                return None

            candidate = self.profile_service.lookup(candidate_id)
            if (
                candidate is not None
                and candidate_id != identity
                and candidate.session is None
            ):
                return candidate

            metrics.stale_queue_entries.labels(tier.value).inc()
            self._logger.warning(
                "Discarding stale %s queue entry %s", tier.value, candidate_id
            )

    def _commit_match(
        self,
        profile: Profile,
        partner: Profile,
        tier: Tier
    ) -> Matched:
        session = self.session_service.create_session(
            initiator=profile.identity,
            receiver=partner.identity,
            tier=tier
        )
        for participant in (profile, partner):
            participant.session = session
            participant.state = ProfileState.MATCHED

        metrics.matches.labels(tier.value).inc()

        for participant, other in ((profile, partner), (partner, profile)):
            self.relay_service.send_to(participant.identity, {
                "command": "match_found",
                "session_id": session.id,
                "partner": other.public_info(),
                "role": session.role_of(participant.identity).value,
            })

        self._logger.info(
            "Matched %s (%s) with %s (%s) in %s",
            profile, Role.INITIATOR.value,
            partner, Role.RECEIVER.value,
            session.id
        )
        return Matched(session, partner)
