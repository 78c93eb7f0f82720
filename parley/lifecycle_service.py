"""
Releases queue entries, sessions and profiles when participants go away
"""

from typing import Optional

import aiocron

import parley.metrics as metrics
from parley.config import config
from parley.decorators import timed, with_logger
from parley.matchmaker import Session
from parley.profile_service import ProfileService
from parley.profiles import ProfileState
from parley.queue_service import QueueService
from parley.relay_service import RelayService
from parley.session_service import SessionService

from .core import Service


@with_logger
class LifecycleService(Service):
    def __init__(
        self,
        profile_service: ProfileService,
        queue_service: QueueService,
        session_service: SessionService,
        relay_service: RelayService,
    ):
        self.profile_service = profile_service
        self.queue_service = queue_service
        self.session_service = session_service
        self.relay_service = relay_service
        self._maintenance_cron: Optional[aiocron.Cron] = None

    async def initialize(self) -> None:
        self._maintenance_cron = aiocron.crontab(
            config.MAINTENANCE_CRON,
            func=self.run_maintenance,
            start=True
        )

    async def shutdown(self) -> None:
        if self._maintenance_cron is not None:
            self._maintenance_cron.stop()
            self._maintenance_cron = None

    def on_connection_lost(self, conn) -> None:
        self.teardown(conn.identity, "disconnect")

    @timed
    def teardown(self, identity: str, reason: str) -> bool:
        """
        Remove `identity` from its queue, end its session and drop its
        profile. The partner of an ended session is told about it and left
        idle, it is not put back into a queue.

        Calling this for an identity that is already gone does nothing.

        # Returns
        `True` if there was anything to tear down.
        """
        was_queued = self.queue_service.remove_if_present(identity)

        profile = self.profile_service.lookup(identity)
        if profile is None:
            return was_queued

        session = profile.session
        if session is not None:
            self.relay_service.forward_to_partner(
                identity,
                {"command": "partner_disconnected"}
            )
            self.session_service.remove_session(session.id, reason)
            self._release(session.partner_of(identity), session)
            profile.session = None

        self.profile_service.remove(identity)
        profile.state = ProfileState.IDLE

        self._logger.info("Tore down %s (%s)", profile, reason)
        return True

    def end_session(self, session: Session, reason: str) -> bool:
        """
        End a session on behalf of the server. Both participants are told and
        stay registered as idle profiles.
        """
        if self.session_service.remove_session(session.id, reason) is None:
            return False

        for identity in session.participants:
            if self._release(identity, session):
                self.relay_service.send_to(identity, {
                    "command": "session_ended",
                    "reason": reason,
                })
        return True

    def evict_from_queue(self, identity: str, reason: str) -> bool:
        tier = self.queue_service.find(identity)
        if tier is None:
            return False

        self.queue_service.remove_if_present(identity)
        profile = self.profile_service.lookup(identity)
        if profile is not None:
            profile.state = ProfileState.IDLE
            self.relay_service.send_to(identity, {
                "command": "queue_timeout",
                "tier": tier.value,
            })

        self._logger.info("Evicted %s from %s (%s)", identity, tier.value, reason)
        return True

    async def run_maintenance(self) -> None:
        try:
            self.expire_sessions()
            self.evict_stale_queue_entries()
        except Exception:
            self._logger.exception("Unexpected error during maintenance!")

    def expire_sessions(self) -> int:
        if config.SESSION_MAX_AGE <= 0:
            return 0

        expired = self.session_service.older_than(config.SESSION_MAX_AGE)
        count = sum(
            1 for session in expired if self.end_session(session, "expired")
        )
        if count:
            self._logger.info("Expired %d sessions", count)
        metrics.active_sessions.set(len(self.session_service))
        return count

    def evict_stale_queue_entries(self) -> int:
        if config.QUEUE_MAX_WAIT <= 0:
            return 0

        stale = self.queue_service.waiting_longer_than(config.QUEUE_MAX_WAIT)
        return sum(
            1 for identity in stale
            if self.evict_from_queue(identity, "max wait exceeded")
        )

    def _release(self, identity: str, session: Session) -> bool:
        """Clear the session reference of a participant if it points at `session`"""
        profile = self.profile_service.lookup(identity)
        if profile is None or profile.session is not session:
            return False

        profile.session = None
        profile.state = ProfileState.IDLE
        return True
