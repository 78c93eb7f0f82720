"""
The table of active sessions
"""

from typing import Iterator, Optional

import parley.metrics as metrics
from parley.decorators import with_logger
from parley.matchmaker import Session
from parley.profiles import Tier

from .core import Service


@with_logger
class SessionService(Service):
    """
    Forward reference from session id to session. The back reference lives on
    each participant's `Profile.session`; `MatchmakerService` and
    `LifecycleService` keep the two in sync.
    """

    def __init__(self):
        self._sessions: dict[str, Session] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __iter__(self) -> Iterator[Session]:
        return iter(list(self._sessions.values()))

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions

    def __getitem__(self, session_id: str) -> Optional[Session]:
        return self._sessions.get(session_id)

    def create_session(
        self,
        initiator: str,
        receiver: str,
        tier: Tier
    ) -> Session:
        session = Session(initiator, receiver, tier)
        assert session.id not in self._sessions

        self._sessions[session.id] = session
        metrics.active_sessions.set(len(self._sessions))
        self._logger.info("Session created: %r", session)
        return session

    def remove_session(self, session_id: str, reason: str) -> Optional[Session]:
        """
        Remove a session from the table. Returns None if the session was
        already removed, so every session is removed exactly once.
        """
        session = self._sessions.pop(session_id, None)
        if session is None:
            return None

        metrics.active_sessions.set(len(self._sessions))
        metrics.ended_sessions.labels(reason).inc()
        metrics.session_duration.observe(session.age)
        self._logger.info("Session ended (%s): %r", reason, session)
        return session

    def older_than(self, seconds: float) -> list[Session]:
        return [
            session for session in self._sessions.values()
            if session.age > seconds
        ]

    def to_dict(self) -> dict:
        return {
            "sessions": len(self._sessions),
        }
