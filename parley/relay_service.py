"""
Delivers messages between the two participants of a session
"""

from typing import Optional

import parley.metrics as metrics
from parley.config import TRACE, config
from parley.decorators import with_logger
from parley.matchmaker import Session
from parley.profile_service import ProfileService
from parley.session_service import SessionService
from parley.timing import datetime_now

from .core import Service


@with_logger
class RelayService(Service):
    """
    Resolves the sender's session through its profile and forwards payloads
    to the session members. Signal payloads are opaque and are never
    inspected beyond logging. The relay only reads shared state.

    Events from senders without a session are dropped without an error
    response. A stray signal after the partner left is expected traffic.
    """

    def __init__(
        self,
        profile_service: ProfileService,
        session_service: SessionService
    ):
        self.profile_service = profile_service
        self.session_service = session_service

    def send_to(self, identity: str, message: dict) -> bool:
        """Deliver a message to a single registered identity"""
        profile = self.profile_service.lookup(identity)
        if profile is None:
            return False

        self._logger.log(TRACE, ">> %s: %s", identity, message)
        profile.write_message(message)
        return True

    def forward_to_partner(self, identity: str, message: dict) -> bool:
        """
        Deliver `message` unmodified to the other participant of the sender's
        session.
        """
        session = self._resolve_session(identity, message)
        if session is None:
            return False

        metrics.relayed_events.labels(_event_name(message)).inc()
        return self.send_to(session.partner_of(identity), message)

    def broadcast_to_session(self, identity: str, message: dict) -> bool:
        """
        Deliver `message` to both participants of the sender's session,
        including the sender.
        """
        session = self._resolve_session(identity, message)
        if session is None:
            return False

        metrics.relayed_events.labels(_event_name(message)).inc()
        for participant in session.participants:
            self.send_to(participant, message)
        return True

    def send_chat(self, identity: str, raw_text) -> bool:
        """
        Broadcast a chat line with a server assigned timestamp. The text is
        trimmed and cut to `CHAT_MESSAGE_MAX_LENGTH`. Blank lines are dropped.
        """
        if not isinstance(raw_text, str):
            metrics.dropped_events.labels("message").inc()
            return False

        text = raw_text.strip()[:config.CHAT_MESSAGE_MAX_LENGTH]
        if not text:
            metrics.dropped_events.labels("message").inc()
            return False

        profile = self.profile_service.lookup(identity)
        if profile is None:
            metrics.dropped_events.labels("message").inc()
            return False

        return self.broadcast_to_session(identity, {
            "command": "message",
            "sender": profile.name,
            "text": text,
            "time": datetime_now().isoformat(),
        })

    def send_signal(self, identity: str, data) -> bool:
        if isinstance(data, dict):
            kinds = [k for k in ("offer", "answer", "candidate") if k in data]
            self._logger.log(
                TRACE, "Signal %s from %s", ", ".join(kinds) or "?", identity
            )

        return self.forward_to_partner(identity, {
            "command": "signal",
            "data": data,
        })

    def send_typing(self, identity: str, status) -> bool:
        """Forward a typing indicator. Non boolean statuses are dropped."""
        if not isinstance(status, bool):
            metrics.dropped_events.labels("partner_typing").inc()
            return False

        return self.forward_to_partner(identity, {
            "command": "partner_typing",
            "status": status,
        })

    def _resolve_session(
        self,
        identity: str,
        message: dict
    ) -> Optional[Session]:
        profile = self.profile_service.lookup(identity)
        session = profile.session if profile is not None else None

        if session is None or session.id not in self.session_service:
            metrics.dropped_events.labels(_event_name(message)).inc()
            self._logger.debug(
                "Dropping %s from %s: not in a session",
                _event_name(message),
                identity
            )
            return None

        return session


def _event_name(message: dict) -> str:
    return str(message.get("command", "unknown"))
