"""
Matchmaking data structures

The services that operate on these live one level up: `QueueService`,
`SessionService` and `MatchmakerService`.
"""

from .session import Matched, MatchResult, Role, Session, Waiting
from .tier_queue import TierQueue

__all__ = (
    "MatchResult",
    "Matched",
    "Role",
    "Session",
    "TierQueue",
    "Waiting",
)
