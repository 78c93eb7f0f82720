"""
Clock helpers
"""

import time
from datetime import datetime, timezone


def datetime_now() -> datetime:
    return datetime.now(timezone.utc)


def monotonic() -> float:
    """Clock used for ages and wait times. Not affected by system time changes"""
    return time.monotonic()


__all__ = (
    "datetime_now",
    "monotonic",
)
