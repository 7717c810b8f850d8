"""Injectable wall clock.

The usage counter is keyed by calendar month; handlers take the clock as a
dependency so tests can pin "now" to a fixed month.
"""

from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def get_clock() -> Clock:
    """FastAPI dependency returning the clock used for month keys."""
    return utcnow
