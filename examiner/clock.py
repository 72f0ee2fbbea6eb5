"""
Wall-clock source used by the countdown timer and the session.

Time is always read through a Clock so tests can move it by hand.
"""

from datetime import datetime, timezone


class Clock:
    """Interface: returns the current time as an aware UTC datetime."""

    def now(self) -> datetime:
        raise NotImplementedError


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


def parse_timestamp(value):
    """
    Parse an ISO-8601 timestamp from a snapshot or API payload.

    Returns:
        Aware datetime, or None if the value is missing or unreadable
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value:
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
