"""
Naive-UTC clock used for every persisted timestamp.

Services accept an optional ``clock`` callable so tests can move time
(cooldowns, campaign windows, expiry dates) without sleeping.
"""
from datetime import datetime, timezone


def utcnow() -> datetime:
    """Current UTC time without tzinfo, matching the DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
