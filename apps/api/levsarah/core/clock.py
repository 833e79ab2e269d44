"""Time helpers.

All stored timestamps are UTC. SQLite hands back naive datetimes, so values read
from the store go through ``ensure_aware`` before being compared in Python.
"""

from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_aware(value: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
