"""
UTC time helpers.

The engine works with timezone-aware UTC datetimes; the database stores naive
UTC so that every backend compares window bounds the same way.
"""

from datetime import datetime
from typing import Optional

import pytz


def utcnow() -> datetime:
    return datetime.now(pytz.UTC)


def to_storage(value: Optional[datetime]) -> Optional[datetime]:
    """Aware (or naive UTC) datetime -> naive UTC for the database."""
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(pytz.UTC).replace(tzinfo=None)
    return value


def from_storage(value: Optional[datetime]) -> Optional[datetime]:
    """Naive UTC datetime read from the database -> aware UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return pytz.UTC.localize(value)
    return value.astimezone(pytz.UTC)
