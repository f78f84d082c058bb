"""
Closed enumerations shared by the ORM models and the monitoring engine.
"""

from enum import Enum


class Sentiment(Enum):
    """Sentiment label attached to a mention by the upstream classifier."""

    POSITIVE = "POSITIVE"
    NEUTRAL = "NEUTRAL"
    NEGATIVE = "NEGATIVE"


class CrisisType(Enum):
    """Which detector(s) produced a crisis."""

    SENTIMENT = "SENTIMENT"
    VOLUME = "VOLUME"
    MIXED = "MIXED"

    def overlapping(self) -> frozenset:
        """Types whose open incidents cover the same signal as this one."""
        if self is CrisisType.MIXED:
            return frozenset(CrisisType)
        return frozenset({self, CrisisType.MIXED})


class CrisisSeverity(Enum):
    """Four-tier severity, ordered from LOW to CRITICAL."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    CrisisSeverity.LOW: 1,
    CrisisSeverity.MEDIUM: 2,
    CrisisSeverity.HIGH: 3,
    CrisisSeverity.CRITICAL: 4,
}


class CrisisStatus(Enum):
    """Lifecycle states of a crisis."""

    DETECTED = "DETECTED"
    ACKNOWLEDGED = "ACKNOWLEDGED"
    INVESTIGATING = "INVESTIGATING"
    RESOLVED = "RESOLVED"
    CLOSED = "CLOSED"

    @property
    def is_open(self) -> bool:
        return self not in (CrisisStatus.RESOLVED, CrisisStatus.CLOSED)


OPEN_STATUSES = tuple(status for status in CrisisStatus if status.is_open)


class AlertReason(Enum):
    """Why a notification record was emitted for a crisis."""

    CREATED = "created"
    ESCALATED = "escalated"
