"""
Immutable snapshots passed between the stores and the monitoring engine.

The ORM rows in ``db.models`` never leave a session; stores convert them into
these frozen dataclasses so callers cannot mutate history in place.
"""

from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple

from db.enums import AlertReason, CrisisSeverity, CrisisStatus, CrisisType, Sentiment


@dataclass(frozen=True)
class Mention:
    """A single sentiment-labeled social media mention."""

    id: int
    workspace_id: str
    platform: str
    sentiment: Sentiment
    published_at: datetime
    likes: int = 0
    comments: int = 0
    shares: int = 0
    reach: int = 0
    is_influencer: bool = False
    author_username: Optional[str] = None
    author_followers: Optional[int] = None
    content: Optional[str] = None
    sentiment_score: Optional[float] = None

    @property
    def engagement(self) -> int:
        return self.likes + self.comments + self.shares


@dataclass(frozen=True)
class TimelineEntry:
    """One status transition recorded on a crisis."""

    timestamp: datetime
    actor_id: str
    from_status: Optional[CrisisStatus]
    to_status: CrisisStatus
    note: Optional[str] = None


@dataclass(frozen=True)
class Crisis:
    """Snapshot of a persisted crisis and its timeline."""

    id: int
    workspace_id: str
    title: str
    type: CrisisType
    severity: CrisisSeverity
    status: CrisisStatus
    crisis_score: float
    detected_at: datetime
    description: Optional[str] = None
    mention_volume: int = 0
    acknowledged_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    timeline: Tuple[TimelineEntry, ...] = ()
    metrics_snapshot: Mapping[str, Any] = field(default_factory=dict)
    version: int = 1

    def __post_init__(self):
        object.__setattr__(self, "metrics_snapshot", freeze(self.metrics_snapshot))

    @property
    def is_open(self) -> bool:
        return self.status.is_open

    def to_dict(self) -> Dict[str, Any]:
        """Plain-data view used by the dashboard and the CLI."""
        return {
            "id": self.id,
            "workspace_id": self.workspace_id,
            "title": self.title,
            "description": self.description,
            "type": self.type.value,
            "severity": self.severity.value,
            "status": self.status.value,
            "crisis_score": self.crisis_score,
            "mention_volume": self.mention_volume,
            "detected_at": _isoformat(self.detected_at),
            "acknowledged_at": _isoformat(self.acknowledged_at),
            "resolved_at": _isoformat(self.resolved_at),
            "timeline": [
                {
                    "timestamp": _isoformat(entry.timestamp),
                    "actor_id": entry.actor_id,
                    "from_status": entry.from_status.value if entry.from_status else None,
                    "to_status": entry.to_status.value,
                    "note": entry.note,
                }
                for entry in self.timeline
            ],
            "metrics_snapshot": thaw(self.metrics_snapshot),
        }


@dataclass(frozen=True)
class CrisisNotification:
    """Record handed to the notification collaborator on creation or escalation."""

    crisis_id: int
    workspace_id: str
    severity: CrisisSeverity
    crisis_score: float
    type: CrisisType
    reason: AlertReason


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def freeze(value: Any) -> Any:
    """Read-only copy of nested JSON-like data: mappings become proxies, lists tuples."""
    if isinstance(value, Mapping):
        return MappingProxyType({key: freeze(item) for key, item in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(freeze(item) for item in value)
    return value


def thaw(value: Any) -> Any:
    """Plain dict/list copy of data produced by ``freeze``."""
    if isinstance(value, Mapping):
        return {key: thaw(item) for key, item in value.items()}
    if isinstance(value, tuple):
        return [thaw(item) for item in value]
    return value
