"""
Database persistence layer for mentions and crises

The Mention Store reads sentiment-labeled mentions per workspace and time
window. The Incident Store creates, finds and updates crises, their timeline
and their alert records. Both convert ORM rows into immutable snapshots before
returning them, and translate connectivity failures and timeouts into
StoreUnavailableError.
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import and_, desc, func, select
from sqlalchemy.exc import (
    DisconnectionError,
    IntegrityError,
    InterfaceError,
    OperationalError,
    SQLAlchemyError,
)
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.exc import StaleDataError

from db import SessionLocal
from db.enums import (
    OPEN_STATUSES,
    AlertReason,
    CrisisSeverity,
    CrisisStatus,
    CrisisType,
)
from db.models import CrisisAlert, CrisisRecord, CrisisTimelineEntry, ListeningMention

from .clock import from_storage, to_storage, utcnow
from .errors import CrisisConflictError, NotFoundError, StoreUnavailableError
from .models import Crisis, Mention, TimelineEntry

logger = logging.getLogger(__name__)

SYSTEM_ACTOR = "system"

# Writes retried once when the row version moves underneath them
WRITE_ATTEMPTS = 2

UNAVAILABLE_ERRORS = (
    OperationalError,
    InterfaceError,
    DisconnectionError,
    PoolTimeoutError,
)


@contextmanager
def store_call(operation: str, **context: Any):
    """Log store failures and surface connectivity problems as StoreUnavailableError."""
    try:
        yield
    except UNAVAILABLE_ERRORS as e:
        logger.error(f"Store unavailable during {operation}: {e}")
        raise StoreUnavailableError(operation, e, **context) from e
    except SQLAlchemyError as e:
        logger.error(f"Database error during {operation}: {e}")
        raise


class MentionStore:
    """Reads mentions for a workspace and time window."""

    def __init__(self, session_factory=None):
        """
        Initialize the mention store.

        Args:
            session_factory: Optional custom session factory, defaults to SessionLocal
        """
        self.session_factory = session_factory or SessionLocal

    def list_mentions(
        self,
        workspace_id: str,
        window_start: datetime,
        window_end: datetime,
        platforms: Optional[Sequence[str]] = None,
    ) -> List[Mention]:
        """
        Fetch mentions published in ``[window_start, window_end)``.

        Args:
            workspace_id: Workspace to read
            window_start: Inclusive lower bound
            window_end: Exclusive upper bound
            platforms: Optional platform filter

        Returns:
            Mentions ordered by publish time
        """
        with store_call("list_mentions", workspace_id=workspace_id):
            with self.session_factory() as session:
                query = (
                    select(ListeningMention)
                    .where(
                        and_(
                            ListeningMention.workspace_id == workspace_id,
                            ListeningMention.published_at >= to_storage(window_start),
                            ListeningMention.published_at < to_storage(window_end),
                        )
                    )
                    .order_by(ListeningMention.published_at, ListeningMention.id)
                )

                if platforms:
                    query = query.where(ListeningMention.platform.in_(list(platforms)))

                rows = session.execute(query).scalars().all()
                return [self._to_mention(row) for row in rows]

    def list_active_workspaces(self, since: datetime) -> List[str]:
        """Workspaces with at least one mention published since ``since``."""
        with store_call("list_active_workspaces"):
            with self.session_factory() as session:
                result = session.execute(
                    select(ListeningMention.workspace_id)
                    .where(ListeningMention.published_at >= to_storage(since))
                    .distinct()
                    .order_by(ListeningMention.workspace_id)
                )
                return list(result.scalars().all())

    @staticmethod
    def _to_mention(row: ListeningMention) -> Mention:
        return Mention(
            id=row.id,
            workspace_id=row.workspace_id,
            platform=row.platform,
            sentiment=row.sentiment,
            published_at=from_storage(row.published_at),
            likes=row.likes or 0,
            comments=row.comments or 0,
            shares=row.shares or 0,
            reach=row.reach or 0,
            is_influencer=bool(row.is_influencer),
            author_username=row.author_username,
            author_followers=row.author_followers,
            content=row.content,
            sentiment_score=row.sentiment_score,
        )


@dataclass(frozen=True)
class NewCrisis:
    """Everything needed to open a crisis in state DETECTED."""

    workspace_id: str
    title: str
    type: CrisisType
    severity: CrisisSeverity
    crisis_score: float
    detected_at: datetime
    description: Optional[str] = None
    mention_volume: int = 0
    metrics_snapshot: Dict[str, Any] = field(default_factory=dict)


class IncidentStore:
    """Creates, finds and updates crises."""

    def __init__(self, session_factory=None):
        """
        Initialize the incident store.

        Args:
            session_factory: Optional custom session factory, defaults to SessionLocal
        """
        self.session_factory = session_factory or SessionLocal

    def create_crisis(self, draft: NewCrisis) -> Tuple[Crisis, bool]:
        """
        Insert a crisis with its creation timeline entry and alert record.

        The insert is guarded by the (workspace_id, open_slot) unique
        constraint. When another writer already holds the open slot, nothing
        is written and the existing open crisis is returned instead.

        Returns:
            Tuple of (crisis, created)
        """
        with store_call("create_crisis", workspace_id=draft.workspace_id):
            try:
                with self.session_factory() as session:
                    with session.begin():
                        record = CrisisRecord(
                            workspace_id=draft.workspace_id,
                            title=draft.title,
                            description=draft.description,
                            type=draft.type,
                            severity=draft.severity,
                            status=CrisisStatus.DETECTED,
                            crisis_score=draft.crisis_score,
                            mention_volume=draft.mention_volume,
                            detected_at=to_storage(draft.detected_at),
                            metrics_snapshot=draft.metrics_snapshot,
                            open_slot=draft.type.value,
                        )
                        session.add(record)
                        session.flush()

                        session.add(
                            CrisisTimelineEntry(
                                crisis_id=record.id,
                                timestamp=to_storage(draft.detected_at),
                                actor_id=SYSTEM_ACTOR,
                                from_status=None,
                                to_status=CrisisStatus.DETECTED,
                                note=f"Crisis detected with score {draft.crisis_score:.2f}",
                            )
                        )
                        session.add(
                            self._alert(record, AlertReason.CREATED, draft.detected_at)
                        )
                        crisis_id = record.id

                    return self._load(session, crisis_id), True

            except IntegrityError as e:
                logger.info(
                    f"Open {draft.type.value} crisis already exists for workspace "
                    f"{draft.workspace_id}, reusing it: {e.orig}"
                )
                existing = self.find_open_crisis(draft.workspace_id, [draft.type])
                if existing is None:
                    raise
                return existing, False

    def get_crisis(self, crisis_id: int) -> Optional[Crisis]:
        with store_call("get_crisis", crisis_id=crisis_id):
            with self.session_factory() as session:
                return self._load(session, crisis_id)

    def find_open_crisis(
        self, workspace_id: str, types: Iterable[CrisisType]
    ) -> Optional[Crisis]:
        """Most recently detected open crisis of any of ``types``."""
        with store_call("find_open_crisis", workspace_id=workspace_id):
            with self.session_factory() as session:
                record = session.execute(
                    select(CrisisRecord)
                    .options(selectinload(CrisisRecord.timeline))
                    .where(
                        and_(
                            CrisisRecord.workspace_id == workspace_id,
                            CrisisRecord.status.in_(OPEN_STATUSES),
                            CrisisRecord.type.in_(list(types)),
                        )
                    )
                    .order_by(desc(CrisisRecord.detected_at), desc(CrisisRecord.id))
                    .limit(1)
                ).scalar_one_or_none()
                return self._to_crisis(record) if record else None

    def refresh_open_crisis(
        self,
        crisis_id: int,
        metrics_snapshot: Dict[str, Any],
        escalate_to: Optional[Tuple[CrisisSeverity, float]] = None,
        emitted_at: Optional[datetime] = None,
    ) -> Optional[Crisis]:
        """
        Replace an open crisis' metrics snapshot, optionally raising its severity.

        Args:
            crisis_id: Crisis to refresh
            metrics_snapshot: Latest detection metrics
            escalate_to: Optional (severity, crisis_score) to escalate to;
                an ``escalated`` alert record is written with it
            emitted_at: Timestamp for the escalation alert

        Returns:
            Updated crisis snapshot, or None if the crisis was resolved or
            closed in the meantime (nothing is written then)

        Raises:
            NotFoundError: If the crisis does not exist
        """
        with store_call("refresh_open_crisis", crisis_id=crisis_id):
            for attempt in range(1, WRITE_ATTEMPTS + 1):
                try:
                    return self._refresh_once(crisis_id, metrics_snapshot, escalate_to, emitted_at)
                except StaleDataError as e:
                    if attempt == WRITE_ATTEMPTS:
                        raise CrisisConflictError(
                            "Crisis changed while its metrics were being refreshed",
                            crisis_id=crisis_id,
                        ) from e
                    logger.info(f"Crisis {crisis_id} changed during refresh, retrying")

    def _refresh_once(self, crisis_id, metrics_snapshot, escalate_to, emitted_at):
        with self.session_factory() as session:
            with session.begin():
                record = session.get(CrisisRecord, crisis_id, with_for_update=True)
                if record is None:
                    raise NotFoundError(crisis_id)
                if not record.status.is_open:
                    logger.info(
                        f"Crisis {crisis_id} is {record.status.value}, skipping refresh"
                    )
                    return None

                record.metrics_snapshot = metrics_snapshot
                if escalate_to is not None:
                    record.severity, record.crisis_score = escalate_to
                    session.add(self._alert(record, AlertReason.ESCALATED, emitted_at))

            return self._load(session, crisis_id)

    def apply_transition(
        self,
        crisis_id: int,
        from_status: CrisisStatus,
        to_status: CrisisStatus,
        actor_id: str,
        timestamp: datetime,
        note: Optional[str] = None,
    ) -> Crisis:
        """
        Move a crisis to ``to_status`` and append one timeline entry, atomically.

        The write only applies if the locked row is still at ``from_status``;
        otherwise another transition won and CrisisConflictError is raised.
        Metrics refreshes do not conflict with a transition.
        """
        context = {
            "crisis_id": crisis_id,
            "from_status": from_status.value,
            "to_status": to_status.value,
        }
        with store_call("apply_transition", **context):
            for attempt in range(1, WRITE_ATTEMPTS + 1):
                try:
                    return self._transition_once(
                        crisis_id, from_status, to_status, actor_id, timestamp, note, context
                    )
                except StaleDataError as e:
                    # Row version moved between read and write; re-read and re-check status
                    if attempt == WRITE_ATTEMPTS:
                        raise CrisisConflictError(
                            "Crisis was modified concurrently", **context
                        ) from e
                    logger.info(f"Crisis {crisis_id} changed during transition, retrying")

    def _transition_once(self, crisis_id, from_status, to_status, actor_id, timestamp, note, context):
        with self.session_factory() as session:
            with session.begin():
                record = session.get(CrisisRecord, crisis_id, with_for_update=True)
                if record is None:
                    raise NotFoundError(crisis_id)

                if record.status != from_status:
                    raise CrisisConflictError("Crisis was modified concurrently", **context)

                stored_at = to_storage(timestamp)
                record.status = to_status
                record.open_slot = record.type.value if to_status.is_open else None
                if to_status == CrisisStatus.ACKNOWLEDGED and record.acknowledged_at is None:
                    record.acknowledged_at = stored_at
                if to_status == CrisisStatus.RESOLVED and record.resolved_at is None:
                    record.resolved_at = stored_at

                session.add(
                    CrisisTimelineEntry(
                        crisis_id=crisis_id,
                        timestamp=stored_at,
                        actor_id=actor_id,
                        from_status=from_status,
                        to_status=to_status,
                        note=note,
                    )
                )

            return self._load(session, crisis_id)

    def list_crises(
        self,
        workspace_id: str,
        statuses: Optional[Sequence[CrisisStatus]] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Crisis]:
        """Crises of a workspace, most recently detected first."""
        with store_call("list_crises", workspace_id=workspace_id):
            with self.session_factory() as session:
                query = (
                    select(CrisisRecord)
                    .options(selectinload(CrisisRecord.timeline))
                    .where(CrisisRecord.workspace_id == workspace_id)
                    .order_by(desc(CrisisRecord.detected_at), desc(CrisisRecord.id))
                    .offset(offset)
                )
                if statuses:
                    query = query.where(CrisisRecord.status.in_(list(statuses)))
                if limit:
                    query = query.limit(limit)

                records = session.execute(query).scalars().all()
                return [self._to_crisis(record) for record in records]

    def count_crises(
        self, workspace_id: str, statuses: Optional[Sequence[CrisisStatus]] = None
    ) -> int:
        with store_call("count_crises", workspace_id=workspace_id):
            with self.session_factory() as session:
                query = select(func.count(CrisisRecord.id)).where(
                    CrisisRecord.workspace_id == workspace_id
                )
                if statuses:
                    query = query.where(CrisisRecord.status.in_(list(statuses)))
                return int(session.execute(query).scalar_one())

    def _load(self, session, crisis_id: int) -> Optional[Crisis]:
        record = session.execute(
            select(CrisisRecord)
            .options(selectinload(CrisisRecord.timeline))
            .where(CrisisRecord.id == crisis_id)
        ).scalar_one_or_none()
        return self._to_crisis(record) if record else None

    @staticmethod
    def _alert(
        record: CrisisRecord, reason: AlertReason, emitted_at: Optional[datetime]
    ) -> CrisisAlert:
        return CrisisAlert(
            crisis_id=record.id,
            workspace_id=record.workspace_id,
            type=record.type,
            severity=record.severity,
            crisis_score=record.crisis_score,
            reason=reason,
            emitted_at=to_storage(emitted_at or utcnow()),
        )

    @staticmethod
    def _to_crisis(record: CrisisRecord) -> Crisis:
        return Crisis(
            id=record.id,
            workspace_id=record.workspace_id,
            title=record.title,
            description=record.description,
            type=record.type,
            severity=record.severity,
            status=record.status,
            crisis_score=record.crisis_score,
            mention_volume=record.mention_volume or 0,
            detected_at=from_storage(record.detected_at),
            acknowledged_at=from_storage(record.acknowledged_at),
            resolved_at=from_storage(record.resolved_at),
            timeline=tuple(
                TimelineEntry(
                    timestamp=from_storage(entry.timestamp),
                    actor_id=entry.actor_id,
                    from_status=entry.from_status,
                    to_status=entry.to_status,
                    note=entry.note,
                )
                for entry in record.timeline
            ),
            metrics_snapshot=dict(record.metrics_snapshot or {}),
            version=record.version,
        )
