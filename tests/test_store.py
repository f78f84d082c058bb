"""
Tests for the SQLAlchemy-backed mention and incident stores
"""

from datetime import timedelta
from unittest.mock import MagicMock

import pytest
from sqlalchemy import select
from sqlalchemy.exc import InterfaceError, ProgrammingError

from db.enums import AlertReason, CrisisSeverity, CrisisStatus, CrisisType, Sentiment
from db.models import CrisisAlert
from monitoring.errors import CrisisConflictError, NotFoundError, StoreUnavailableError
from monitoring.store import MentionStore, NewCrisis

from .conftest import NOW


def draft(crisis_type=CrisisType.SENTIMENT, workspace_id="ws-1", detected_at=NOW):
    return NewCrisis(
        workspace_id=workspace_id,
        title="HIGH: Sentiment Spike",
        type=crisis_type,
        severity=CrisisSeverity.HIGH,
        crisis_score=60.0,
        detected_at=detected_at,
        mention_volume=40,
        metrics_snapshot={"crisis_score": 60.0},
    )


class TestMentionStore:
    """Test MentionStore queries"""

    def test_window_bounds(self, mention_store, add_mentions):
        add_mentions("ws-1", 6, 120, 60)
        add_mentions("ws-1", 4, 60, 0)

        current = mention_store.list_mentions("ws-1", NOW - timedelta(minutes=60), NOW)
        baseline = mention_store.list_mentions(
            "ws-1", NOW - timedelta(minutes=120), NOW - timedelta(minutes=60)
        )

        assert len(current) == 4
        assert len(baseline) == 6
        assert all(m.published_at.tzinfo is not None for m in current)
        assert [m.published_at for m in current] == sorted(m.published_at for m in current)

    def test_platform_filter(self, mention_store, add_mentions):
        add_mentions("ws-1", 3, 60, 0, platform="twitter")
        add_mentions("ws-1", 2, 60, 0, platform="reddit")

        mentions = mention_store.list_mentions(
            "ws-1", NOW - timedelta(minutes=60), NOW, platforms=["reddit"]
        )

        assert {m.platform for m in mentions} == {"reddit"}
        assert len(mentions) == 2

    def test_mentions_are_converted(self, mention_store, add_mentions):
        add_mentions("ws-1", 2, 60, 0, Sentiment.NEGATIVE, influencers=1, content="Outage")

        mention = mention_store.list_mentions("ws-1", NOW - timedelta(minutes=60), NOW)[0]

        assert mention.sentiment == Sentiment.NEGATIVE
        assert mention.workspace_id == "ws-1"
        assert mention.content == "Outage"

    def test_active_workspaces(self, mention_store, add_mentions):
        add_mentions("ws-1", 2, 60, 0)
        add_mentions("ws-2", 2, 600, 500)

        assert mention_store.list_active_workspaces(NOW - timedelta(hours=2)) == ["ws-1"]

    def test_connection_failure(self):
        session_factory = MagicMock()
        session_factory.return_value.__enter__.side_effect = InterfaceError(
            "connect", {}, Exception("connection refused")
        )

        with pytest.raises(StoreUnavailableError):
            MentionStore(session_factory).list_active_workspaces(NOW)

    def test_other_database_errors_propagate(self):
        session_factory = MagicMock()
        session = session_factory.return_value.__enter__.return_value
        session.execute.side_effect = ProgrammingError("SELECT", {}, Exception("no such table"))

        with pytest.raises(ProgrammingError):
            MentionStore(session_factory).list_active_workspaces(NOW)


class TestIncidentStore:
    """Test IncidentStore writes and queries"""

    def test_create_crisis(self, incident_store):
        crisis, created = incident_store.create_crisis(draft())

        assert created is True
        assert crisis.id is not None
        assert crisis.status == CrisisStatus.DETECTED
        assert crisis.version == 1
        assert crisis.metrics_snapshot == {"crisis_score": 60.0}
        assert crisis.detected_at == NOW

    def test_duplicate_open_crisis_returns_existing(self, incident_store):
        first, _ = incident_store.create_crisis(draft())

        second, created = incident_store.create_crisis(draft(detected_at=NOW + timedelta(minutes=5)))

        assert created is False
        assert second.id == first.id
        assert incident_store.count_crises("ws-1") == 1

    def test_different_types_and_workspaces_coexist(self, incident_store):
        incident_store.create_crisis(draft(CrisisType.SENTIMENT))
        incident_store.create_crisis(draft(CrisisType.VOLUME))
        incident_store.create_crisis(draft(CrisisType.SENTIMENT, workspace_id="ws-2"))

        assert incident_store.count_crises("ws-1") == 2
        assert incident_store.count_crises("ws-2") == 1

    def test_find_open_crisis_by_types(self, incident_store):
        crisis, _ = incident_store.create_crisis(draft(CrisisType.VOLUME))

        assert incident_store.find_open_crisis("ws-1", [CrisisType.SENTIMENT]) is None
        assert incident_store.find_open_crisis("ws-1", CrisisType.MIXED.overlapping()).id == crisis.id

    def test_refresh_open_crisis(self, incident_store):
        crisis, _ = incident_store.create_crisis(draft())

        refreshed = incident_store.refresh_open_crisis(
            crisis.id,
            {"crisis_score": 80.0},
            escalate_to=(CrisisSeverity.CRITICAL, 80.0),
            emitted_at=NOW,
        )

        assert refreshed.metrics_snapshot == {"crisis_score": 80.0}
        assert refreshed.severity == CrisisSeverity.CRITICAL
        assert refreshed.crisis_score == 80.0
        assert refreshed.status == CrisisStatus.DETECTED

    def test_refresh_unknown_crisis(self, incident_store):
        with pytest.raises(NotFoundError):
            incident_store.refresh_open_crisis(42, {})

    def test_refresh_skips_resolved_crisis(self, incident_store, session_factory):
        crisis, _ = incident_store.create_crisis(draft())
        incident_store.apply_transition(
            crisis.id, CrisisStatus.DETECTED, CrisisStatus.ACKNOWLEDGED, "alice", NOW
        )
        incident_store.apply_transition(
            crisis.id, CrisisStatus.ACKNOWLEDGED, CrisisStatus.RESOLVED, "alice", NOW
        )

        refreshed = incident_store.refresh_open_crisis(
            crisis.id,
            {"crisis_score": 95.0},
            escalate_to=(CrisisSeverity.CRITICAL, 95.0),
            emitted_at=NOW,
        )

        assert refreshed is None
        stored = incident_store.get_crisis(crisis.id)
        assert stored.severity == CrisisSeverity.HIGH
        assert stored.crisis_score == 60.0
        assert stored.metrics_snapshot == {"crisis_score": 60.0}
        with session_factory() as session:
            reasons = session.execute(select(CrisisAlert.reason)).scalars().all()
        assert reasons == [AlertReason.CREATED]

    def test_moved_status_is_a_conflict(self, incident_store):
        crisis, _ = incident_store.create_crisis(draft())
        incident_store.apply_transition(
            crisis.id, CrisisStatus.DETECTED, CrisisStatus.ACKNOWLEDGED, "alice", NOW
        )

        with pytest.raises(CrisisConflictError):
            incident_store.apply_transition(
                crisis.id,
                CrisisStatus.DETECTED,
                CrisisStatus.ACKNOWLEDGED,
                "bob",
                NOW,
            )

        assert len(incident_store.get_crisis(crisis.id).timeline) == 2

    def test_metrics_refresh_does_not_block_transition(self, incident_store):
        crisis, _ = incident_store.create_crisis(draft())
        refreshed = incident_store.refresh_open_crisis(crisis.id, {"crisis_score": 65.0})
        assert refreshed.version > crisis.version

        acknowledged = incident_store.apply_transition(
            crisis.id, CrisisStatus.DETECTED, CrisisStatus.ACKNOWLEDGED, "alice", NOW
        )

        assert acknowledged.status == CrisisStatus.ACKNOWLEDGED
        assert acknowledged.metrics_snapshot == {"crisis_score": 65.0}
        assert len(acknowledged.timeline) == 2

    def test_snapshot_is_read_only(self, incident_store):
        crisis, _ = incident_store.create_crisis(
            NewCrisis(
                workspace_id="ws-1",
                title="HIGH: Sentiment Spike",
                type=CrisisType.SENTIMENT,
                severity=CrisisSeverity.HIGH,
                crisis_score=60.0,
                detected_at=NOW,
                metrics_snapshot={"current": {"count": 40}, "keywords": ["outage"]},
            )
        )

        with pytest.raises(TypeError):
            crisis.metrics_snapshot["crisis_score"] = 0
        with pytest.raises(TypeError):
            crisis.metrics_snapshot["current"]["count"] = 0

        plain = crisis.to_dict()["metrics_snapshot"]
        plain["current"]["count"] = 0
        assert plain["keywords"] == ["outage"]
        assert crisis.metrics_snapshot["current"]["count"] == 40

    def test_list_and_count_by_status(self, incident_store):
        first, _ = incident_store.create_crisis(draft(CrisisType.SENTIMENT))
        incident_store.create_crisis(
            draft(CrisisType.VOLUME, detected_at=NOW + timedelta(minutes=1))
        )
        incident_store.apply_transition(
            first.id, CrisisStatus.DETECTED, CrisisStatus.ACKNOWLEDGED, "alice", NOW
        )

        listed = incident_store.list_crises("ws-1")
        acknowledged = incident_store.list_crises("ws-1", statuses=[CrisisStatus.ACKNOWLEDGED])

        assert [c.type for c in listed] == [CrisisType.VOLUME, CrisisType.SENTIMENT]
        assert [c.id for c in acknowledged] == [first.id]
        assert incident_store.count_crises("ws-1", [CrisisStatus.DETECTED]) == 1

    def test_list_pagination(self, incident_store):
        for i, crisis_type in enumerate(CrisisType):
            incident_store.create_crisis(draft(crisis_type, detected_at=NOW + timedelta(minutes=i)))

        page = incident_store.list_crises("ws-1", limit=2, offset=1)

        assert [c.type for c in page] == [CrisisType.VOLUME, CrisisType.SENTIMENT]
