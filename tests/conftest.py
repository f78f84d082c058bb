"""
Shared fixtures: a file-backed SQLite database, a controllable clock and
helpers for inserting mentions and crises.
"""

from datetime import datetime, timedelta

import pytest
import pytz
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

import db.models  # noqa: F401
from db import Base
from db.enums import CrisisSeverity, CrisisType, Sentiment
from db.models import ListeningMention
from monitoring.store import IncidentStore, MentionStore, NewCrisis

NOW = datetime(2026, 3, 2, 12, 0, tzinfo=pytz.UTC)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now=NOW):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def engine(tmp_path):
    """Create a file-backed SQLite engine so several threads can share it"""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'crisis.db'}",
        echo=False,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def mention_store(session_factory):
    return MentionStore(session_factory=session_factory)


@pytest.fixture
def incident_store(session_factory):
    return IncidentStore(session_factory=session_factory)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def add_mentions(session_factory):
    """
    Insert ``count`` mentions spread over ``[NOW - from_minutes, NOW - to_minutes)``.

    Returns the number of rows inserted.
    """

    def _add(
        workspace_id,
        count,
        from_minutes,
        to_minutes,
        sentiment=Sentiment.NEUTRAL,
        influencers=0,
        content=None,
        platform="twitter",
    ):
        end = NOW.replace(tzinfo=None) - timedelta(minutes=to_minutes)
        span = (from_minutes - to_minutes) * 60
        rows = []
        for i in range(count):
            offset = span * (i + 1) / (count + 1)
            rows.append(
                ListeningMention(
                    workspace_id=workspace_id,
                    platform=platform,
                    sentiment=sentiment,
                    content=content,
                    published_at=end - timedelta(seconds=offset),
                    likes=i,
                    comments=1,
                    shares=0,
                    reach=100,
                    is_influencer=i < influencers,
                    author_username=f"author_{i}",
                    author_followers=10000 * (i + 1) if i < influencers else 10,
                )
            )

        with session_factory() as session:
            session.add_all(rows)
            session.commit()
        return len(rows)

    return _add


@pytest.fixture
def open_crisis(incident_store):
    """Create a crisis in DETECTED directly through the incident store."""

    def _open(
        workspace_id="ws-1",
        crisis_type=CrisisType.SENTIMENT,
        severity=CrisisSeverity.HIGH,
        score=60.0,
        detected_at=NOW,
    ):
        crisis, created = incident_store.create_crisis(
            NewCrisis(
                workspace_id=workspace_id,
                title=f"{severity.value}: test crisis",
                type=crisis_type,
                severity=severity,
                crisis_score=score,
                detected_at=detected_at,
                mention_volume=25,
                metrics_snapshot={"crisis_score": score},
            )
        )
        assert created
        return crisis

    return _open
