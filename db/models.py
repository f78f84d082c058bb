"""
SQLAlchemy ORM Models for the Crisis Monitor Database

This module defines the database schema using SQLAlchemy declarative models
for listening mentions, crises, their status timeline, and crisis alerts.
"""

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from . import Base
from .enums import AlertReason, CrisisSeverity, CrisisStatus, CrisisType, Sentiment


def _enum(enum_class):
    # Stored as VARCHAR so every backend shares one schema
    return SAEnum(enum_class, native_enum=False, length=20, validate_strings=True)


class ListeningMention(Base):
    """Mention of a tracked brand collected for a workspace, already sentiment-labeled"""

    __tablename__ = "listening_mentions"

    id = Column(Integer, primary_key=True, index=True)
    workspace_id = Column(String(64), nullable=False, index=True)
    external_id = Column(String(255), nullable=True)  # Platform post/comment ID
    platform = Column(String(50), nullable=False, index=True)
    sentiment = Column(_enum(Sentiment), nullable=False, index=True)
    sentiment_score = Column(Float, nullable=True)  # Finer score in [-1, 1] if known
    content = Column(Text, nullable=True)
    published_at = Column(DateTime, nullable=False, index=True)  # naive UTC
    likes = Column(Integer, nullable=False, default=0)
    comments = Column(Integer, nullable=False, default=0)
    shares = Column(Integer, nullable=False, default=0)
    reach = Column(Integer, nullable=False, default=0)
    is_influencer = Column(Boolean, nullable=False, default=False)
    author_username = Column(String(255), nullable=True)
    author_followers = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Window queries always filter on workspace and publish time together
    __table_args__ = (
        Index("ix_listening_mentions_workspace_published", "workspace_id", "published_at"),
    )


class CrisisRecord(Base):
    """Crisis table for incidents raised from sentiment or volume anomalies"""

    __tablename__ = "crises"

    id = Column(Integer, primary_key=True, index=True)
    workspace_id = Column(String(64), nullable=False, index=True)
    title = Column(String(500), nullable=False)
    description = Column(Text, nullable=True)
    type = Column(_enum(CrisisType), nullable=False, index=True)
    severity = Column(_enum(CrisisSeverity), nullable=False, index=True)
    status = Column(_enum(CrisisStatus), nullable=False, index=True)
    crisis_score = Column(Float, nullable=False, default=0.0)  # 0-100 scale
    mention_volume = Column(Integer, nullable=False, default=0)
    detected_at = Column(DateTime, nullable=False, index=True)  # naive UTC
    acknowledged_at = Column(DateTime, nullable=True)
    resolved_at = Column(DateTime, nullable=True)
    metrics_snapshot = Column(JSON, nullable=False, default=dict)
    # Holds the crisis type while the incident is open, NULL once resolved
    open_slot = Column(String(20), nullable=True)
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    timeline = relationship(
        "CrisisTimelineEntry",
        back_populates="crisis",
        order_by="CrisisTimelineEntry.id",
    )
    alerts = relationship("CrisisAlert", back_populates="crisis")

    # One open incident per (workspace, type); NULL slots never collide
    __table_args__ = (
        UniqueConstraint("workspace_id", "open_slot", name="unique_open_crisis"),
        Index("ix_crises_workspace_status_detected", "workspace_id", "status", "detected_at"),
    )
    __mapper_args__ = {"version_id_col": version}


class CrisisTimelineEntry(Base):
    """Append-only audit trail of crisis status transitions"""

    __tablename__ = "crisis_timeline"

    id = Column(Integer, primary_key=True, index=True)
    crisis_id = Column(Integer, ForeignKey("crises.id"), nullable=False, index=True)
    timestamp = Column(DateTime, nullable=False)
    actor_id = Column(String(255), nullable=False)
    from_status = Column(_enum(CrisisStatus), nullable=True)  # NULL for creation
    to_status = Column(_enum(CrisisStatus), nullable=False)
    note = Column(Text, nullable=True)

    # Relationships
    crisis = relationship("CrisisRecord", back_populates="timeline")


class CrisisAlert(Base):
    """Alert table for notification records emitted on crisis creation or escalation"""

    __tablename__ = "crisis_alerts"

    id = Column(Integer, primary_key=True, index=True)
    crisis_id = Column(Integer, ForeignKey("crises.id"), nullable=False, index=True)
    workspace_id = Column(String(64), nullable=False, index=True)
    type = Column(_enum(CrisisType), nullable=False)
    severity = Column(_enum(CrisisSeverity), nullable=False)
    crisis_score = Column(Float, nullable=False)
    reason = Column(_enum(AlertReason), nullable=False)
    emitted_at = Column(DateTime, nullable=False, index=True)
    is_delivered = Column(Boolean, default=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    crisis = relationship("CrisisRecord", back_populates="alerts")
