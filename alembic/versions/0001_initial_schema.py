"""Initial crisis monitor schema

Revision ID: 0001
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def _enum(*values):
    return sa.Enum(*values, native_enum=False, length=20)


SENTIMENT = ("POSITIVE", "NEUTRAL", "NEGATIVE")
CRISIS_TYPE = ("SENTIMENT", "VOLUME", "MIXED")
CRISIS_SEVERITY = ("LOW", "MEDIUM", "HIGH", "CRITICAL")
CRISIS_STATUS = ("DETECTED", "ACKNOWLEDGED", "INVESTIGATING", "RESOLVED", "CLOSED")
ALERT_REASON = ("CREATED", "ESCALATED")


def upgrade() -> None:
    # Mentions are written by the ingestion pipeline and only read here
    op.create_table(
        "listening_mentions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("workspace_id", sa.String(64), nullable=False),
        sa.Column("external_id", sa.String(255), nullable=True),
        sa.Column("platform", sa.String(50), nullable=False),
        sa.Column("sentiment", _enum(*SENTIMENT), nullable=False),
        sa.Column("sentiment_score", sa.Float(), nullable=True),
        sa.Column("content", sa.Text(), nullable=True),
        sa.Column("published_at", sa.DateTime(), nullable=False),
        sa.Column("likes", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("comments", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("shares", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("reach", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_influencer", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("author_username", sa.String(255), nullable=True),
        sa.Column("author_followers", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_listening_mentions_id", "listening_mentions", ["id"])
    op.create_index("ix_listening_mentions_workspace_id", "listening_mentions", ["workspace_id"])
    op.create_index("ix_listening_mentions_platform", "listening_mentions", ["platform"])
    op.create_index("ix_listening_mentions_sentiment", "listening_mentions", ["sentiment"])
    op.create_index("ix_listening_mentions_published_at", "listening_mentions", ["published_at"])
    op.create_index(
        "ix_listening_mentions_workspace_published",
        "listening_mentions",
        ["workspace_id", "published_at"],
    )

    op.create_table(
        "crises",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("workspace_id", sa.String(64), nullable=False),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("type", _enum(*CRISIS_TYPE), nullable=False),
        sa.Column("severity", _enum(*CRISIS_SEVERITY), nullable=False),
        sa.Column("status", _enum(*CRISIS_STATUS), nullable=False),
        sa.Column("crisis_score", sa.Float(), nullable=False),
        sa.Column("mention_volume", sa.Integer(), nullable=False),
        sa.Column("detected_at", sa.DateTime(), nullable=False),
        sa.Column("acknowledged_at", sa.DateTime(), nullable=True),
        sa.Column("resolved_at", sa.DateTime(), nullable=True),
        sa.Column("metrics_snapshot", sa.JSON(), nullable=False),
        sa.Column("open_slot", sa.String(20), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("workspace_id", "open_slot", name="unique_open_crisis"),
    )
    op.create_index("ix_crises_id", "crises", ["id"])
    op.create_index("ix_crises_workspace_id", "crises", ["workspace_id"])
    op.create_index("ix_crises_type", "crises", ["type"])
    op.create_index("ix_crises_severity", "crises", ["severity"])
    op.create_index("ix_crises_status", "crises", ["status"])
    op.create_index("ix_crises_detected_at", "crises", ["detected_at"])
    op.create_index(
        "ix_crises_workspace_status_detected",
        "crises",
        ["workspace_id", "status", "detected_at"],
    )

    op.create_table(
        "crisis_timeline",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("crisis_id", sa.Integer(), sa.ForeignKey("crises.id"), nullable=False),
        sa.Column("timestamp", sa.DateTime(), nullable=False),
        sa.Column("actor_id", sa.String(255), nullable=False),
        sa.Column("from_status", _enum(*CRISIS_STATUS), nullable=True),
        sa.Column("to_status", _enum(*CRISIS_STATUS), nullable=False),
        sa.Column("note", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_crisis_timeline_id", "crisis_timeline", ["id"])
    op.create_index("ix_crisis_timeline_crisis_id", "crisis_timeline", ["crisis_id"])

    op.create_table(
        "crisis_alerts",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("crisis_id", sa.Integer(), sa.ForeignKey("crises.id"), nullable=False),
        sa.Column("workspace_id", sa.String(64), nullable=False),
        sa.Column("type", _enum(*CRISIS_TYPE), nullable=False),
        sa.Column("severity", _enum(*CRISIS_SEVERITY), nullable=False),
        sa.Column("crisis_score", sa.Float(), nullable=False),
        sa.Column("reason", _enum(*ALERT_REASON), nullable=False),
        sa.Column("emitted_at", sa.DateTime(), nullable=False),
        sa.Column("is_delivered", sa.Boolean(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_crisis_alerts_id", "crisis_alerts", ["id"])
    op.create_index("ix_crisis_alerts_crisis_id", "crisis_alerts", ["crisis_id"])
    op.create_index("ix_crisis_alerts_workspace_id", "crisis_alerts", ["workspace_id"])
    op.create_index("ix_crisis_alerts_emitted_at", "crisis_alerts", ["emitted_at"])
    op.create_index("ix_crisis_alerts_is_delivered", "crisis_alerts", ["is_delivered"])


def downgrade() -> None:
    op.drop_table("crisis_alerts")
    op.drop_table("crisis_timeline")
    op.drop_table("crises")
    op.drop_table("listening_mentions")
