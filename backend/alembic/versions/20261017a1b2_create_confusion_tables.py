"""Create confusion session, attendee and event tables.

Revision ID: 20261017a1b2
Revises:
Create Date: 2026-10-17 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "20261017a1b2"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "confusion_sessions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("session_code", sa.String(length=4), nullable=False),
        sa.Column("course_name", sa.String(length=120), nullable=False),
        sa.Column("session_date", sa.Date(), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=False),
        sa.Column("creator_name", sa.String(length=120), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("ended_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_confusion_sessions_session_code", "confusion_sessions", ["session_code"])
    op.create_index("ix_confusion_sessions_status", "confusion_sessions", ["status"])
    op.create_index(
        "uq_confusion_sessions_live_code",
        "confusion_sessions",
        ["session_code"],
        unique=True,
        postgresql_where=sa.text("status <> 'ENDED'"),
        sqlite_where=sa.text("status <> 'ENDED'"),
    )

    op.create_table(
        "session_attendees",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("session_id", sa.Integer(), sa.ForeignKey("confusion_sessions.id", ondelete="CASCADE"), nullable=False),
        sa.Column("joined_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("click_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
    )
    op.create_index("ix_session_attendees_session_id", "session_attendees", ["session_id"])
    op.create_index("ix_session_attendees_session_id_id", "session_attendees", ["session_id", "id"])

    op.create_table(
        "session_events",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("session_id", sa.Integer(), sa.ForeignKey("confusion_sessions.id", ondelete="CASCADE"), nullable=False),
        sa.Column("attendee_id", sa.Integer(), sa.ForeignKey("session_attendees.id", ondelete="CASCADE"), nullable=False),
        sa.Column("kind", sa.String(length=10), nullable=False),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_session_events_session_id", "session_events", ["session_id"])
    op.create_index("ix_session_events_attendee_id", "session_events", ["attendee_id"])
    op.create_index(
        "ix_session_events_session_kind_time",
        "session_events",
        ["session_id", "kind", "created_at", "id"],
    )


def downgrade() -> None:
    op.drop_index("ix_session_events_session_kind_time", table_name="session_events")
    op.drop_index("ix_session_events_attendee_id", table_name="session_events")
    op.drop_index("ix_session_events_session_id", table_name="session_events")
    op.drop_table("session_events")
    op.drop_index("ix_session_attendees_session_id_id", table_name="session_attendees")
    op.drop_index("ix_session_attendees_session_id", table_name="session_attendees")
    op.drop_table("session_attendees")
    op.drop_index("uq_confusion_sessions_live_code", table_name="confusion_sessions")
    op.drop_index("ix_confusion_sessions_status", table_name="confusion_sessions")
    op.drop_index("ix_confusion_sessions_session_code", table_name="confusion_sessions")
    op.drop_table("confusion_sessions")
