"""Confusion session, attendee and event ledger models."""

import enum
from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    Integer,
    String,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Text,
    text,
)
from sqlalchemy.orm import relationship

from crowdqa.database import Base


class SessionStatus(str, enum.Enum):
    NOT_STARTED = "NOT_STARTED"
    ACTIVE = "ACTIVE"
    ENDED = "ENDED"


class EventKind(str, enum.Enum):
    CLICK = "CLICK"
    NOTE = "NOTE"


LIVE_STATUSES = (SessionStatus.NOT_STARTED.value, SessionStatus.ACTIVE.value)


class ConfusionSession(Base):
    __tablename__ = "confusion_sessions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_code = Column(String(4), nullable=False, index=True)

    course_name = Column(String(120), nullable=False)
    session_date = Column(Date, nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    creator_name = Column(String(120), nullable=False)

    status = Column(String(20), default=SessionStatus.NOT_STARTED.value, nullable=False, index=True)
    started_at = Column(DateTime(timezone=True), nullable=True)
    ended_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    attendees = relationship("Attendee", back_populates="session", cascade="all, delete-orphan")
    events = relationship("SessionEvent", back_populates="session", cascade="all, delete-orphan")

    __table_args__ = (
        # Ended sessions release their code for reuse
        Index(
            "uq_confusion_sessions_live_code",
            "session_code",
            unique=True,
            postgresql_where=text("status <> 'ENDED'"),
            sqlite_where=text("status <> 'ENDED'"),
        ),
    )

    @property
    def is_active(self) -> bool:
        return self.status == SessionStatus.ACTIVE.value


class Attendee(Base):
    __tablename__ = "session_attendees"

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(Integer, ForeignKey("confusion_sessions.id", ondelete="CASCADE"), nullable=False, index=True)
    joined_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    click_count = Column(Integer, nullable=False, default=0, server_default=text("0"))

    session = relationship("ConfusionSession", back_populates="attendees")

    __table_args__ = (
        Index("ix_session_attendees_session_id_id", "session_id", "id"),
    )


class SessionEvent(Base):
    __tablename__ = "session_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(Integer, ForeignKey("confusion_sessions.id", ondelete="CASCADE"), nullable=False, index=True)
    attendee_id = Column(Integer, ForeignKey("session_attendees.id", ondelete="CASCADE"), nullable=False, index=True)
    kind = Column(String(10), nullable=False)
    note = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)

    session = relationship("ConfusionSession", back_populates="events")
    attendee = relationship("Attendee")

    __table_args__ = (
        Index("ix_session_events_session_kind_time", "session_id", "kind", "created_at", "id"),
    )
