"""Event ledger: append-only click and note events with per-attendee counters."""

import logging
from typing import List, Optional

from sqlalchemy import select, func, update
from sqlalchemy.ext.asyncio import AsyncSession

from crowdqa.clock import Clock, system_clock
from crowdqa.config import settings
from crowdqa.exceptions import InvalidStateError, NotFoundError, ValidationError
from crowdqa.models.session import (
    Attendee,
    ConfusionSession,
    EventKind,
    SessionEvent,
    SessionStatus,
)
from crowdqa.services.attendee_service import count_attendees

logger = logging.getLogger("crowdqa.ledger")


async def _lock_active_session(db: AsyncSession, session_id: int) -> ConfusionSession:
    # Shared row lock: concurrent writers proceed, end_session waits for them
    result = await db.execute(
        select(ConfusionSession)
        .where(ConfusionSession.id == session_id)
        .with_for_update(read=True)
        .execution_options(populate_existing=True)
    )
    session = result.scalar_one_or_none()
    if not session:
        raise NotFoundError("Session not found")
    if session.status != SessionStatus.ACTIVE.value:
        raise InvalidStateError("Session is not active")
    return session


async def _get_attendee(db: AsyncSession, session_id: int, attendee_id: int) -> Attendee:
    result = await db.execute(
        select(Attendee).where(
            Attendee.id == attendee_id,
            Attendee.session_id == session_id,
        )
    )
    attendee = result.scalar_one_or_none()
    if not attendee:
        raise NotFoundError("Attendee not found in this session")
    return attendee


async def record_click(
    db: AsyncSession,
    session_id: int,
    attendee_id: int,
    *,
    clock: Clock = system_clock,
) -> int:
    """Append a click and return the attendee's cumulative click count."""
    await _lock_active_session(db, session_id)

    bumped = await db.execute(
        update(Attendee)
        .where(Attendee.id == attendee_id, Attendee.session_id == session_id)
        .values(click_count=Attendee.click_count + 1)
        .execution_options(synchronize_session=False)
    )
    if bumped.rowcount == 0:
        raise NotFoundError("Attendee not found in this session")

    db.add(
        SessionEvent(
            session_id=session_id,
            attendee_id=attendee_id,
            kind=EventKind.CLICK.value,
            created_at=clock.now(),
        )
    )
    await db.flush()

    count_result = await db.execute(
        select(Attendee.click_count).where(Attendee.id == attendee_id)
    )
    return int(count_result.scalar_one())


async def record_note(
    db: AsyncSession,
    session_id: int,
    attendee_id: int,
    text: Optional[str],
    *,
    clock: Clock = system_clock,
) -> Optional[SessionEvent]:
    """Append a note; blank text is ignored and returns ``None``."""
    await _lock_active_session(db, session_id)
    await _get_attendee(db, session_id, attendee_id)

    note = (text or "").strip()
    if not note:
        logger.debug(f"Ignoring blank note from attendee {attendee_id} in session {session_id}")
        return None
    if len(note) > settings.NOTE_MAX_LENGTH:
        raise ValidationError(f"Note must be at most {settings.NOTE_MAX_LENGTH} characters")

    event = SessionEvent(
        session_id=session_id,
        attendee_id=attendee_id,
        kind=EventKind.NOTE.value,
        note=note,
        created_at=clock.now(),
    )
    db.add(event)
    await db.flush()
    await db.refresh(event)
    return event


async def _list_events(db: AsyncSession, session_id: int, kind: EventKind) -> List[SessionEvent]:
    result = await db.execute(
        select(SessionEvent)
        .where(SessionEvent.session_id == session_id, SessionEvent.kind == kind.value)
        .order_by(SessionEvent.created_at.asc(), SessionEvent.id.asc())
    )
    return list(result.scalars().all())


async def list_clicks(db: AsyncSession, session_id: int) -> List[SessionEvent]:
    return await _list_events(db, session_id, EventKind.CLICK)


async def list_notes(db: AsyncSession, session_id: int) -> List[SessionEvent]:
    return await _list_events(db, session_id, EventKind.NOTE)


async def count_clicks(db: AsyncSession, session_id: int) -> int:
    result = await db.execute(
        select(func.count(SessionEvent.id)).where(
            SessionEvent.session_id == session_id,
            SessionEvent.kind == EventKind.CLICK.value,
        )
    )
    return int(result.scalar() or 0)


async def count_distinct_attendees(db: AsyncSession, session_id: int) -> int:
    """Everyone who joined, clicked or not; the percentage denominator."""
    return await count_attendees(db, session_id)
