"""Anonymous attendee identities issued on join-by-code."""

import logging
from typing import List, Tuple

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from crowdqa.clock import Clock, system_clock
from crowdqa.exceptions import NotFoundError, SessionNotJoinableError
from crowdqa.models.session import Attendee, ConfusionSession
from crowdqa.services.session_service import find_ended_by_code, resolve_by_code

logger = logging.getLogger("crowdqa.attendees")


async def join(
    db: AsyncSession,
    session_code: str,
    *,
    clock: Clock = system_clock,
) -> Tuple[ConfusionSession, Attendee]:
    """Issue a fresh attendee id for the session holding ``session_code``.

    Not-started sessions can be joined; the ledger refuses their events until
    activation. Codes that only match ended sessions are reported as not
    joinable rather than unknown.
    """
    try:
        session = await resolve_by_code(db, session_code)
    except NotFoundError:
        if await find_ended_by_code(db, session_code):
            raise SessionNotJoinableError("Session has ended and can no longer be joined")
        raise

    attendee = Attendee(
        session_id=session.id,
        joined_at=clock.now(),
        click_count=0,
    )
    db.add(attendee)
    await db.flush()
    await db.refresh(attendee)
    logger.info(f"Attendee {attendee.id} joined session {session.id} ({session.status})")
    return session, attendee


async def count_attendees(db: AsyncSession, session_id: int) -> int:
    result = await db.execute(
        select(func.count(Attendee.id)).where(Attendee.session_id == session_id)
    )
    return int(result.scalar() or 0)


async def list_attendees(db: AsyncSession, session_id: int) -> List[Attendee]:
    result = await db.execute(
        select(Attendee)
        .where(Attendee.session_id == session_id)
        .order_by(Attendee.joined_at.asc(), Attendee.id.asc())
    )
    return list(result.scalars().all())
