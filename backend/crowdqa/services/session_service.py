"""Session registry: creation, lifecycle transitions and code resolution."""

import logging
import re
import secrets
from datetime import date
from typing import Optional, List, Tuple

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from crowdqa.clock import Clock, system_clock
from crowdqa.config import settings
from crowdqa.exceptions import (
    CodeUnavailableError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from crowdqa.models.session import ConfusionSession, SessionStatus, LIVE_STATUSES

logger = logging.getLogger("crowdqa.sessions")

SESSION_CODE_LENGTH = 4
LABEL_MAX_LENGTH = 120
_SESSION_CODE_RE = re.compile(rf"^\d{{{SESSION_CODE_LENGTH}}}$")


def _generate_session_code() -> str:
    return f"{secrets.randbelow(10 ** SESSION_CODE_LENGTH):0{SESSION_CODE_LENGTH}d}"


def normalize_session_code(code: str) -> str:
    normalized = str(code or "").strip()
    if not _SESSION_CODE_RE.match(normalized):
        raise ValidationError("Session code must be exactly 4 digits")
    return normalized


def _normalize_label(value: str, field: str) -> str:
    normalized = str(value or "").strip()
    if not normalized:
        raise ValidationError(f"{field} must not be blank")
    if len(normalized) > LABEL_MAX_LENGTH:
        raise ValidationError(f"{field} must be at most {LABEL_MAX_LENGTH} characters")
    return normalized


def _normalize_duration(duration_minutes: int) -> int:
    # bool is an int subclass; floats only when they carry no fraction
    if isinstance(duration_minutes, bool):
        raise ValidationError("Duration must be an integer number of minutes")
    if isinstance(duration_minutes, float) and duration_minutes.is_integer():
        duration = int(duration_minutes)
    elif isinstance(duration_minutes, int):
        duration = duration_minutes
    else:
        raise ValidationError("Duration must be an integer number of minutes")
    low = settings.SESSION_MIN_DURATION_MINUTES
    high = settings.SESSION_MAX_DURATION_MINUTES
    if duration < low or duration > high:
        raise ValidationError(f"Duration must be between {low} and {high} minutes")
    return duration


async def _code_in_use(db: AsyncSession, code: str) -> bool:
    result = await db.execute(
        select(func.count(ConfusionSession.id)).where(
            ConfusionSession.session_code == code,
            ConfusionSession.status.in_(LIVE_STATUSES),
        )
    )
    return (result.scalar() or 0) > 0


async def create_session(
    db: AsyncSession,
    course_name: str,
    session_date: date,
    duration_minutes: int,
    creator_name: str,
    *,
    clock: Clock = system_clock,
) -> ConfusionSession:
    course_name = _normalize_label(course_name, "Course name")
    creator_name = _normalize_label(creator_name, "Creator name")
    duration = _normalize_duration(duration_minutes)

    for attempt in range(max(settings.SESSION_CODE_MAX_ATTEMPTS, 1)):
        code = _generate_session_code()
        if await _code_in_use(db, code):
            continue

        now = clock.now()
        session = ConfusionSession(
            session_code=code,
            course_name=course_name,
            session_date=session_date,
            duration_minutes=duration,
            creator_name=creator_name,
            status=SessionStatus.NOT_STARTED.value,
            created_at=now,
            updated_at=now,
        )
        # Savepoint so a lost race on the partial unique index only discards this row
        try:
            async with db.begin_nested():
                db.add(session)
                await db.flush()
        except IntegrityError:
            logger.warning(f"Session code {code} taken concurrently (attempt {attempt + 1}), retrying")
            continue

        await db.refresh(session)
        logger.info(f"Session {session.id} created for '{course_name}' with code {code}")
        return session

    raise CodeUnavailableError("No free session code available, please try again shortly")


async def get_session(db: AsyncSession, session_id: int) -> ConfusionSession:
    session = await db.get(ConfusionSession, session_id)
    if not session:
        raise NotFoundError("Session not found")
    return session


async def list_sessions(
    db: AsyncSession,
    status: Optional[str] = None,
    page: int = 1,
    per_page: int = 50,
) -> Tuple[List[ConfusionSession], int]:
    query = select(ConfusionSession)
    count_query = select(func.count(ConfusionSession.id))

    if status:
        try:
            status_enum = SessionStatus(status)
        except ValueError as exc:
            raise ValidationError(f"Unknown session status: {status}") from exc
        query = query.where(ConfusionSession.status == status_enum.value)
        count_query = count_query.where(ConfusionSession.status == status_enum.value)

    total_result = await db.execute(count_query)
    total = total_result.scalar() or 0

    query = (
        query.order_by(ConfusionSession.created_at.desc(), ConfusionSession.id.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
    )
    result = await db.execute(query)
    return list(result.scalars().all()), total


async def _get_session_for_update(db: AsyncSession, session_id: int) -> ConfusionSession:
    result = await db.execute(
        select(ConfusionSession)
        .where(ConfusionSession.id == session_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    session = result.scalar_one_or_none()
    if not session:
        raise NotFoundError("Session not found")
    return session


async def activate_session(
    db: AsyncSession,
    session_id: int,
    *,
    clock: Clock = system_clock,
) -> ConfusionSession:
    session = await _get_session_for_update(db, session_id)
    if session.status != SessionStatus.NOT_STARTED.value:
        raise InvalidStateError(f"Session cannot be started from state {session.status}")

    now = clock.now()
    session.status = SessionStatus.ACTIVE.value
    session.started_at = now
    session.updated_at = now
    await db.flush()
    await db.refresh(session)
    logger.info(f"Session {session_id} activated")
    return session


async def end_session(
    db: AsyncSession,
    session_id: int,
    *,
    clock: Clock = system_clock,
) -> ConfusionSession:
    session = await _get_session_for_update(db, session_id)
    if session.status != SessionStatus.ACTIVE.value:
        raise InvalidStateError(f"Session cannot be ended from state {session.status}")

    now = clock.now()
    session.status = SessionStatus.ENDED.value
    session.ended_at = now
    session.updated_at = now
    await db.flush()
    await db.refresh(session)
    logger.info(f"Session {session_id} ended")
    return session


async def resolve_by_code(db: AsyncSession, code: str) -> ConfusionSession:
    """Find the session currently holding ``code`` (not-started or active)."""
    normalized = normalize_session_code(code)
    result = await db.execute(
        select(ConfusionSession).where(
            ConfusionSession.session_code == normalized,
            ConfusionSession.status.in_(LIVE_STATUSES),
        )
    )
    session = result.scalar_one_or_none()
    if not session:
        raise NotFoundError("Invalid or expired session code")
    return session


async def find_ended_by_code(db: AsyncSession, code: str) -> Optional[ConfusionSession]:
    result = await db.execute(
        select(ConfusionSession)
        .where(
            ConfusionSession.session_code == normalize_session_code(code),
            ConfusionSession.status == SessionStatus.ENDED.value,
        )
        .order_by(ConfusionSession.ended_at.desc(), ConfusionSession.id.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def is_active(db: AsyncSession, session_id: int) -> bool:
    result = await db.execute(
        select(ConfusionSession.status).where(ConfusionSession.id == session_id)
    )
    return result.scalar_one_or_none() == SessionStatus.ACTIVE.value


async def get_status(db: AsyncSession, session_id: int) -> str:
    result = await db.execute(
        select(ConfusionSession.status).where(ConfusionSession.id == session_id)
    )
    status = result.scalar_one_or_none()
    if status is None:
        raise NotFoundError("Session not found")
    return status
