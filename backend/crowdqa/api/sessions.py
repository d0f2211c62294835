"""
Confusion session API routes.

Instructor flow: create -> start -> poll live view -> end -> summary.
Attendee flow: join by 4-digit code -> poll status -> click / note.
"""

from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from crowdqa.config import settings
from crowdqa.database import get_db
from crowdqa.exceptions import CrowdQAError
from crowdqa.schemas.session import (
    SessionCreate,
    SessionResponse,
    SessionListResponse,
    SessionStatusResponse,
    JoinResponse,
    ClickCreate,
    ClickResponse,
    NoteCreate,
    NoteRecordedResponse,
    EventResponse,
    ClickListResponse,
    NoteListResponse,
    AttendeeCountResponse,
    BinItem,
    IntervalListResponse,
    LiveViewResponse,
    SummaryResponse,
)
from crowdqa.services.attendee_service import join, count_attendees
from crowdqa.services.ledger_service import record_click, record_note, list_clicks, list_notes
from crowdqa.services.report_service import build_live_view, build_summary, get_session_bins
from crowdqa.services.session_service import (
    create_session,
    list_sessions,
    get_session,
    activate_session,
    end_session,
    get_status,
    is_active,
)

router = APIRouter(prefix="/api/v1/sessions", tags=["Sessions"])


def _http_error(exc: CrowdQAError) -> HTTPException:
    return HTTPException(
        status_code=exc.status_code,
        detail={"code": exc.code, "message": exc.message},
    )


@router.get("", response_model=SessionListResponse)
async def get_sessions(
    status_filter: Optional[str] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    per_page: int = Query(50, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    try:
        sessions, total = await list_sessions(db, status=status_filter, page=page, per_page=per_page)
    except CrowdQAError as e:
        raise _http_error(e)
    return SessionListResponse(
        sessions=[SessionResponse.model_validate(s) for s in sessions],
        total=total,
        page=page,
        per_page=per_page,
    )


@router.post("", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
async def create_new_session(
    body: SessionCreate,
    db: AsyncSession = Depends(get_db),
):
    try:
        session = await create_session(
            db,
            course_name=body.course_name,
            session_date=body.session_date,
            duration_minutes=body.duration_minutes,
            creator_name=body.creator_name,
        )
    except CrowdQAError as e:
        raise _http_error(e)
    return SessionResponse.model_validate(session)


@router.post("/join/{code}", response_model=JoinResponse, status_code=status.HTTP_201_CREATED)
async def join_session_route(
    code: str,
    db: AsyncSession = Depends(get_db),
):
    try:
        session, attendee = await join(db, code)
    except CrowdQAError as e:
        raise _http_error(e)
    return JoinResponse(
        session_id=session.id,
        session_code=session.session_code,
        attendee_id=attendee.id,
        course_name=session.course_name,
        duration_minutes=session.duration_minutes,
        status=session.status,
        is_active=session.is_active,
        started_at=session.started_at,
        ended_at=session.ended_at,
        poll_interval_seconds=settings.POLL_INTERVAL_SECONDS,
    )


@router.get("/{session_id}", response_model=SessionResponse)
async def get_session_route(
    session_id: int,
    db: AsyncSession = Depends(get_db),
):
    try:
        session = await get_session(db, session_id)
    except CrowdQAError as e:
        raise _http_error(e)
    return SessionResponse.model_validate(session)


@router.get("/{session_id}/status", response_model=SessionStatusResponse)
async def get_session_status(
    session_id: int,
    db: AsyncSession = Depends(get_db),
):
    try:
        session_status = await get_status(db, session_id)
        active = await is_active(db, session_id)
    except CrowdQAError as e:
        raise _http_error(e)
    return SessionStatusResponse(
        id=session_id,
        status=session_status,
        is_active=active,
        poll_interval_seconds=settings.POLL_INTERVAL_SECONDS,
    )


@router.put("/{session_id}/start", response_model=SessionResponse)
async def start_session_route(
    session_id: int,
    db: AsyncSession = Depends(get_db),
):
    try:
        session = await activate_session(db, session_id)
    except CrowdQAError as e:
        raise _http_error(e)
    return SessionResponse.model_validate(session)


@router.put("/{session_id}/end", response_model=SessionResponse)
async def end_session_route(
    session_id: int,
    db: AsyncSession = Depends(get_db),
):
    try:
        session = await end_session(db, session_id)
    except CrowdQAError as e:
        raise _http_error(e)
    return SessionResponse.model_validate(session)


@router.post("/{session_id}/click", response_model=ClickResponse, status_code=status.HTTP_201_CREATED)
async def record_click_route(
    session_id: int,
    body: ClickCreate,
    db: AsyncSession = Depends(get_db),
):
    try:
        count = await record_click(db, session_id, body.attendee_id)
    except CrowdQAError as e:
        raise _http_error(e)
    return ClickResponse(
        session_id=session_id,
        attendee_id=body.attendee_id,
        attendee_click_count=count,
    )


@router.post("/{session_id}/notes", response_model=NoteRecordedResponse, status_code=status.HTTP_201_CREATED)
async def record_note_route(
    session_id: int,
    body: NoteCreate,
    db: AsyncSession = Depends(get_db),
):
    try:
        event = await record_note(db, session_id, body.attendee_id, body.note)
    except CrowdQAError as e:
        raise _http_error(e)
    return NoteRecordedResponse(
        session_id=session_id,
        attendee_id=body.attendee_id,
        recorded=event is not None,
    )


@router.get("/{session_id}/clicks", response_model=ClickListResponse)
async def get_clicks(
    session_id: int,
    db: AsyncSession = Depends(get_db),
):
    try:
        await get_session(db, session_id)
        clicks = await list_clicks(db, session_id)
    except CrowdQAError as e:
        raise _http_error(e)
    return ClickListResponse(clicks=[EventResponse.model_validate(c) for c in clicks])


@router.get("/{session_id}/notes", response_model=NoteListResponse)
async def get_notes(
    session_id: int,
    db: AsyncSession = Depends(get_db),
):
    try:
        await get_session(db, session_id)
        notes = await list_notes(db, session_id)
    except CrowdQAError as e:
        raise _http_error(e)
    return NoteListResponse(notes=[EventResponse.model_validate(n) for n in notes])


@router.get("/{session_id}/attendees/count", response_model=AttendeeCountResponse)
async def get_attendee_count(
    session_id: int,
    db: AsyncSession = Depends(get_db),
):
    try:
        await get_session(db, session_id)
        attendees = await count_attendees(db, session_id)
    except CrowdQAError as e:
        raise _http_error(e)
    return AttendeeCountResponse(session_id=session_id, attendees=attendees)


@router.get("/{session_id}/intervals", response_model=IntervalListResponse)
async def get_intervals(
    session_id: int,
    bin_width: Optional[int] = Query(None, ge=1, le=180),
    db: AsyncSession = Depends(get_db),
):
    width = bin_width or settings.BIN_WIDTH_MINUTES
    try:
        bins = await get_session_bins(db, session_id, width)
    except CrowdQAError as e:
        raise _http_error(e)
    return IntervalListResponse(
        session_id=session_id,
        bin_width_minutes=width,
        bins=[BinItem(label=b.label, **asdict(b)) for b in bins],
    )


@router.get("/{session_id}/live", response_model=LiveViewResponse)
async def get_live_view(
    session_id: int,
    bin_width: Optional[int] = Query(None, ge=1, le=180),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await build_live_view(db, session_id, bin_width_minutes=bin_width)
    except CrowdQAError as e:
        raise _http_error(e)


@router.get("/{session_id}/summary", response_model=SummaryResponse)
async def get_summary(
    session_id: int,
    bin_width: Optional[int] = Query(None, ge=1, le=180),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await build_summary(db, session_id, bin_width_minutes=bin_width)
    except CrowdQAError as e:
        raise _http_error(e)
