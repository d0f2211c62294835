"""Pydantic schemas for confusion sessions, ledger events and reports."""

from datetime import date, datetime
from typing import Optional, List

from pydantic import BaseModel, Field, ConfigDict

from crowdqa.config import settings


class SessionCreate(BaseModel):
    course_name: str
    session_date: date
    duration_minutes: int
    creator_name: str


class SessionResponse(BaseModel):
    id: int
    session_code: str
    course_name: str
    session_date: date
    duration_minutes: int
    creator_name: str
    status: str
    is_active: bool
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    created_at: datetime
    poll_interval_seconds: int = Field(default_factory=lambda: settings.POLL_INTERVAL_SECONDS)

    model_config = ConfigDict(from_attributes=True)


class SessionListResponse(BaseModel):
    sessions: List[SessionResponse]
    total: int
    page: int
    per_page: int


class SessionStatusResponse(BaseModel):
    id: int
    status: str
    is_active: bool
    poll_interval_seconds: int


class JoinResponse(BaseModel):
    session_id: int
    session_code: str
    attendee_id: int
    course_name: str
    duration_minutes: int
    status: str
    is_active: bool
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    poll_interval_seconds: int


class ClickCreate(BaseModel):
    attendee_id: int


class ClickResponse(BaseModel):
    session_id: int
    attendee_id: int
    attendee_click_count: int


class NoteCreate(BaseModel):
    attendee_id: int
    note: str


class NoteRecordedResponse(BaseModel):
    session_id: int
    attendee_id: int
    recorded: bool


class EventResponse(BaseModel):
    id: int
    attendee_id: int
    kind: str
    note: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ClickListResponse(BaseModel):
    clicks: List[EventResponse]


class NoteListResponse(BaseModel):
    notes: List[EventResponse]


class AttendeeCountResponse(BaseModel):
    session_id: int
    attendees: int


class BinItem(BaseModel):
    index: int
    start_minute: int
    end_minute: int
    label: str
    click_count: int
    unique_attendees: int
    percentage: float


class IntervalItem(BinItem):
    level: str


class IntervalListResponse(BaseModel):
    session_id: int
    bin_width_minutes: int
    bins: List[BinItem]


class ThresholdStatsItem(BaseModel):
    mean: float
    std_dev: float
    threshold: float
    multiplier: float


class AnnotatedNote(BaseModel):
    id: int
    attendee_id: int
    note: str
    created_at: datetime
    minutes_elapsed: int


class LiveViewResponse(BaseModel):
    session_id: int
    session_status: str
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    duration_minutes: int
    bin_width_minutes: int
    total_clicks: int
    unique_attendees: int
    clicking_attendees: int
    bins: List[BinItem]
    stats: ThresholdStatsItem
    peak_bins: List[BinItem]
    notes: List[AnnotatedNote]


class SummaryResponse(LiveViewResponse):
    is_final: bool
    average_clicks_per_attendee: float
    max_bin_percentage: float
    intervals: List[IntervalItem]
    insights: List[str]
