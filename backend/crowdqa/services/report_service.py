"""Live dashboard and post-session summary assembly.

Both views are built by ``_build_report_payload`` from one explicit snapshot of
the ledger, so the live refresh path and the terminal summary path can never
disagree on bins or thresholds.
"""

from dataclasses import asdict
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from crowdqa.analytics.bins import Bin, compute_bins, elapsed_minutes
from crowdqa.analytics.threshold import classify_bin, compute_threshold, flag_peaks
from crowdqa.config import settings
from crowdqa.models.session import ConfusionSession, SessionEvent, SessionStatus
from crowdqa.services.ledger_service import count_distinct_attendees, list_clicks, list_notes
from crowdqa.services.session_service import get_session


def _bin_payload(bin_: Bin) -> Dict[str, Any]:
    payload = asdict(bin_)
    payload["label"] = bin_.label
    return payload


def _annotate_notes(notes: Sequence[SessionEvent], session: ConfusionSession) -> List[Dict[str, Any]]:
    annotated = []
    for event in notes:
        minutes = elapsed_minutes(event.created_at, session.started_at) if session.started_at else 0
        annotated.append(
            {
                "id": event.id,
                "attendee_id": event.attendee_id,
                "note": event.note,
                "created_at": event.created_at,
                "minutes_elapsed": minutes,
            }
        )
    # Stable sort keeps ledger order within the same minute
    annotated.sort(key=lambda item: item["minutes_elapsed"])
    return annotated


def _build_report_payload(
    session: ConfusionSession,
    clicks: Sequence[SessionEvent],
    notes: Sequence[SessionEvent],
    total_attendees: int,
    *,
    bin_width_minutes: int,
    multiplier: Optional[float] = None,
) -> Dict[str, Any]:
    bins = compute_bins(
        clicks,
        started_at=session.started_at,
        duration_minutes=session.duration_minutes,
        total_attendees=total_attendees,
        bin_width_minutes=bin_width_minutes,
    )
    stats = compute_threshold(bins, multiplier)
    peaks = flag_peaks(bins, stats.threshold)
    total_clicks = len(clicks)

    return {
        "session_id": session.id,
        "session_status": session.status,
        "started_at": session.started_at,
        "ended_at": session.ended_at,
        "duration_minutes": session.duration_minutes,
        "bin_width_minutes": bin_width_minutes,
        "total_clicks": total_clicks,
        "unique_attendees": total_attendees,
        "clicking_attendees": len({click.attendee_id for click in clicks}),
        "bins": bins,
        "stats": stats,
        "peak_bins": peaks,
        "notes": _annotate_notes(notes, session),
    }


async def _load_report_payload(
    db: AsyncSession,
    session_id: int,
    bin_width_minutes: Optional[int],
    multiplier: Optional[float],
) -> Dict[str, Any]:
    session = await get_session(db, session_id)
    clicks = await list_clicks(db, session_id)
    notes = await list_notes(db, session_id)
    total_attendees = await count_distinct_attendees(db, session_id)
    width = settings.BIN_WIDTH_MINUTES if bin_width_minutes is None else bin_width_minutes
    return _build_report_payload(
        session,
        clicks,
        notes,
        total_attendees,
        bin_width_minutes=width,
        multiplier=multiplier,
    )


def _serialize(payload: Dict[str, Any]) -> Dict[str, Any]:
    stats = payload["stats"]
    result = dict(payload)
    result["bins"] = [_bin_payload(b) for b in payload["bins"]]
    result["peak_bins"] = [_bin_payload(b) for b in payload["peak_bins"]]
    result["stats"] = {
        "mean": stats.mean,
        "std_dev": stats.std_dev,
        "threshold": stats.threshold,
        "multiplier": stats.multiplier,
    }
    return result


async def get_session_bins(
    db: AsyncSession,
    session_id: int,
    bin_width_minutes: Optional[int] = None,
) -> List[Bin]:
    payload = await _load_report_payload(db, session_id, bin_width_minutes, None)
    return payload["bins"]


async def build_live_view(
    db: AsyncSession,
    session_id: int,
    *,
    bin_width_minutes: Optional[int] = None,
    multiplier: Optional[float] = None,
) -> Dict[str, Any]:
    payload = await _load_report_payload(db, session_id, bin_width_minutes, multiplier)
    return _serialize(payload)


async def build_summary(
    db: AsyncSession,
    session_id: int,
    *,
    bin_width_minutes: Optional[int] = None,
    multiplier: Optional[float] = None,
) -> Dict[str, Any]:
    """Post-session report; ``is_final`` is False until the session has ended."""
    payload = await _load_report_payload(db, session_id, bin_width_minutes, multiplier)
    bins: List[Bin] = payload["bins"]
    threshold = payload["stats"].threshold
    attendees = payload["unique_attendees"]

    summary = _serialize(payload)
    summary["is_final"] = payload["session_status"] == SessionStatus.ENDED.value
    summary["average_clicks_per_attendee"] = (
        payload["total_clicks"] / attendees if attendees > 0 else 0.0
    )
    summary["max_bin_percentage"] = max((b.percentage for b in bins), default=0.0)
    summary["intervals"] = [
        {**_bin_payload(b), "level": classify_bin(b, threshold).value} for b in bins
    ]
    summary["insights"] = [
        f"Peak at minutes {peak.label}: {peak.click_count} clicks ({peak.percentage:.1f}% of class)"
        for peak in payload["peak_bins"]
    ]
    return summary
