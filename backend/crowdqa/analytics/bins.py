"""Interval aggregation: partition a session's timeline into fixed-width bins.

Everything here is a pure function of an explicit snapshot (click events,
activation time, duration, attendee denominator). Nothing reads the clock or
the database, so the live dashboard and the final report share one code path
and repeated calls on an unchanged ledger return identical bins.
"""

import math
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Hashable, Iterable, List, Optional, Protocol, Set

from crowdqa.clock import to_utc
from crowdqa.exceptions import ValidationError


class ClickLike(Protocol):
    attendee_id: Hashable
    created_at: datetime


@dataclass(frozen=True)
class Bin:
    index: int
    start_minute: int
    end_minute: int
    click_count: int
    unique_attendees: int
    percentage: float

    @property
    def label(self) -> str:
        return f"{self.start_minute}-{self.end_minute}"


def elapsed_minutes(timestamp: datetime, started_at: datetime) -> int:
    """Whole minutes from activation to ``timestamp`` (floor, may be negative)."""
    delta = to_utc(timestamp) - to_utc(started_at)
    return math.floor(delta.total_seconds() / 60)


def bin_count(duration_minutes: int, bin_width_minutes: int) -> int:
    return math.ceil(duration_minutes / bin_width_minutes)


def _validate_width(bin_width_minutes: int) -> int:
    try:
        width = int(bin_width_minutes)
    except (TypeError, ValueError) as exc:
        raise ValidationError("Bin width must be an integer number of minutes") from exc
    if width < 1:
        raise ValidationError("Bin width must be at least 1 minute")
    return width


def compute_bins(
    clicks: Iterable[ClickLike],
    *,
    started_at: Optional[datetime],
    duration_minutes: int,
    total_attendees: int,
    bin_width_minutes: int,
) -> List[Bin]:
    width = _validate_width(bin_width_minutes)
    if duration_minutes < 1:
        raise ValidationError("Session duration must be at least 1 minute")

    n_bins = bin_count(duration_minutes, width)
    counts = [0] * n_bins
    attendees_by_bin: Dict[int, Set[Hashable]] = defaultdict(set)

    if started_at is not None:
        last_minute = duration_minutes - 1
        for click in clicks:
            # Late clicks (after nominal end, before formal end) stay in the final bin
            minute = max(0, min(elapsed_minutes(click.created_at, started_at), last_minute))
            index = minute // width
            counts[index] += 1
            attendees_by_bin[index].add(click.attendee_id)

    bins: List[Bin] = []
    for index in range(n_bins):
        start = index * width
        unique = len(attendees_by_bin.get(index, ()))
        percentage = (unique / total_attendees) * 100.0 if total_attendees > 0 else 0.0
        bins.append(
            Bin(
                index=index,
                start_minute=start,
                end_minute=min(start + width, duration_minutes),
                click_count=counts[index],
                unique_attendees=unique,
                percentage=percentage,
            )
        )
    return bins
