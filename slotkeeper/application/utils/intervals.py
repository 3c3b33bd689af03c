from __future__ import annotations

from datetime import datetime, timedelta


def overlaps(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    """Half-open interval overlap; touching intervals do not overlap."""
    return a_start < b_end and b_start < a_end


def expand(
    start: datetime,
    end: datetime,
    before_minutes: int = 0,
    after_minutes: int = 0,
) -> tuple[datetime, datetime]:
    return start - timedelta(minutes=before_minutes), end + timedelta(minutes=after_minutes)


def overlaps_any(start: datetime, end: datetime, intervals: list[tuple[datetime, datetime]]) -> bool:
    return any(overlaps(start, end, other_start, other_end) for other_start, other_end in intervals)
