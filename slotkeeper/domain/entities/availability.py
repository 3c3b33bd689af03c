from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class AvailabilityRule:
    day_of_week: int  # 0=Sunday .. 6=Saturday, organizer-local
    start_minute: int
    end_minute: int
    buffer_before_minutes: int = 0
    buffer_after_minutes: int = 0


@dataclass(frozen=True)
class AvailabilityOverride:
    start_at: datetime
    end_at: datetime
    is_available: bool
    reason: str | None = None


@dataclass(frozen=True)
class ExistingBooking:
    starts_at: datetime
    ends_at: datetime
    status: str
    metadata: str | None = None  # raw JSON text as stored
    id: str | None = None


@dataclass(frozen=True)
class BusyWindow:
    """Busy interval pulled from a connected external calendar."""

    starts_at: datetime
    ends_at: datetime

    def as_booking(self) -> ExistingBooking:
        return ExistingBooking(starts_at=self.starts_at, ends_at=self.ends_at, status="confirmed")


SlotKey = tuple[datetime, datetime]


@dataclass(frozen=True)
class AvailabilitySlot:
    starts_at: datetime
    ends_at: datetime
    buffer_before_minutes: int = 0
    buffer_after_minutes: int = 0

    @property
    def key(self) -> SlotKey:
        return (self.starts_at, self.ends_at)
