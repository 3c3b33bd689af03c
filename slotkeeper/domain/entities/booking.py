from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class BookingStatus(str, Enum):
    confirmed = "confirmed"
    canceled = "canceled"
    rescheduled = "rescheduled"


@dataclass(frozen=True)
class EventType:
    id: str
    user_id: str
    slug: str
    name: str
    duration_minutes: int
    organizer_timezone: str = "UTC"
    is_active: bool = True
    organizer_display_name: str = ""
    organizer_email: str = ""
    location_type: str = "video"
    location_value: str | None = None
    questions: list[dict[str, Any]] = field(default_factory=list)


@dataclass(frozen=True)
class NewBooking:
    event_type_id: str
    organizer_id: str
    invitee_name: str
    invitee_email: str
    starts_at: datetime
    ends_at: datetime
    metadata: str | None = None
    rescheduled_from_booking_id: str | None = None


@dataclass(frozen=True)
class Booking:
    id: str
    event_type_id: str
    organizer_id: str
    invitee_name: str
    invitee_email: str
    starts_at: datetime
    ends_at: datetime
    status: BookingStatus = BookingStatus.confirmed
    metadata: str | None = None
    rescheduled_from_booking_id: str | None = None
    canceled_at: datetime | None = None
    canceled_by: str | None = None
    cancellation_reason: str | None = None
    created_at: datetime | None = None
