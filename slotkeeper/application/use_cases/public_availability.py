from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from slotkeeper.application.exceptions import BookingNotFoundError, BookingValidationError
from slotkeeper.application.ports.booking_store import BookingDataAccessPort
from slotkeeper.application.use_cases.compute_slots import compute_slots
from slotkeeper.application.utils.timezones import normalize_timezone_name, parse_utc_instant
from slotkeeper.core.config import settings
from slotkeeper.domain.entities.availability import AvailabilitySlot
from slotkeeper.domain.entities.booking import EventType


DEFAULT_AVAILABILITY_DAYS = 7


@dataclass(frozen=True)
class PublicAvailability:
    event_type: EventType
    timezone: str
    slots: list[AvailabilitySlot]


def get_public_availability(
    data_access: BookingDataAccessPort,
    username: str,
    slug: str,
    start: str | None = None,
    days: int = DEFAULT_AVAILABILITY_DAYS,
    viewer_timezone: str | None = None,
    now: datetime | None = None,
) -> PublicAvailability:
    """Slots shown on a public booking page. Advisory only; commit rechecks under lock."""
    event_type = data_access.get_public_event_type(username, slug)
    if event_type is None or not event_type.is_active:
        raise BookingNotFoundError("Event type not found.")

    range_start = parse_utc_instant(start) if start else (now or datetime.now(timezone.utc))
    if range_start is None:
        raise BookingValidationError("Invalid range start.")

    rules, overrides, bookings = data_access.read_schedule(
        event_type.user_id,
        range_start,
        range_start + timedelta(days=days),
    )
    slots = compute_slots(
        organizer_timezone=event_type.organizer_timezone,
        range_start=range_start,
        days=days,
        duration_minutes=event_type.duration_minutes,
        rules=rules,
        overrides=overrides,
        bookings=bookings,
        slot_increment_minutes=settings.DEFAULT_SLOT_INCREMENT_MINUTES,
    )
    return PublicAvailability(
        event_type=event_type,
        timezone=normalize_timezone_name(viewer_timezone),
        slots=slots,
    )
