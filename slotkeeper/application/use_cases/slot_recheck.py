from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from slotkeeper.application.ports.booking_store import BookingTransactionPort
from slotkeeper.application.use_cases.compute_slots import compute_slots
from slotkeeper.domain.entities.availability import (
    AvailabilityOverride,
    AvailabilityRule,
    AvailabilitySlot,
    ExistingBooking,
)

# Narrow window recomputed around a requested start: one day either side.
RECHECK_PADDING = timedelta(days=1)
RECHECK_DAYS = 2


@dataclass(frozen=True)
class RequestedSlot:
    starts_at: datetime
    ends_at: datetime
    range_start: datetime
    range_end: datetime
    matching_slot: AvailabilitySlot


def recheck_window(starts_at: datetime, ends_at: datetime) -> tuple[datetime, datetime]:
    return starts_at - RECHECK_PADDING, ends_at + RECHECK_PADDING


def load_schedule(
    tx: BookingTransactionPort,
    user_id: str,
    range_start: datetime,
    range_end: datetime,
) -> tuple[list[AvailabilityRule], list[AvailabilityOverride], list[ExistingBooking]]:
    """Fresh rules, overrides and busy time read inside the caller's transaction."""
    rules = tx.list_rules(user_id)
    overrides = tx.list_overrides(user_id, range_start, range_end)
    bookings = list(tx.list_confirmed_bookings(user_id, range_start, range_end))
    bookings.extend(window.as_booking() for window in tx.list_external_busy_windows(user_id, range_start, range_end))
    return rules, overrides, bookings


def find_requested_slot(
    starts_at: datetime,
    duration_minutes: int,
    organizer_timezone: str,
    rules: list[AvailabilityRule],
    overrides: list[AvailabilityOverride],
    bookings: list[ExistingBooking],
) -> RequestedSlot | None:
    """Recompute slots around starts_at and return the exact match, if still offered."""
    ends_at = starts_at + timedelta(minutes=duration_minutes)
    range_start, range_end = recheck_window(starts_at, ends_at)

    slots = compute_slots(
        organizer_timezone=organizer_timezone,
        range_start=range_start,
        days=RECHECK_DAYS,
        duration_minutes=duration_minutes,
        rules=rules,
        overrides=overrides,
        bookings=bookings,
    )
    matching = next((slot for slot in slots if slot.key == (starts_at, ends_at)), None)
    if matching is None:
        return None

    return RequestedSlot(
        starts_at=starts_at,
        ends_at=ends_at,
        range_start=range_start,
        range_end=range_end,
        matching_slot=matching,
    )
