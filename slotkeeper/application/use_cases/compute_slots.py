"""
Slot computation engine.

Turns weekly availability rules, one-off overrides and existing confirmed
bookings into bookable slots for a single organizer. Pure and deterministic:
callers supply every row, nothing here touches storage.

Algorithm:
    1. Clamp days to [1, 30] and the increment to [5, 60]; bad range start -> []
    2. Walk organizer-local calendar days covering [range_start, range_end]
    3. For each rule on that weekday, step candidate starts through the window
    4. Drop candidates outside the range, under a blocking override, or
       conflicting (after buffers) with a confirmed booking
    5. Scan available overrides the same way using the max rule buffers
    6. Deduplicate by (starts_at, ends_at) and sort
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

from slotkeeper.application.utils.booking_metadata import read_booking_buffers
from slotkeeper.application.utils.intervals import expand, overlaps_any
from slotkeeper.application.utils.timezones import parse_utc_instant, safe_timezone
from slotkeeper.domain.entities.availability import (
    AvailabilityOverride,
    AvailabilityRule,
    AvailabilitySlot,
    ExistingBooking,
    SlotKey,
)


DEFAULT_SLOT_INCREMENT_MINUTES = 15
MIN_DAYS, MAX_DAYS = 1, 30
MIN_INCREMENT, MAX_INCREMENT = 5, 60

Interval = tuple[datetime, datetime]


def _clamp(value: int | float, low: int, high: int) -> int:
    return max(low, min(high, int(value)))


def _day_of_week(day: date) -> int:
    # 0=Sunday .. 6=Saturday
    return day.isoweekday() % 7


def _local_instant(day: date, minute_of_day: int, tz: ZoneInfo) -> datetime:
    """Wall-clock minute on a local day, as an aware UTC instant."""
    wall = datetime.combine(day, time(0)) + timedelta(minutes=minute_of_day)
    return wall.replace(tzinfo=tz).astimezone(timezone.utc)


def _max_buffers(rules: list[AvailabilityRule]) -> tuple[int, int]:
    before = 0
    after = 0
    for rule in rules:
        before = max(before, rule.buffer_before_minutes)
        after = max(after, rule.buffer_after_minutes)
    return before, after


def _buffered_bookings(bookings: list[ExistingBooking]) -> list[Interval]:
    buffered: list[Interval] = []
    for booking in bookings:
        if booking.status != "confirmed":
            continue
        starts_at = parse_utc_instant(booking.starts_at)
        ends_at = parse_utc_instant(booking.ends_at)
        if starts_at is None or ends_at is None:
            continue
        before, after = read_booking_buffers(booking.metadata)
        buffered.append(expand(starts_at, ends_at, before, after))
    return buffered


class _SlotCollector:
    def __init__(
        self,
        range_start: datetime,
        range_end: datetime,
        blocking: list[Interval],
        booked: list[Interval],
    ) -> None:
        self._range_start = range_start
        self._range_end = range_end
        self._blocking = blocking
        self._booked = booked
        self.slots: dict[SlotKey, AvailabilitySlot] = {}

    def scan_window(
        self,
        window_start: datetime,
        window_end: datetime,
        duration: timedelta,
        increment: timedelta,
        buffer_before: int,
        buffer_after: int,
    ) -> None:
        latest_start = window_end - duration
        if latest_start < window_start:
            return

        slot_start = window_start
        while slot_start <= latest_start:
            self._offer(slot_start, slot_start + duration, buffer_before, buffer_after)
            slot_start += increment

    def _offer(self, starts_at: datetime, ends_at: datetime, buffer_before: int, buffer_after: int) -> None:
        if starts_at < self._range_start or ends_at > self._range_end:
            return
        if overlaps_any(starts_at, ends_at, self._blocking):
            return
        buffered_start, buffered_end = expand(starts_at, ends_at, buffer_before, buffer_after)
        if overlaps_any(buffered_start, buffered_end, self._booked):
            return

        key = (starts_at, ends_at)
        if key not in self.slots:
            self.slots[key] = AvailabilitySlot(
                starts_at=starts_at,
                ends_at=ends_at,
                buffer_before_minutes=buffer_before,
                buffer_after_minutes=buffer_after,
            )


def compute_slots(
    organizer_timezone: str | None,
    range_start: str | datetime | None,
    days: int,
    duration_minutes: int,
    rules: list[AvailabilityRule],
    overrides: list[AvailabilityOverride],
    bookings: list[ExistingBooking],
    slot_increment_minutes: int = DEFAULT_SLOT_INCREMENT_MINUTES,
) -> list[AvailabilitySlot]:
    """
    Compute offerable slots for one organizer.

    Args:
        organizer_timezone: IANA zone of the organizer; unknown zones fall back to UTC
        range_start: ISO-8601 string or datetime; unparseable values yield []
        days: window length in days, clamped to [1, 30]
        duration_minutes: length of each slot
        rules: weekly recurring rules (day_of_week uses 0=Sunday)
        overrides: one-off open (is_available=True) or blocking windows
        bookings: existing bookings; only status "confirmed" constrains
        slot_increment_minutes: step between candidate starts, clamped to [5, 60]

    Returns:
        list[AvailabilitySlot] sorted by starts_at, unique by (starts_at, ends_at)
    """
    start = parse_utc_instant(range_start)
    if start is None or duration_minutes <= 0:
        return []

    tz = safe_timezone(organizer_timezone)
    days = _clamp(days, MIN_DAYS, MAX_DAYS)
    increment = timedelta(minutes=_clamp(slot_increment_minutes, MIN_INCREMENT, MAX_INCREMENT))
    duration = timedelta(minutes=duration_minutes)
    end = start + timedelta(days=days)

    blocking: list[Interval] = []
    available: list[Interval] = []
    for override in overrides:
        override_start = parse_utc_instant(override.start_at)
        override_end = parse_utc_instant(override.end_at)
        if override_start is None or override_end is None:
            continue
        (available if override.is_available else blocking).append((override_start, override_end))

    rules_by_day: dict[int, list[AvailabilityRule]] = {}
    for rule in rules:
        rules_by_day.setdefault(rule.day_of_week, []).append(rule)

    collector = _SlotCollector(start, end, blocking, _buffered_bookings(bookings))

    day = start.astimezone(tz).date()
    last_day = end.astimezone(tz).date()
    while day <= last_day:
        for rule in rules_by_day.get(_day_of_week(day), []):
            collector.scan_window(
                _local_instant(day, rule.start_minute, tz),
                _local_instant(day, rule.end_minute, tz),
                duration,
                increment,
                rule.buffer_before_minutes,
                rule.buffer_after_minutes,
            )
        day += timedelta(days=1)

    # Ad-hoc open windows inherit the strictest buffer policy across all rules.
    max_before, max_after = _max_buffers(rules)
    for window_start, window_end in available:
        collector.scan_window(window_start, window_end, duration, increment, max_before, max_after)

    return sorted(collector.slots.values(), key=lambda slot: slot.key)
