"""
Rollups over funnel, booking, team and delivery rows.

Callers aggregate in storage where they can and pass pre-counted rows
(count > 1); raw one-row-per-event input works the same way.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone

from slotkeeper.application.exceptions import BookingValidationError
from slotkeeper.domain.entities.analytics import (
    AnalyticsRange,
    BookingRow,
    CollectiveBookingCount,
    CollectiveRow,
    DailyMetrics,
    DeliveryCounts,
    EventTypeMetrics,
    FunnelRow,
    FunnelSummary,
    MetricBucket,
    OperatorHealth,
    RoundRobinAssignmentCount,
    RoundRobinRow,
    StatusRow,
    TeamAnalytics,
    TeamEventTypeMeta,
)


ANALYTICS_RANGE_DAYS_DEFAULT = 30
ANALYTICS_RANGE_DAYS_MAX = 90
UNKNOWN_EVENT_NAME = "Unknown Event"

_FUNNEL_FIELDS = {
    "page_view": "page_views",
    "slot_selection": "slot_selections",
    "booking_confirmed": "booking_confirmations",
}
_BOOKING_FIELDS = {
    "confirmed": "confirmed",
    "canceled": "canceled",
    "rescheduled": "rescheduled",
}


def _parse_date(raw: str, label: str) -> date:
    try:
        parsed = date.fromisoformat(raw)
    except ValueError:
        parsed = None
    if parsed is None or parsed.isoformat() != raw:
        raise BookingValidationError(f"Invalid {label}. Use YYYY-MM-DD.")
    return parsed


def resolve_analytics_range(
    start_date: str | None = None,
    end_date: str | None = None,
    now: datetime | None = None,
) -> AnalyticsRange:
    today = (now or datetime.now(timezone.utc)).astimezone(timezone.utc).date()

    end = _parse_date(end_date, "endDate") if end_date else today
    try:
        start = (
            _parse_date(start_date, "startDate")
            if start_date
            else end - timedelta(days=ANALYTICS_RANGE_DAYS_DEFAULT - 1)
        )
        end_exclusive = end + timedelta(days=1)
    except OverflowError:
        raise BookingValidationError("Analytics range is out of bounds.")

    if end < start:
        raise BookingValidationError("endDate must be on or after startDate.")
    if (end - start).days + 1 > ANALYTICS_RANGE_DAYS_MAX:
        raise BookingValidationError(f"Analytics range cannot exceed {ANALYTICS_RANGE_DAYS_MAX} days.")

    return AnalyticsRange(
        start=datetime.combine(start, time(0), tzinfo=timezone.utc),
        end_exclusive=datetime.combine(end_exclusive, time(0), tzinfo=timezone.utc),
        start_date=start,
        end_date=end,
    )


def _bucket_date(explicit: str | None, reference: datetime | None) -> str:
    if explicit:
        return explicit
    if reference is None:
        raise ValueError("Analytics row missing date bucket.")
    return reference.astimezone(timezone.utc).date().isoformat()


def summarize_funnel_analytics(
    funnel_rows: list[FunnelRow],
    booking_rows: list[BookingRow],
    event_type_names: dict[str, str],
) -> FunnelSummary:
    summary = MetricBucket()
    by_event_type: dict[str, EventTypeMetrics] = {}
    by_day: dict[tuple[str, str], DailyMetrics] = {}

    def buckets(event_type_id: str, day: str) -> tuple[MetricBucket, ...]:
        name = event_type_names.get(event_type_id, UNKNOWN_EVENT_NAME)
        event_bucket = by_event_type.get(event_type_id)
        if event_bucket is None:
            event_bucket = EventTypeMetrics(event_type_id=event_type_id, event_type_name=name)
            by_event_type[event_type_id] = event_bucket
        day_bucket = by_day.get((day, event_type_id))
        if day_bucket is None:
            day_bucket = DailyMetrics(event_type_id=event_type_id, event_type_name=name, date=day)
            by_day[(day, event_type_id)] = day_bucket
        return summary, event_bucket, day_bucket

    for row in funnel_rows:
        # Anything that is not a page view or slot selection counts as a confirmation.
        field_name = _FUNNEL_FIELDS.get(row.stage, "booking_confirmations")
        for bucket in buckets(row.event_type_id, _bucket_date(row.date, row.occurred_at)):
            setattr(bucket, field_name, getattr(bucket, field_name) + row.count)

    for row in booking_rows:
        day = _bucket_date(row.date, row.created_at)
        field_name = _BOOKING_FIELDS.get(row.status)
        targets = buckets(row.event_type_id, day)
        if field_name is None:
            continue
        for bucket in targets:
            setattr(bucket, field_name, getattr(bucket, field_name) + row.count)

    conversion_rate = (
        round(summary.booking_confirmations / summary.page_views, 4) if summary.page_views > 0 else 0.0
    )

    return FunnelSummary(
        summary=summary,
        conversion_rate=conversion_rate,
        by_event_type=sorted(by_event_type.values(), key=lambda b: b.event_type_name),
        daily=sorted(by_day.values(), key=lambda b: (b.date, b.event_type_name)),
    )


def summarize_team_analytics(
    team_event_type_rows: list[TeamEventTypeMeta],
    round_robin_rows: list[RoundRobinRow],
    collective_rows: list[CollectiveRow],
) -> TeamAnalytics:
    meta_by_id = {row.team_event_type_id: row for row in team_event_type_rows}

    round_robin: dict[tuple[str, str], RoundRobinAssignmentCount] = {}
    for row in round_robin_rows:
        meta = meta_by_id.get(row.team_event_type_id)
        if meta is None:
            continue
        key = (row.team_event_type_id, row.member_user_id)
        entry = round_robin.get(key)
        if entry is None:
            entry = RoundRobinAssignmentCount(
                meta=meta,
                member_user_id=row.member_user_id,
                member_display_name=row.member_display_name,
            )
            round_robin[key] = entry
        entry.assignments += 1

    collective: dict[str, CollectiveBookingCount] = {}
    seen: set[tuple[str, str]] = set()
    for row in collective_rows:
        # One row per assigned member; count each booking once.
        booking_key = (row.team_event_type_id, row.booking_id)
        if booking_key in seen:
            continue
        seen.add(booking_key)

        meta = meta_by_id.get(row.team_event_type_id)
        if meta is None:
            continue
        entry = collective.setdefault(row.team_event_type_id, CollectiveBookingCount(meta=meta))
        entry.bookings += 1

    return TeamAnalytics(
        round_robin_assignments=sorted(
            round_robin.values(),
            key=lambda e: (e.meta.event_type_name, e.member_display_name),
        ),
        collective_bookings=sorted(collective.values(), key=lambda e: e.meta.event_type_name),
    )


def summarize_operator_health(
    webhook_rows: list[StatusRow],
    email_rows: list[StatusRow],
) -> OperatorHealth:
    webhooks = DeliveryCounts()
    for row in webhook_rows:
        webhooks.total += row.count
        if row.status == "pending":
            webhooks.pending += row.count
        elif row.status == "succeeded":
            webhooks.succeeded += row.count
        else:
            webhooks.failed += row.count

    emails = DeliveryCounts()
    by_type: dict[str, DeliveryCounts] = {}
    for row in email_rows:
        type_counts = by_type.setdefault(row.email_type or "unknown", DeliveryCounts())
        for counts in (emails, type_counts):
            counts.total += row.count
            if row.status == "succeeded":
                counts.succeeded += row.count
            else:
                counts.failed += row.count

    return OperatorHealth(
        webhook_deliveries=webhooks,
        email_deliveries=emails,
        email_by_type=dict(sorted(by_type.items())),
    )
