from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime


@dataclass(frozen=True)
class FunnelRow:
    stage: str  # "page_view" | "slot_selection" | "booking_confirmed"
    event_type_id: str
    occurred_at: datetime | None = None
    date: str | None = None
    count: int = 1


@dataclass(frozen=True)
class BookingRow:
    event_type_id: str
    status: str
    created_at: datetime | None = None
    date: str | None = None
    count: int = 1


@dataclass
class MetricBucket:
    page_views: int = 0
    slot_selections: int = 0
    booking_confirmations: int = 0
    confirmed: int = 0
    canceled: int = 0
    rescheduled: int = 0


@dataclass
class EventTypeMetrics(MetricBucket):
    event_type_id: str = ""
    event_type_name: str = ""


@dataclass
class DailyMetrics(EventTypeMetrics):
    date: str = ""


@dataclass(frozen=True)
class FunnelSummary:
    summary: MetricBucket
    conversion_rate: float
    by_event_type: list[EventTypeMetrics]
    daily: list[DailyMetrics]


@dataclass(frozen=True)
class AnalyticsRange:
    start: datetime
    end_exclusive: datetime
    start_date: date
    end_date: date


@dataclass(frozen=True)
class TeamEventTypeMeta:
    team_event_type_id: str
    team_id: str
    team_name: str
    event_type_id: str
    event_type_name: str


@dataclass(frozen=True)
class RoundRobinRow:
    team_event_type_id: str
    member_user_id: str
    member_display_name: str


@dataclass(frozen=True)
class CollectiveRow:
    team_event_type_id: str
    booking_id: str


@dataclass
class RoundRobinAssignmentCount:
    meta: TeamEventTypeMeta
    member_user_id: str
    member_display_name: str
    assignments: int = 0


@dataclass
class CollectiveBookingCount:
    meta: TeamEventTypeMeta
    bookings: int = 0


@dataclass(frozen=True)
class TeamAnalytics:
    round_robin_assignments: list[RoundRobinAssignmentCount]
    collective_bookings: list[CollectiveBookingCount]


@dataclass(frozen=True)
class StatusRow:
    status: str
    count: int = 1
    email_type: str | None = None


@dataclass
class DeliveryCounts:
    total: int = 0
    pending: int = 0
    succeeded: int = 0
    failed: int = 0


@dataclass(frozen=True)
class OperatorHealth:
    webhook_deliveries: DeliveryCounts
    email_deliveries: DeliveryCounts
    email_by_type: dict[str, DeliveryCounts] = field(default_factory=dict)
