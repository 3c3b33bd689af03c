from datetime import datetime

from pydantic import BaseModel

from slotkeeper.domain.entities.action_token import TokenState
from slotkeeper.domain.entities.booking import BookingStatus


class SlotSchema(BaseModel):
    starts_at: datetime
    ends_at: datetime


class AvailabilityResponseSchema(BaseModel):
    timezone: str
    slots: list[SlotSchema]


class BookingSchema(BaseModel):
    id: str
    event_type_id: str
    organizer_id: str
    invitee_name: str
    invitee_email: str
    starts_at: datetime
    ends_at: datetime
    status: BookingStatus
    rescheduled_from_booking_id: str | None = None
    canceled_at: datetime | None = None
    cancellation_reason: str | None = None


class EventTypeSummarySchema(BaseModel):
    id: str
    slug: str
    name: str
    duration_minutes: int
    organizer_timezone: str
    organizer_display_name: str = ""


class ActionLinksSchema(BaseModel):
    cancel_url: str
    reschedule_url: str


class CommitBookingResponseSchema(BaseModel):
    booking: BookingSchema
    action_links: ActionLinksSchema


class ActionLookupResponseSchema(BaseModel):
    action_type: str
    state: TokenState
    expires_at: datetime
    booking: BookingSchema
    event_type: EventTypeSummarySchema


class CancelResponseSchema(BaseModel):
    booking: BookingSchema
    replayed: bool = False


class RescheduleResponseSchema(BaseModel):
    old_booking: BookingSchema
    new_booking: BookingSchema
    action_links: ActionLinksSchema | None = None
    replayed: bool = False
