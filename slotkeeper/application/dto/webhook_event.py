from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class WebhookEventType(str, Enum):
    booking_created = "booking.created"
    booking_canceled = "booking.canceled"
    booking_rescheduled = "booking.rescheduled"


class WebhookBookingPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    booking_id: str = Field(alias="bookingId")
    event_type_id: str = Field(alias="eventTypeId")
    organizer_id: str = Field(alias="organizerId")
    invitee_email: str = Field(alias="inviteeEmail")
    invitee_name: str = Field(alias="inviteeName")
    starts_at: str = Field(alias="startsAt")
    ends_at: str = Field(alias="endsAt")
    metadata: dict[str, Any] | None = None


class WebhookEventDTO(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    type: WebhookEventType
    created_at: str = Field(alias="createdAt")
    payload: WebhookBookingPayload

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True)


def build_webhook_event(
    type: WebhookEventType | str,
    payload: dict[str, Any],
    id: str | None = None,
    created_at: str | None = None,
) -> WebhookEventDTO:
    return WebhookEventDTO.model_validate(
        {
            "id": id or str(uuid.uuid4()),
            "type": type,
            "createdAt": created_at or datetime.now(timezone.utc).isoformat(),
            "payload": payload,
        }
    )


def parse_webhook_event_types(value: Any) -> list[WebhookEventType]:
    """Keep known event types in first-seen order, dropping duplicates and junk."""
    if not isinstance(value, list):
        return []
    parsed: list[WebhookEventType] = []
    for entry in value:
        try:
            event_type = WebhookEventType(entry)
        except ValueError:
            continue
        if event_type not in parsed:
            parsed.append(event_type)
    return parsed
