from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from slotkeeper.domain.entities.booking import Booking, EventType


class ActionType(str, Enum):
    cancel = "cancel"
    reschedule = "reschedule"


class TokenState(str, Enum):
    usable = "usable"
    idempotent_replay = "idempotent-replay"
    gone = "gone"


@dataclass(frozen=True)
class BookingActionToken:
    id: str
    booking_id: str
    action_type: ActionType
    token_hash: str
    expires_at: datetime
    consumed_at: datetime | None = None
    consumed_booking_id: str | None = None


@dataclass(frozen=True)
class IssuedActionToken:
    """Freshly minted token. raw_token is only ever available here."""

    action_type: ActionType
    raw_token: str
    token_hash: str
    expires_at: datetime


@dataclass(frozen=True)
class ActionTokenContext:
    """A token together with the booking and event type it acts on."""

    token: BookingActionToken
    booking: Booking
    event_type: EventType
