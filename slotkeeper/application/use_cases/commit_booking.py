from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from slotkeeper.application.dto.booking_request import CommitBookingRequest
from slotkeeper.application.exceptions import (
    BookingConflictError,
    BookingNotFoundError,
    BookingUniqueConstraintError,
    BookingValidationError,
)
from slotkeeper.application.ports.booking_store import BookingDataAccessPort, BookingTransactionPort
from slotkeeper.application.use_cases.slot_recheck import find_requested_slot, load_schedule, recheck_window
from slotkeeper.application.utils.booking_metadata import serialize_booking_metadata
from slotkeeper.application.utils.timezones import parse_utc_instant
from slotkeeper.application.utils.tokens import issue_action_tokens
from slotkeeper.core.config import settings
from slotkeeper.domain.entities.action_token import IssuedActionToken
from slotkeeper.domain.entities.booking import Booking, EventType, NewBooking
from slotkeeper.domain.entities.booking_metadata import BookingMetadata


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommitBookingResult:
    event_type: EventType
    booking: Booking
    action_tokens: list[IssuedActionToken]


def commit_booking(
    data_access: BookingDataAccessPort,
    request: CommitBookingRequest,
    now: datetime | None = None,
    token_ttl_days: int | None = None,
) -> CommitBookingResult:
    """
    Durably claim one slot.

    The slot is recomputed from freshly read rows while the event type is
    locked; the storage unique constraint backs that up for the window between
    the recheck and the insert. Both outcomes surface as BookingConflictError.
    """
    event_type = data_access.get_public_event_type(request.username, request.event_slug)
    if event_type is None or not event_type.is_active:
        raise BookingNotFoundError("Event type not found.")

    starts_at = parse_utc_instant(request.starts_at)
    if starts_at is None:
        raise BookingValidationError("Invalid startsAt value.")

    ends_at = starts_at + timedelta(minutes=event_type.duration_minutes)
    range_start, range_end = recheck_window(starts_at, ends_at)
    issued_at = now or datetime.now(timezone.utc)
    ttl_days = token_ttl_days if token_ttl_days is not None else settings.ACTION_TOKEN_TTL_DAYS

    def _commit(tx: BookingTransactionPort) -> tuple[Booking, list[IssuedActionToken]]:
        tx.lock_event_type(event_type.id)

        rules, overrides, bookings = load_schedule(tx, event_type.user_id, range_start, range_end)
        requested = find_requested_slot(
            starts_at,
            event_type.duration_minutes,
            event_type.organizer_timezone,
            rules,
            overrides,
            bookings,
        )
        if requested is None:
            raise BookingConflictError("Selected slot is no longer available.")

        metadata = BookingMetadata(
            answers=dict(request.answers),
            timezone=request.timezone,
            buffer_before_minutes=requested.matching_slot.buffer_before_minutes,
            buffer_after_minutes=requested.matching_slot.buffer_after_minutes,
        )
        try:
            booking = tx.insert_booking(
                NewBooking(
                    event_type_id=event_type.id,
                    organizer_id=event_type.user_id,
                    invitee_name=request.invitee_name,
                    invitee_email=request.invitee_email,
                    starts_at=starts_at,
                    ends_at=ends_at,
                    metadata=serialize_booking_metadata(metadata),
                )
            )
        except BookingUniqueConstraintError as e:
            raise BookingConflictError("Selected slot is no longer available.") from e

        tokens = issue_action_tokens(issued_at, ttl_days)
        tx.insert_action_tokens(booking.id, tokens)
        return booking, tokens

    try:
        booking, tokens = data_access.with_event_type_transaction(event_type.id, _commit)
    except BookingConflictError:
        logger.info(
            "Booking conflict",
            extra={"event_type_id": event_type.id, "starts_at": starts_at.isoformat()},
        )
        raise

    logger.info(
        "Booking committed",
        extra={"booking_id": booking.id, "event_type_id": event_type.id, "starts_at": starts_at.isoformat()},
    )
    return CommitBookingResult(event_type=event_type, booking=booking, action_tokens=tokens)
