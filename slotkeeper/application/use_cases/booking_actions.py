"""
Cancel / reschedule links.

Each booking carries one cancel and one reschedule token. A token is usable
while the booking is confirmed and the token is neither expired nor consumed.
Retrying a completed action is an idempotent replay and returns the original
result instead of an error.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone

from slotkeeper.application.dto.booking_request import RescheduleBookingRequest
from slotkeeper.application.exceptions import (
    BookingConflictError,
    BookingGoneError,
    BookingNotFoundError,
    BookingUniqueConstraintError,
    BookingValidationError,
)
from slotkeeper.application.ports.booking_store import BookingActionTransactionPort, BookingDataAccessPort
from slotkeeper.application.use_cases.slot_recheck import (
    RequestedSlot,
    find_requested_slot,
    load_schedule,
    recheck_window,
)
from slotkeeper.application.utils.booking_metadata import parse_booking_metadata, serialize_booking_metadata
from slotkeeper.application.utils.timezones import normalize_timezone_name, parse_utc_instant
from slotkeeper.application.utils.tokens import hash_token, issue_action_tokens
from slotkeeper.core.config import settings
from slotkeeper.domain.entities.action_token import (
    ActionTokenContext,
    ActionType,
    BookingActionToken,
    IssuedActionToken,
    TokenState,
)
from slotkeeper.domain.entities.availability import (
    AvailabilityOverride,
    AvailabilityRule,
    ExistingBooking,
)
from slotkeeper.domain.entities.booking import Booking, BookingStatus, EventType, NewBooking


logger = logging.getLogger(__name__)

_TERMINAL_STATUS = {
    ActionType.cancel: BookingStatus.canceled,
    ActionType.reschedule: BookingStatus.rescheduled,
}


@dataclass(frozen=True)
class ActionTokenLookup:
    token: BookingActionToken
    booking: Booking
    event_type: EventType
    state: TokenState


@dataclass(frozen=True)
class CancelBookingResult:
    booking: Booking
    event_type: EventType
    replayed: bool = False


@dataclass(frozen=True)
class RescheduleBookingResult:
    old_booking: Booking
    new_booking: Booking
    event_type: EventType
    action_tokens: list[IssuedActionToken]
    replayed: bool = False


def evaluate_action_token(
    action_type: ActionType | str,
    booking_status: BookingStatus | str,
    expires_at: datetime,
    consumed_at: datetime | None,
    now: datetime,
) -> TokenState:
    """
    Pure transition function for an action link. Order matters:

        1. consumed and booking already in this action's terminal state -> replay
        2. expired -> gone
        3. consumed for something else -> gone
        4. booking confirmed -> usable
        5. booking in terminal state without a recorded consumption -> replay
        6. anything else -> gone
    """
    terminal = _TERMINAL_STATUS[ActionType(action_type)]
    replayable = booking_status == terminal.value

    if consumed_at is not None and replayable:
        return TokenState.idempotent_replay
    if now >= expires_at:
        return TokenState.gone
    if consumed_at is not None:
        return TokenState.gone
    if booking_status == BookingStatus.confirmed.value:
        return TokenState.usable
    if replayable:
        return TokenState.idempotent_replay
    return TokenState.gone


def _evaluate_context(context: ActionTokenContext, now: datetime) -> TokenState:
    return evaluate_action_token(
        action_type=context.token.action_type,
        booking_status=context.booking.status,
        expires_at=context.token.expires_at,
        consumed_at=context.token.consumed_at,
        now=now,
    )


def resolve_requested_reschedule_slot(
    requested_starts_at: str | datetime,
    duration_minutes: int,
    organizer_timezone: str,
    rules: list[AvailabilityRule],
    overrides: list[AvailabilityOverride],
    bookings: list[ExistingBooking],
    exclude_booking_id: str | None = None,
) -> RequestedSlot | None:
    """Find the requested slot, ignoring the booking being replaced. None if unavailable or unparseable."""
    starts_at = parse_utc_instant(requested_starts_at)
    if starts_at is None:
        return None

    if exclude_booking_id is not None:
        bookings = [booking for booking in bookings if booking.id != exclude_booking_id]

    return find_requested_slot(starts_at, duration_minutes, organizer_timezone, rules, overrides, bookings)


def lookup_action_token(
    data_access: BookingDataAccessPort,
    raw_token: str,
    now: datetime | None = None,
) -> ActionTokenLookup:
    context = data_access.find_action_token(hash_token(raw_token))
    if context is None:
        raise BookingNotFoundError("Action link not found.")

    state = _evaluate_context(context, now or datetime.now(timezone.utc))
    return ActionTokenLookup(
        token=context.token,
        booking=context.booking,
        event_type=context.event_type,
        state=state,
    )


def _lock_context(
    tx: BookingActionTransactionPort,
    token_hash: str,
    action_type: ActionType,
) -> ActionTokenContext:
    context = tx.lock_action_token(token_hash)
    if context is None or context.token.action_type != action_type:
        raise BookingNotFoundError("Action link not found.")
    return context


def cancel_booking(
    data_access: BookingDataAccessPort,
    raw_token: str,
    reason: str | None = None,
    now: datetime | None = None,
    canceled_by: str = "invitee",
) -> CancelBookingResult:
    token_hash = hash_token(raw_token)
    acted_at = now or datetime.now(timezone.utc)

    def _cancel(tx: BookingActionTransactionPort) -> CancelBookingResult:
        context = _lock_context(tx, token_hash, ActionType.cancel)
        # Re-evaluated under the lock: a concurrent reschedule may have won.
        state = _evaluate_context(context, acted_at)

        if state is TokenState.gone:
            raise BookingGoneError("This cancel link is no longer valid.")
        if state is TokenState.idempotent_replay:
            return CancelBookingResult(booking=context.booking, event_type=context.event_type, replayed=True)

        booking = tx.mark_booking_canceled(
            context.booking.id,
            canceled_at=acted_at,
            reason=(reason or "").strip() or None,
            canceled_by=canceled_by,
        )
        tx.consume_action_token(context.token.id, consumed_at=acted_at)
        return CancelBookingResult(booking=booking, event_type=context.event_type)

    result = data_access.with_action_token_transaction(token_hash, _cancel)
    logger.info(
        "Booking canceled",
        extra={"booking_id": result.booking.id, "action": "cancel", "replayed": result.replayed},
    )
    return result


def reschedule_booking(
    data_access: BookingDataAccessPort,
    raw_token: str,
    request: RescheduleBookingRequest,
    now: datetime | None = None,
    token_ttl_days: int | None = None,
) -> RescheduleBookingResult:
    token_hash = hash_token(raw_token)
    acted_at = now or datetime.now(timezone.utc)
    ttl_days = token_ttl_days if token_ttl_days is not None else settings.ACTION_TOKEN_TTL_DAYS

    def _replay(tx: BookingActionTransactionPort, context: ActionTokenContext) -> RescheduleBookingResult:
        # consumed_booking_id links the spent token to the booking it created.
        new_booking_id = context.token.consumed_booking_id
        new_booking = tx.get_booking(new_booking_id) if new_booking_id else None
        if new_booking is None:
            raise BookingGoneError("This reschedule link is no longer valid.")
        return RescheduleBookingResult(
            old_booking=context.booking,
            new_booking=new_booking,
            event_type=context.event_type,
            action_tokens=[],
            replayed=True,
        )

    def _reschedule(tx: BookingActionTransactionPort) -> RescheduleBookingResult:
        context = _lock_context(tx, token_hash, ActionType.reschedule)
        state = _evaluate_context(context, acted_at)

        if state is TokenState.gone:
            raise BookingGoneError("This reschedule link is no longer valid.")
        if state is TokenState.idempotent_replay:
            return _replay(tx, context)

        event_type = context.event_type
        old_booking = context.booking
        if not event_type.is_active:
            raise BookingNotFoundError("Event type not found.")

        starts_at = parse_utc_instant(request.starts_at)
        if starts_at is None:
            raise BookingValidationError("Invalid startsAt value.")

        tx.lock_event_type(event_type.id)
        range_start, range_end = recheck_window(
            starts_at, starts_at + timedelta(minutes=event_type.duration_minutes)
        )
        rules, overrides, bookings = load_schedule(tx, event_type.user_id, range_start, range_end)
        requested = resolve_requested_reschedule_slot(
            starts_at,
            event_type.duration_minutes,
            event_type.organizer_timezone,
            rules,
            overrides,
            bookings,
            exclude_booking_id=old_booking.id,
        )
        if requested is None:
            raise BookingConflictError("Selected slot is no longer available.")

        previous = parse_booking_metadata(old_booking.metadata)
        metadata = replace(
            previous,
            timezone=normalize_timezone_name(request.timezone) if request.timezone else previous.timezone,
            buffer_before_minutes=requested.matching_slot.buffer_before_minutes,
            buffer_after_minutes=requested.matching_slot.buffer_after_minutes,
        )

        # Flip the old row first so the new one may reuse the same time range.
        old_booking = tx.mark_booking_rescheduled(old_booking.id)
        try:
            new_booking = tx.insert_booking(
                NewBooking(
                    event_type_id=event_type.id,
                    organizer_id=event_type.user_id,
                    invitee_name=old_booking.invitee_name,
                    invitee_email=old_booking.invitee_email,
                    starts_at=requested.starts_at,
                    ends_at=requested.ends_at,
                    metadata=serialize_booking_metadata(metadata),
                    rescheduled_from_booking_id=old_booking.id,
                )
            )
        except BookingUniqueConstraintError as e:
            raise BookingConflictError("Selected slot is no longer available.") from e

        tokens = issue_action_tokens(acted_at, ttl_days)
        tx.insert_action_tokens(new_booking.id, tokens)
        tx.consume_action_token(context.token.id, consumed_at=acted_at, consumed_booking_id=new_booking.id)

        return RescheduleBookingResult(
            old_booking=old_booking,
            new_booking=new_booking,
            event_type=event_type,
            action_tokens=tokens,
        )

    result = data_access.with_action_token_transaction(token_hash, _reschedule)
    logger.info(
        "Booking rescheduled",
        extra={
            "booking_id": result.old_booking.id,
            "new_booking_id": result.new_booking.id,
            "action": "reschedule",
            "replayed": result.replayed,
        },
    )
    return result
