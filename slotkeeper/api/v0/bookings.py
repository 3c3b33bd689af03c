from fastapi import APIRouter, Body, Depends, HTTPException

from slotkeeper.api.v0.schemas import (
    ActionLinksSchema,
    ActionLookupResponseSchema,
    BookingSchema,
    CancelResponseSchema,
    CommitBookingResponseSchema,
    EventTypeSummarySchema,
    RescheduleResponseSchema,
)
from slotkeeper.application.dto.booking_request import (
    CancelBookingRequest,
    CommitBookingRequest,
    RescheduleBookingRequest,
)
from slotkeeper.application.exceptions import (
    BookingConflictError,
    BookingGoneError,
    BookingNotFoundError,
    BookingValidationError,
)
from slotkeeper.application.ports.booking_store import BookingDataAccessPort
from slotkeeper.application.use_cases.booking_actions import (
    cancel_booking,
    lookup_action_token,
    reschedule_booking,
)
from slotkeeper.application.use_cases.commit_booking import commit_booking
from slotkeeper.domain.entities.action_token import ActionType, IssuedActionToken
from slotkeeper.domain.entities.booking import Booking
from slotkeeper.wiring.dependencies import get_action_link_base, get_booking_store

router = APIRouter()


def _booking_schema(booking: Booking) -> BookingSchema:
    return BookingSchema(
        id=booking.id,
        event_type_id=booking.event_type_id,
        organizer_id=booking.organizer_id,
        invitee_name=booking.invitee_name,
        invitee_email=booking.invitee_email,
        starts_at=booking.starts_at,
        ends_at=booking.ends_at,
        status=booking.status,
        rescheduled_from_booking_id=booking.rescheduled_from_booking_id,
        canceled_at=booking.canceled_at,
        cancellation_reason=booking.cancellation_reason,
    )


def _action_links(tokens: list[IssuedActionToken], base: str) -> ActionLinksSchema:
    raw = {token.action_type: token.raw_token for token in tokens}
    return ActionLinksSchema(
        cancel_url=f"{base}/{raw[ActionType.cancel]}",
        reschedule_url=f"{base}/{raw[ActionType.reschedule]}",
    )


@router.post("/bookings", response_model=CommitBookingResponseSchema, status_code=201)
def create_booking(
    req: CommitBookingRequest,
    store: BookingDataAccessPort = Depends(get_booking_store),
    link_base: str = Depends(get_action_link_base),
):
    try:
        result = commit_booking(store, req)
    except BookingNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except BookingValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except BookingConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))

    return CommitBookingResponseSchema(
        booking=_booking_schema(result.booking),
        action_links=_action_links(result.action_tokens, link_base),
    )


@router.get("/bookings/actions/{token}", response_model=ActionLookupResponseSchema)
def get_action(
    token: str,
    store: BookingDataAccessPort = Depends(get_booking_store),
):
    try:
        lookup = lookup_action_token(store, token)
    except BookingNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    event_type = lookup.event_type
    return ActionLookupResponseSchema(
        action_type=lookup.token.action_type.value,
        state=lookup.state,
        expires_at=lookup.token.expires_at,
        booking=_booking_schema(lookup.booking),
        event_type=EventTypeSummarySchema(
            id=event_type.id,
            slug=event_type.slug,
            name=event_type.name,
            duration_minutes=event_type.duration_minutes,
            organizer_timezone=event_type.organizer_timezone,
            organizer_display_name=event_type.organizer_display_name,
        ),
    )


@router.post("/bookings/actions/{token}/cancel", response_model=CancelResponseSchema)
def cancel_action(
    token: str,
    req: CancelBookingRequest | None = Body(None),
    store: BookingDataAccessPort = Depends(get_booking_store),
):
    try:
        result = cancel_booking(store, token, reason=req.reason if req else None)
    except BookingNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except BookingGoneError as e:
        raise HTTPException(status_code=410, detail=str(e))

    return CancelResponseSchema(booking=_booking_schema(result.booking), replayed=result.replayed)


@router.post("/bookings/actions/{token}/reschedule", response_model=RescheduleResponseSchema)
def reschedule_action(
    token: str,
    req: RescheduleBookingRequest,
    store: BookingDataAccessPort = Depends(get_booking_store),
    link_base: str = Depends(get_action_link_base),
):
    try:
        result = reschedule_booking(store, token, req)
    except BookingNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except BookingValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except BookingConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except BookingGoneError as e:
        raise HTTPException(status_code=410, detail=str(e))

    return RescheduleResponseSchema(
        old_booking=_booking_schema(result.old_booking),
        new_booking=_booking_schema(result.new_booking),
        # Raw tokens only exist at issuance; a replay has none to show.
        action_links=_action_links(result.action_tokens, link_base) if result.action_tokens else None,
        replayed=result.replayed,
    )
