from fastapi import APIRouter, Depends, HTTPException, Query

from slotkeeper.api.v0.schemas import AvailabilityResponseSchema, SlotSchema
from slotkeeper.application.exceptions import BookingNotFoundError, BookingValidationError
from slotkeeper.application.ports.booking_store import BookingDataAccessPort
from slotkeeper.application.use_cases.public_availability import get_public_availability
from slotkeeper.wiring.dependencies import get_booking_store

router = APIRouter()


@router.get(
    "/users/{username}/event-types/{slug}/availability",
    response_model=AvailabilityResponseSchema,
)
def availability(
    username: str,
    slug: str,
    start: str | None = Query(None),
    days: int = Query(7, ge=1, le=30),
    timezone: str | None = Query(None),
    store: BookingDataAccessPort = Depends(get_booking_store),
):
    try:
        result = get_public_availability(
            store,
            username=username,
            slug=slug,
            start=start,
            days=days,
            viewer_timezone=timezone,
        )
    except BookingNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except BookingValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return AvailabilityResponseSchema(
        timezone=result.timezone,
        slots=[SlotSchema(starts_at=slot.starts_at, ends_at=slot.ends_at) for slot in result.slots],
    )
