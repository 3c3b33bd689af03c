import logging
import threading

from slotkeeper.application.ports.booking_store import BookingDataAccessPort
from slotkeeper.core.config import settings
from slotkeeper.infrastructure.store.demo_data import seed_demo_organizer
from slotkeeper.infrastructure.store.memory_store import MemoryBookingStore


_booking_store: MemoryBookingStore | None = None
_booking_store_lock = threading.Lock()


def get_booking_store() -> BookingDataAccessPort:
    global _booking_store
    if _booking_store is not None:
        return _booking_store
    with _booking_store_lock:
        if _booking_store is None:
            store = MemoryBookingStore()
            if settings.ENV.lower() in {"dev", "local"}:
                seed_demo_organizer(store)
            logger = logging.getLogger(__name__)
            logger.info("Using MemoryBookingStore", extra={"env": settings.ENV})
            _booking_store = store
    return _booking_store


def get_action_link_base() -> str:
    return f"{settings.PUBLIC_BASE_URL.rstrip('/')}/bookings/actions"
