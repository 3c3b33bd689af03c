from __future__ import annotations

import logging

from slotkeeper.domain.entities.availability import AvailabilityRule
from slotkeeper.domain.entities.booking import EventType
from slotkeeper.infrastructure.store.memory_store import MemoryBookingStore


logger = logging.getLogger(__name__)

DEMO_USER_ID = "demo-organizer"
DEMO_USERNAME = "demo"


def seed_demo_organizer(store: MemoryBookingStore) -> EventType:
    """One organizer with weekday 09:00-17:00 hours and a 30 minute intro call."""
    event_type = EventType(
        id="demo-intro-call",
        user_id=DEMO_USER_ID,
        slug="intro-call",
        name="Intro Call",
        duration_minutes=30,
        organizer_timezone="America/New_York",
        organizer_display_name="Demo Organizer",
        organizer_email="demo@example.com",
    )
    store.add_user(DEMO_USER_ID, DEMO_USERNAME)
    store.add_event_type(event_type)
    store.set_rules(
        DEMO_USER_ID,
        [
            AvailabilityRule(day_of_week=day, start_minute=9 * 60, end_minute=17 * 60, buffer_after_minutes=10)
            for day in range(1, 6)
        ],
    )
    logger.info("Seeded demo organizer", extra={"event_type_id": event_type.id})
    return event_type
