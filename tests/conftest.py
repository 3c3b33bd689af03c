from __future__ import annotations

import pytest

from slotkeeper.domain.entities.availability import AvailabilityRule
from slotkeeper.domain.entities.booking import EventType
from slotkeeper.infrastructure.store.memory_store import MemoryBookingStore


ORGANIZER_ID = "org-1"
USERNAME = "alice"
EVENT_SLUG = "intro"


@pytest.fixture
def event_type() -> EventType:
    return EventType(
        id="et-1",
        user_id=ORGANIZER_ID,
        slug=EVENT_SLUG,
        name="Intro Call",
        duration_minutes=30,
        organizer_timezone="UTC",
        organizer_display_name="Alice",
    )


@pytest.fixture
def store(event_type: EventType) -> MemoryBookingStore:
    """Alice takes 30 minute calls on Mondays 09:00-11:00 UTC with a 10 minute tail buffer."""
    store = MemoryBookingStore()
    store.add_user(ORGANIZER_ID, USERNAME)
    store.add_event_type(event_type)
    store.set_rules(
        ORGANIZER_ID,
        [AvailabilityRule(day_of_week=1, start_minute=9 * 60, end_minute=11 * 60, buffer_after_minutes=10)],
    )
    return store
