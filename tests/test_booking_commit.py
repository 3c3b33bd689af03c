"""
Tests for committing bookings against the in-memory store.
"""

from __future__ import annotations

import threading
from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from slotkeeper.application.dto.booking_request import CommitBookingRequest
from slotkeeper.application.exceptions import (
    BookingConflictError,
    BookingNotFoundError,
    BookingUniqueConstraintError,
    BookingValidationError,
)
from slotkeeper.application.ports.booking_store import BookingDataAccessPort, BookingTransactionPort
from slotkeeper.application.use_cases.commit_booking import commit_booking
from slotkeeper.application.utils.booking_metadata import parse_booking_metadata
from slotkeeper.application.utils.tokens import hash_token
from slotkeeper.domain.entities.action_token import ActionType
from slotkeeper.domain.entities.availability import AvailabilityRule, BusyWindow
from slotkeeper.domain.entities.booking import BookingStatus
from slotkeeper.infrastructure.store.memory_store import _MemoryTransaction


ORGANIZER_ID = "org-1"
USERNAME = "alice"
EVENT_SLUG = "intro"
MONDAY = datetime(2026, 3, 2, tzinfo=timezone.utc)


def utc(hour: int, minute: int = 0) -> datetime:
    return datetime(2026, 3, 2, hour, minute, tzinfo=timezone.utc)


def make_request(starts_at: str = "2026-03-02T09:00:00Z", **overrides) -> CommitBookingRequest:
    data = {
        "username": USERNAME,
        "event_slug": EVENT_SLUG,
        "starts_at": starts_at,
        "timezone": "Europe/Berlin",
        "invitee_name": "Bob Invitee",
        "invitee_email": "Bob@Example.com",
        "answers": {"topic": "pricing"},
    }
    data.update(overrides)
    return CommitBookingRequest(**data)


def test_commit_books_free_slot(store):
    result = commit_booking(store, make_request(), now=MONDAY)

    booking = result.booking
    assert booking.status is BookingStatus.confirmed
    assert booking.starts_at == utc(9)
    assert booking.ends_at == utc(9, 30)
    assert booking.organizer_id == ORGANIZER_ID
    assert booking.invitee_email == "bob@example.com"

    metadata = parse_booking_metadata(booking.metadata)
    assert metadata.answers == {"topic": "pricing"}
    assert metadata.timezone == "Europe/Berlin"
    assert (metadata.buffer_before_minutes, metadata.buffer_after_minutes) == (0, 10)


def test_commit_issues_hashed_action_tokens(store):
    result = commit_booking(store, make_request(), now=MONDAY, token_ttl_days=5)

    assert {token.action_type for token in result.action_tokens} == {ActionType.cancel, ActionType.reschedule}
    stored = store.list_action_tokens(result.booking.id)
    assert len(stored) == 2
    for issued in result.action_tokens:
        assert len(issued.raw_token) == 64
        assert issued.expires_at == MONDAY + timedelta(days=5)
        assert any(row.token_hash == hash_token(issued.raw_token) for row in stored)
        assert all(row.token_hash != issued.raw_token for row in stored)


def test_second_commit_for_same_slot_conflicts(store):
    commit_booking(store, make_request(), now=MONDAY)

    with pytest.raises(BookingConflictError):
        commit_booking(store, make_request(), now=MONDAY)
    assert len(store.list_bookings()) == 1


def test_frozen_buffer_blocks_adjacent_slot(store):
    commit_booking(store, make_request(), now=MONDAY)

    # The 09:00 booking holds 10 minutes after it, so 09:30 is out and 09:45 is fine.
    with pytest.raises(BookingConflictError):
        commit_booking(store, make_request("2026-03-02T09:30:00Z"), now=MONDAY)
    assert commit_booking(store, make_request("2026-03-02T09:45:00Z"), now=MONDAY).booking.starts_at == utc(9, 45)


def test_slot_outside_rules_conflicts(store):
    with pytest.raises(BookingConflictError):
        commit_booking(store, make_request("2026-03-02T08:00:00Z"), now=MONDAY)


def test_busy_window_blocks_commit(store):
    store.add_busy_window(ORGANIZER_ID, BusyWindow(starts_at=utc(9), ends_at=utc(9, 30)))

    with pytest.raises(BookingConflictError):
        commit_booking(store, make_request(), now=MONDAY)


def test_commit_rereads_rules_inside_the_transaction(store):
    store.set_rules(ORGANIZER_ID, [AvailabilityRule(day_of_week=2, start_minute=9 * 60, end_minute=11 * 60)])

    with pytest.raises(BookingConflictError):
        commit_booking(store, make_request(), now=MONDAY)


def test_unknown_or_inactive_event_type_is_not_found(store, event_type):
    with pytest.raises(BookingNotFoundError):
        commit_booking(store, make_request(event_slug="nope"), now=MONDAY)

    store.add_event_type(replace(event_type, is_active=False))
    with pytest.raises(BookingNotFoundError):
        commit_booking(store, make_request(), now=MONDAY)


def test_malformed_start_is_a_validation_error(store):
    with pytest.raises(BookingValidationError):
        commit_booking(store, make_request("next tuesday"), now=MONDAY)


@pytest.mark.parametrize("starts_at", ["9999-12-31T23:00:00Z", "0001-01-01T00:00:00Z"])
def test_start_at_calendar_edge_is_a_validation_error(store, starts_at):
    with pytest.raises(BookingValidationError):
        commit_booking(store, make_request(starts_at), now=MONDAY)

    assert store.list_bookings() == []


@pytest.mark.parametrize(
    "invitee_email",
    ["not-an-email", "a b@c.d", "x@.com", "a@b..c", "<script>@x.y", "bob@"],
)
def test_request_rejects_bad_invitee_email(invitee_email):
    with pytest.raises(ValueError):
        make_request(invitee_email=invitee_email)


def test_request_rejects_blank_invitee_name():
    with pytest.raises(ValueError):
        make_request(invitee_name="   ")


def test_request_normalizes_invitee_email():
    assert make_request(invitee_email="  Bob@Example.com ").invitee_email == "bob@example.com"


def test_storage_failure_propagates_and_rolls_back(store, monkeypatch):
    def broken_insert(self, booking_id, tokens):
        raise RuntimeError("token table unavailable")

    monkeypatch.setattr(_MemoryTransaction, "insert_action_tokens", broken_insert)

    with pytest.raises(RuntimeError, match="token table unavailable"):
        commit_booking(store, make_request(), now=MONDAY)
    assert store.list_bookings() == []


class _RacingTransaction(BookingTransactionPort):
    """Recheck sees a free calendar, insert hits the unique constraint."""

    def lock_event_type(self, event_type_id):
        pass

    def list_rules(self, user_id):
        return [AvailabilityRule(day_of_week=1, start_minute=9 * 60, end_minute=11 * 60)]

    def list_overrides(self, user_id, range_start, range_end):
        return []

    def list_external_busy_windows(self, user_id, range_start, range_end):
        return []

    def list_confirmed_bookings(self, organizer_id, range_start, range_end):
        return []

    def insert_booking(self, booking):
        raise BookingUniqueConstraintError("bookings_unique_slot")

    def insert_action_tokens(self, booking_id, tokens):
        raise AssertionError("tokens must not be issued for a lost race")


class _RacingDataAccess(BookingDataAccessPort):
    def __init__(self, event_type):
        self._event_type = event_type

    def get_public_event_type(self, username, slug):
        return self._event_type

    def read_schedule(self, user_id, range_start, range_end):
        return [], [], []

    def with_event_type_transaction(self, event_type_id, callback):
        return callback(_RacingTransaction())

    def find_action_token(self, token_hash):
        return None

    def with_action_token_transaction(self, token_hash, callback):
        raise NotImplementedError


def test_unique_violation_becomes_conflict(event_type):
    with pytest.raises(BookingConflictError):
        commit_booking(_RacingDataAccess(event_type), make_request(), now=MONDAY)


def test_concurrent_commits_for_one_slot_yield_one_booking(store):
    attempts = 8
    barrier = threading.Barrier(attempts)
    outcomes: list[str] = []
    outcomes_lock = threading.Lock()

    def attempt() -> None:
        barrier.wait()
        try:
            commit_booking(store, make_request(), now=MONDAY)
            outcome = "booked"
        except BookingConflictError:
            outcome = "conflict"
        with outcomes_lock:
            outcomes.append(outcome)

    threads = [threading.Thread(target=attempt) for _ in range(attempts)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert outcomes.count("booked") == 1
    assert outcomes.count("conflict") == attempts - 1
    assert len(store.list_bookings(ORGANIZER_ID)) == 1
