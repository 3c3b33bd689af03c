"""
Tests for cancel / reschedule action links.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from slotkeeper.application.dto.booking_request import CommitBookingRequest, RescheduleBookingRequest
from slotkeeper.application.exceptions import (
    BookingConflictError,
    BookingGoneError,
    BookingNotFoundError,
    BookingValidationError,
)
from slotkeeper.application.use_cases.booking_actions import (
    cancel_booking,
    evaluate_action_token,
    lookup_action_token,
    reschedule_booking,
    resolve_requested_reschedule_slot,
)
from slotkeeper.application.use_cases.commit_booking import commit_booking
from slotkeeper.application.utils.booking_metadata import parse_booking_metadata
from slotkeeper.domain.entities.action_token import ActionType, TokenState
from slotkeeper.domain.entities.availability import AvailabilityRule, ExistingBooking
from slotkeeper.domain.entities.booking import BookingStatus
from slotkeeper.infrastructure.store.memory_store import _MemoryTransaction


NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
LATER = NOW + timedelta(days=1)
EXPIRES = NOW + timedelta(days=30)


def utc(hour: int, minute: int = 0) -> datetime:
    return datetime(2026, 3, 2, hour, minute, tzinfo=timezone.utc)


def book(store, starts_at: str = "2026-03-02T09:00:00Z", ttl_days: int = 30):
    result = commit_booking(
        store,
        CommitBookingRequest(
            username="alice",
            event_slug="intro",
            starts_at=starts_at,
            timezone="UTC",
            invitee_name="Bob Invitee",
            invitee_email="bob@example.com",
            answers={"topic": "pricing"},
        ),
        now=NOW,
        token_ttl_days=ttl_days,
    )
    tokens = {token.action_type: token.raw_token for token in result.action_tokens}
    return result.booking, tokens


# evaluate_action_token


def test_consumed_token_on_terminal_booking_replays_even_when_expired():
    state = evaluate_action_token("cancel", "canceled", expires_at=NOW, consumed_at=NOW, now=LATER)

    assert state is TokenState.idempotent_replay


def test_expired_token_is_gone():
    assert evaluate_action_token("cancel", "confirmed", NOW, None, LATER) is TokenState.gone
    assert evaluate_action_token("cancel", "confirmed", NOW, None, NOW) is TokenState.gone


def test_token_consumed_for_something_else_is_gone():
    assert evaluate_action_token("reschedule", "confirmed", EXPIRES, NOW, LATER) is TokenState.gone
    assert evaluate_action_token("reschedule", "canceled", EXPIRES, NOW, LATER) is TokenState.gone


def test_fresh_token_on_confirmed_booking_is_usable():
    assert evaluate_action_token(ActionType.cancel, BookingStatus.confirmed, EXPIRES, None, LATER) is TokenState.usable


def test_unconsumed_token_on_matching_terminal_booking_replays():
    assert evaluate_action_token("cancel", "canceled", EXPIRES, None, LATER) is TokenState.idempotent_replay
    assert evaluate_action_token("reschedule", "rescheduled", EXPIRES, None, LATER) is TokenState.idempotent_replay


def test_unconsumed_token_on_other_terminal_booking_is_gone():
    assert evaluate_action_token("reschedule", "canceled", EXPIRES, None, LATER) is TokenState.gone
    assert evaluate_action_token("cancel", "rescheduled", EXPIRES, None, LATER) is TokenState.gone


@pytest.mark.parametrize(
    "action_type, booking_status, expires_at, consumed_at",
    [
        ("cancel", "confirmed", EXPIRES, None),
        ("cancel", "canceled", NOW, NOW),
        ("cancel", "canceled", EXPIRES, None),
        ("reschedule", "rescheduled", EXPIRES, NOW),
        ("reschedule", "canceled", EXPIRES, None),
        ("cancel", "confirmed", NOW, None),
    ],
)
def test_evaluation_is_stable_across_repeated_calls(action_type, booking_status, expires_at, consumed_at):
    first = evaluate_action_token(action_type, booking_status, expires_at, consumed_at, LATER)

    for _ in range(5):
        assert evaluate_action_token(action_type, booking_status, expires_at, consumed_at, LATER) is first


# cancel


def test_cancel_then_retry_is_idempotent(store):
    booking, tokens = book(store)

    first = cancel_booking(store, tokens[ActionType.cancel], reason="  conflict came up ", now=LATER)
    second = cancel_booking(store, tokens[ActionType.cancel], now=LATER + timedelta(hours=1))

    assert first.replayed is False
    assert first.booking.id == booking.id
    assert first.booking.status is BookingStatus.canceled
    assert first.booking.cancellation_reason == "conflict came up"
    assert first.booking.canceled_by == "invitee"
    assert first.booking.canceled_at == LATER

    assert second.replayed is True
    assert second.booking == first.booking


def test_cancel_frees_the_slot(store):
    _, tokens = book(store)
    cancel_booking(store, tokens[ActionType.cancel], now=LATER)

    rebooked, _ = book(store)
    assert rebooked.status is BookingStatus.confirmed


def test_cancel_after_expiry_is_gone(store):
    _, tokens = book(store, ttl_days=1)

    with pytest.raises(BookingGoneError):
        cancel_booking(store, tokens[ActionType.cancel], now=NOW + timedelta(days=2))


def test_cancel_with_unknown_or_wrong_token_is_not_found(store):
    _, tokens = book(store)

    with pytest.raises(BookingNotFoundError):
        cancel_booking(store, "f" * 64, now=LATER)
    with pytest.raises(BookingNotFoundError):
        cancel_booking(store, tokens[ActionType.reschedule], now=LATER)


def test_reschedule_link_is_gone_after_cancel(store):
    _, tokens = book(store)
    cancel_booking(store, tokens[ActionType.cancel], now=LATER)

    with pytest.raises(BookingGoneError):
        reschedule_booking(
            store,
            tokens[ActionType.reschedule],
            RescheduleBookingRequest(starts_at="2026-03-02T10:00:00Z"),
            now=LATER,
        )


def test_lookup_reports_state(store):
    _, tokens = book(store)

    assert lookup_action_token(store, tokens[ActionType.cancel], now=LATER).state is TokenState.usable
    cancel_booking(store, tokens[ActionType.cancel], now=LATER)
    lookup = lookup_action_token(store, tokens[ActionType.cancel], now=LATER)
    assert lookup.state is TokenState.idempotent_replay
    assert lookup.booking.status is BookingStatus.canceled

    with pytest.raises(BookingNotFoundError):
        lookup_action_token(store, "nope", now=LATER)


# reschedule


def test_reschedule_moves_booking_and_replays(store):
    old, tokens = book(store)
    request = RescheduleBookingRequest(starts_at="2026-03-02T10:00:00Z", timezone="Europe/Paris")

    first = reschedule_booking(store, tokens[ActionType.reschedule], request, now=LATER)

    assert first.replayed is False
    assert first.old_booking.id == old.id
    assert first.old_booking.status is BookingStatus.rescheduled
    assert first.new_booking.status is BookingStatus.confirmed
    assert first.new_booking.starts_at == utc(10)
    assert first.new_booking.ends_at == utc(10, 30)
    assert first.new_booking.rescheduled_from_booking_id == old.id
    assert {token.action_type for token in first.action_tokens} == {ActionType.cancel, ActionType.reschedule}

    metadata = parse_booking_metadata(first.new_booking.metadata)
    assert metadata.answers == {"topic": "pricing"}
    assert metadata.timezone == "Europe/Paris"
    assert metadata.buffer_after_minutes == 10

    second = reschedule_booking(store, tokens[ActionType.reschedule], request, now=LATER)
    assert second.replayed is True
    assert second.new_booking.id == first.new_booking.id
    assert second.action_tokens == []


def test_reschedule_into_own_slot_is_allowed(store):
    old, tokens = book(store)

    result = reschedule_booking(
        store,
        tokens[ActionType.reschedule],
        RescheduleBookingRequest(starts_at="2026-03-02T09:00:00Z"),
        now=LATER,
    )

    assert result.new_booking.starts_at == old.starts_at
    assert sorted(b.status.value for b in store.list_bookings()) == ["confirmed", "rescheduled"]


def test_reschedule_to_unavailable_slot_rolls_back(store):
    old, tokens = book(store)

    with pytest.raises(BookingConflictError):
        reschedule_booking(
            store,
            tokens[ActionType.reschedule],
            RescheduleBookingRequest(starts_at="2026-03-02T08:00:00Z"),
            now=LATER,
        )

    assert store.get_booking(old.id).status is BookingStatus.confirmed
    assert lookup_action_token(store, tokens[ActionType.reschedule], now=LATER).state is TokenState.usable


def test_reschedule_with_malformed_start_is_validation_error(store):
    _, tokens = book(store)

    with pytest.raises(BookingValidationError):
        reschedule_booking(store, tokens[ActionType.reschedule], RescheduleBookingRequest(starts_at="soon"), now=LATER)


def test_reschedule_to_calendar_edge_is_validation_error(store):
    old, tokens = book(store)
    request = RescheduleBookingRequest(starts_at="9999-12-31T23:00:00Z")

    with pytest.raises(BookingValidationError):
        reschedule_booking(store, tokens[ActionType.reschedule], request, now=LATER)

    assert store.get_booking(old.id).status is BookingStatus.confirmed


def test_cancel_link_is_gone_after_reschedule(store):
    _, tokens = book(store)
    reschedule_booking(
        store,
        tokens[ActionType.reschedule],
        RescheduleBookingRequest(starts_at="2026-03-02T10:00:00Z"),
        now=LATER,
    )

    with pytest.raises(BookingGoneError):
        cancel_booking(store, tokens[ActionType.cancel], now=LATER)


def test_resolve_reschedule_slot_ignores_booking_being_moved():
    rules = [AvailabilityRule(day_of_week=1, start_minute=9 * 60, end_minute=11 * 60)]
    current = ExistingBooking(starts_at=utc(9), ends_at=utc(9, 30), status="confirmed", id="b-1")

    blocked = resolve_requested_reschedule_slot("2026-03-02T09:15:00Z", 30, "UTC", rules, [], [current])
    allowed = resolve_requested_reschedule_slot(
        "2026-03-02T09:15:00Z", 30, "UTC", rules, [], [current], exclude_booking_id="b-1"
    )

    assert blocked is None
    assert allowed is not None
    assert allowed.starts_at == utc(9, 15)
    assert resolve_requested_reschedule_slot("garbage", 30, "UTC", rules, [], []) is None


def test_reschedule_storage_failure_restores_old_booking(store, monkeypatch):
    old, tokens = book(store)

    def broken_insert(self, booking_id, tokens):
        raise RuntimeError("token table unavailable")

    monkeypatch.setattr(_MemoryTransaction, "insert_action_tokens", broken_insert)

    with pytest.raises(RuntimeError):
        reschedule_booking(
            store,
            tokens[ActionType.reschedule],
            RescheduleBookingRequest(starts_at="2026-03-02T10:00:00Z"),
            now=LATER,
        )

    assert [b.id for b in store.list_bookings()] == [old.id]
    assert store.get_booking(old.id).status is BookingStatus.confirmed
