from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable, TypeVar

from slotkeeper.application.exceptions import BookingNotFoundError, BookingUniqueConstraintError
from slotkeeper.application.ports.booking_store import (
    BookingActionTransactionPort,
    BookingDataAccessPort,
)
from slotkeeper.application.utils.intervals import overlaps
from slotkeeper.domain.entities.action_token import (
    ActionTokenContext,
    BookingActionToken,
    IssuedActionToken,
)
from slotkeeper.domain.entities.availability import (
    AvailabilityOverride,
    AvailabilityRule,
    BusyWindow,
    ExistingBooking,
)
from slotkeeper.domain.entities.booking import Booking, BookingStatus, EventType, NewBooking


T = TypeVar("T")


class MemoryBookingStore(BookingDataAccessPort):
    """
    Process-local storage adapter.

    Mirrors what a relational backend provides: one lock per event type row
    held for the whole transaction, a unique (organizer, starts_at, ends_at)
    constraint over confirmed bookings, and rollback of staged writes when the
    transaction callback raises.
    """

    def __init__(self) -> None:
        self._usernames: dict[str, str] = {}  # user_id -> username
        self._event_types: dict[str, EventType] = {}
        self._rules: dict[str, list[AvailabilityRule]] = {}
        self._overrides: dict[str, list[AvailabilityOverride]] = {}
        self._busy_windows: dict[str, list[BusyWindow]] = {}
        self._bookings: dict[str, Booking] = {}
        self._tokens: dict[str, BookingActionToken] = {}

        self._data_lock = threading.RLock()
        self._row_locks: dict[str, threading.Lock] = {}
        self._lock_lock = threading.Lock()
        self._logger = logging.getLogger(__name__)

    def _get_lock(self, key: str) -> threading.Lock:
        with self._lock_lock:
            if key not in self._row_locks:
                self._row_locks[key] = threading.Lock()
            return self._row_locks[key]

    # Seeding and inspection

    def add_user(self, user_id: str, username: str) -> None:
        with self._data_lock:
            self._usernames[user_id] = username

    def add_event_type(self, event_type: EventType) -> None:
        with self._data_lock:
            self._event_types[event_type.id] = event_type

    def set_rules(self, user_id: str, rules: list[AvailabilityRule]) -> None:
        with self._data_lock:
            self._rules[user_id] = list(rules)

    def add_override(self, user_id: str, override: AvailabilityOverride) -> None:
        with self._data_lock:
            self._overrides.setdefault(user_id, []).append(override)

    def add_busy_window(self, user_id: str, window: BusyWindow) -> None:
        with self._data_lock:
            self._busy_windows.setdefault(user_id, []).append(window)

    def get_booking(self, booking_id: str) -> Booking | None:
        with self._data_lock:
            return self._bookings.get(booking_id)

    def list_bookings(self, organizer_id: str | None = None) -> list[Booking]:
        with self._data_lock:
            rows = [b for b in self._bookings.values() if organizer_id is None or b.organizer_id == organizer_id]
        return sorted(rows, key=lambda b: b.starts_at)

    def list_action_tokens(self, booking_id: str) -> list[BookingActionToken]:
        with self._data_lock:
            return [t for t in self._tokens.values() if t.booking_id == booking_id]

    # BookingDataAccessPort

    def read_schedule(
        self,
        user_id: str,
        range_start: datetime,
        range_end: datetime,
    ) -> tuple[list[AvailabilityRule], list[AvailabilityOverride], list[ExistingBooking]]:
        tx = _MemoryTransaction(self)
        bookings = tx.list_confirmed_bookings(user_id, range_start, range_end)
        bookings.extend(w.as_booking() for w in tx.list_external_busy_windows(user_id, range_start, range_end))
        return tx.list_rules(user_id), tx.list_overrides(user_id, range_start, range_end), bookings

    def get_public_event_type(self, username: str, slug: str) -> EventType | None:
        with self._data_lock:
            for event_type in self._event_types.values():
                if event_type.slug == slug and self._usernames.get(event_type.user_id) == username:
                    return event_type
        return None

    def with_event_type_transaction(
        self,
        event_type_id: str,
        callback: Callable[[_MemoryTransaction], T],
    ) -> T:
        with self._get_lock(f"event_type:{event_type_id}"):
            return self._run(callback)

    def find_action_token(self, token_hash: str) -> ActionTokenContext | None:
        with self._data_lock:
            token = next((t for t in self._tokens.values() if t.token_hash == token_hash), None)
            if token is None:
                return None
            booking = self._bookings.get(token.booking_id)
            if booking is None:
                return None
            event_type = self._event_types.get(booking.event_type_id)
            if event_type is None:
                return None
            return ActionTokenContext(token=token, booking=booking, event_type=event_type)

    def with_action_token_transaction(
        self,
        token_hash: str,
        callback: Callable[[_MemoryTransaction], T],
    ) -> T:
        context = self.find_action_token(token_hash)
        if context is None:
            # Nothing to lock; the callback will see no token and report it.
            return self._run(callback)

        # Same order as commits: event type row, then booking row.
        with self._get_lock(f"event_type:{context.event_type.id}"):
            with self._get_lock(f"booking:{context.booking.id}"):
                return self._run(callback)

    def _run(self, callback: Callable[[_MemoryTransaction], T]) -> T:
        tx = _MemoryTransaction(self)
        try:
            return callback(tx)
        except Exception:
            tx.rollback()
            raise


class _MemoryTransaction(BookingActionTransactionPort):
    def __init__(self, store: MemoryBookingStore) -> None:
        self._store = store
        self._undo: list[Callable[[], None]] = []

    def rollback(self) -> None:
        with self._store._data_lock:
            while self._undo:
                self._undo.pop()()

    def lock_event_type(self, event_type_id: str) -> None:
        # The enclosing transaction already holds the lock; re-check the row is still live.
        with self._store._data_lock:
            event_type = self._store._event_types.get(event_type_id)
        if event_type is None or not event_type.is_active:
            self._store._logger.info("Event type gone at lock time", extra={"event_type_id": event_type_id})
            raise BookingNotFoundError("Event type not found.")

    def list_rules(self, user_id: str) -> list[AvailabilityRule]:
        with self._store._data_lock:
            return list(self._store._rules.get(user_id, []))

    def list_overrides(self, user_id: str, range_start: datetime, range_end: datetime) -> list[AvailabilityOverride]:
        with self._store._data_lock:
            return [
                o
                for o in self._store._overrides.get(user_id, [])
                if overlaps(o.start_at, o.end_at, range_start, range_end)
            ]

    def list_external_busy_windows(self, user_id: str, range_start: datetime, range_end: datetime) -> list[BusyWindow]:
        with self._store._data_lock:
            return [
                w
                for w in self._store._busy_windows.get(user_id, [])
                if overlaps(w.starts_at, w.ends_at, range_start, range_end)
            ]

    def list_confirmed_bookings(
        self,
        organizer_id: str,
        range_start: datetime,
        range_end: datetime,
    ) -> list[ExistingBooking]:
        with self._store._data_lock:
            return [
                ExistingBooking(
                    starts_at=b.starts_at,
                    ends_at=b.ends_at,
                    status=b.status.value,
                    metadata=b.metadata,
                    id=b.id,
                )
                for b in self._store._bookings.values()
                if b.organizer_id == organizer_id
                and b.status is BookingStatus.confirmed
                and overlaps(b.starts_at, b.ends_at, range_start, range_end)
            ]

    def insert_booking(self, booking: NewBooking) -> Booking:
        with self._store._data_lock:
            for existing in self._store._bookings.values():
                if (
                    existing.status is BookingStatus.confirmed
                    and existing.organizer_id == booking.organizer_id
                    and existing.starts_at == booking.starts_at
                    and existing.ends_at == booking.ends_at
                ):
                    raise BookingUniqueConstraintError("bookings_unique_slot")

            row = Booking(
                id=str(uuid.uuid4()),
                event_type_id=booking.event_type_id,
                organizer_id=booking.organizer_id,
                invitee_name=booking.invitee_name,
                invitee_email=booking.invitee_email,
                starts_at=booking.starts_at,
                ends_at=booking.ends_at,
                status=BookingStatus.confirmed,
                metadata=booking.metadata,
                rescheduled_from_booking_id=booking.rescheduled_from_booking_id,
                created_at=datetime.now(timezone.utc),
            )
            self._store._bookings[row.id] = row
            self._undo.append(lambda: self._store._bookings.pop(row.id, None))
            return row

    def insert_action_tokens(self, booking_id: str, tokens: list[IssuedActionToken]) -> None:
        with self._store._data_lock:
            existing = self._store._tokens.values()
            for issued in tokens:
                if any(t.booking_id == booking_id and t.action_type == issued.action_type for t in existing):
                    raise ValueError(f"Action token already exists for {booking_id}/{issued.action_type.value}")
                row = BookingActionToken(
                    id=str(uuid.uuid4()),
                    booking_id=booking_id,
                    action_type=issued.action_type,
                    token_hash=issued.token_hash,
                    expires_at=issued.expires_at,
                )
                self._store._tokens[row.id] = row
                self._undo.append(lambda token_id=row.id: self._store._tokens.pop(token_id, None))

    def lock_action_token(self, token_hash: str) -> ActionTokenContext | None:
        # Row locks are held by the enclosing transaction; re-read current state.
        return self._store.find_action_token(token_hash)

    def get_booking(self, booking_id: str) -> Booking | None:
        return self._store.get_booking(booking_id)

    def _update_booking(self, booking_id: str, **changes) -> Booking:
        with self._store._data_lock:
            previous = self._store._bookings[booking_id]
            updated = replace(previous, **changes)
            self._store._bookings[booking_id] = updated
            self._undo.append(lambda: self._store._bookings.__setitem__(booking_id, previous))
            return updated

    def mark_booking_canceled(
        self,
        booking_id: str,
        canceled_at: datetime,
        reason: str | None,
        canceled_by: str | None = None,
    ) -> Booking:
        return self._update_booking(
            booking_id,
            status=BookingStatus.canceled,
            canceled_at=canceled_at,
            cancellation_reason=reason,
            canceled_by=canceled_by,
        )

    def mark_booking_rescheduled(self, booking_id: str) -> Booking:
        return self._update_booking(booking_id, status=BookingStatus.rescheduled)

    def consume_action_token(
        self,
        token_id: str,
        consumed_at: datetime,
        consumed_booking_id: str | None = None,
    ) -> None:
        with self._store._data_lock:
            previous = self._store._tokens[token_id]
            self._store._tokens[token_id] = replace(
                previous,
                consumed_at=consumed_at,
                consumed_booking_id=consumed_booking_id,
            )
            self._undo.append(lambda: self._store._tokens.__setitem__(token_id, previous))
