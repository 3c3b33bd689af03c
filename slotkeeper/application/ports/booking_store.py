from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Callable, TypeVar

from slotkeeper.domain.entities.action_token import ActionTokenContext, IssuedActionToken
from slotkeeper.domain.entities.availability import (
    AvailabilityOverride,
    AvailabilityRule,
    BusyWindow,
    ExistingBooking,
)
from slotkeeper.domain.entities.booking import Booking, EventType, NewBooking


T = TypeVar("T")


class BookingTransactionPort(ABC):
    """Row-locking, transaction-scoped access used while committing a booking."""

    @abstractmethod
    def lock_event_type(self, event_type_id: str) -> None:
        """Lock the event type row (and implicitly its owning user) until the transaction ends."""
        raise NotImplementedError

    @abstractmethod
    def list_rules(self, user_id: str) -> list[AvailabilityRule]:
        raise NotImplementedError

    @abstractmethod
    def list_overrides(self, user_id: str, range_start: datetime, range_end: datetime) -> list[AvailabilityOverride]:
        raise NotImplementedError

    @abstractmethod
    def list_external_busy_windows(self, user_id: str, range_start: datetime, range_end: datetime) -> list[BusyWindow]:
        raise NotImplementedError

    @abstractmethod
    def list_confirmed_bookings(
        self,
        organizer_id: str,
        range_start: datetime,
        range_end: datetime,
    ) -> list[ExistingBooking]:
        raise NotImplementedError

    @abstractmethod
    def insert_booking(self, booking: NewBooking) -> Booking:
        """
        Persist a new confirmed booking.
        Must raise BookingUniqueConstraintError when (organizer_id, starts_at, ends_at) is taken.
        """
        raise NotImplementedError

    @abstractmethod
    def insert_action_tokens(self, booking_id: str, tokens: list[IssuedActionToken]) -> None:
        """Persist token hashes only. Unique per (booking_id, action_type)."""
        raise NotImplementedError


class BookingActionTransactionPort(BookingTransactionPort):
    """Transaction used by cancel/reschedule links."""

    @abstractmethod
    def lock_action_token(self, token_hash: str) -> ActionTokenContext | None:
        """Lock the token and its booking row, returning their current state."""
        raise NotImplementedError

    @abstractmethod
    def get_booking(self, booking_id: str) -> Booking | None:
        raise NotImplementedError

    @abstractmethod
    def mark_booking_canceled(
        self,
        booking_id: str,
        canceled_at: datetime,
        reason: str | None,
        canceled_by: str | None = None,
    ) -> Booking:
        raise NotImplementedError

    @abstractmethod
    def mark_booking_rescheduled(self, booking_id: str) -> Booking:
        raise NotImplementedError

    @abstractmethod
    def consume_action_token(
        self,
        token_id: str,
        consumed_at: datetime,
        consumed_booking_id: str | None = None,
    ) -> None:
        raise NotImplementedError


class BookingDataAccessPort(ABC):
    @abstractmethod
    def get_public_event_type(self, username: str, slug: str) -> EventType | None:
        raise NotImplementedError

    @abstractmethod
    def read_schedule(
        self,
        user_id: str,
        range_start: datetime,
        range_end: datetime,
    ) -> tuple[list[AvailabilityRule], list[AvailabilityOverride], list[ExistingBooking]]:
        """Unlocked snapshot for rendering availability. Busy windows come back as confirmed bookings."""
        raise NotImplementedError

    @abstractmethod
    def with_event_type_transaction(
        self,
        event_type_id: str,
        callback: Callable[[BookingTransactionPort], T],
    ) -> T:
        """Run callback inside one transaction; any exception rolls it back and propagates."""
        raise NotImplementedError

    @abstractmethod
    def find_action_token(self, token_hash: str) -> ActionTokenContext | None:
        """Unlocked read, for inspecting a link without acting on it."""
        raise NotImplementedError

    @abstractmethod
    def with_action_token_transaction(
        self,
        token_hash: str,
        callback: Callable[[BookingActionTransactionPort], T],
    ) -> T:
        """
        Run callback inside one transaction scoped to the token's booking.
        Locks are taken in the same order as commits: event type, then booking.
        """
        raise NotImplementedError
