from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from slotkeeper.domain.entities.availability import (
    AvailabilityOverride,
    AvailabilityRule,
    AvailabilitySlot,
    ExistingBooking,
)


class TeamSchedulingMode(str, Enum):
    round_robin = "round_robin"
    collective = "collective"


@dataclass(frozen=True)
class TeamMemberSchedule:
    user_id: str
    timezone: str
    rules: list[AvailabilityRule] = field(default_factory=list)
    overrides: list[AvailabilityOverride] = field(default_factory=list)
    bookings: list[ExistingBooking] = field(default_factory=list)


@dataclass(frozen=True)
class TeamSlot:
    starts_at: datetime
    ends_at: datetime
    assignment_user_ids: tuple[str, ...]
    buffer_before_minutes: int = 0
    buffer_after_minutes: int = 0


@dataclass
class TeamSlotMatrixEntry:
    starts_at: datetime
    ends_at: datetime
    by_user_id: dict[str, AvailabilitySlot] = field(default_factory=dict)


@dataclass(frozen=True)
class TeamSlotsResult:
    slots: list[TeamSlot]
    next_cursor: int
