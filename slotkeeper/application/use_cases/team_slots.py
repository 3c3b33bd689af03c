from __future__ import annotations

from datetime import datetime
from typing import Iterable

from slotkeeper.application.use_cases.compute_slots import compute_slots
from slotkeeper.domain.entities.availability import SlotKey
from slotkeeper.domain.entities.team import (
    TeamMemberSchedule,
    TeamSchedulingMode,
    TeamSlot,
    TeamSlotMatrixEntry,
    TeamSlotsResult,
)


def normalize_cursor(cursor: int, total: int) -> int:
    if total <= 0:
        return 0
    # Python's modulo already wraps negatives into [0, total)
    return int(cursor) % total


def _ordered_members(members: list[TeamMemberSchedule]) -> list[TeamMemberSchedule]:
    by_id = {member.user_id: member for member in members}
    return [by_id[user_id] for user_id in sorted(by_id)]


def compute_team_slot_matrix(
    members: list[TeamMemberSchedule],
    range_start: str | datetime | None,
    days: int,
    duration_minutes: int,
) -> dict[SlotKey, TeamSlotMatrixEntry]:
    """Run the slot engine per member and index who is free at each slot."""
    matrix: dict[SlotKey, TeamSlotMatrixEntry] = {}

    for member in members:
        slots = compute_slots(
            organizer_timezone=member.timezone,
            range_start=range_start,
            days=days,
            duration_minutes=duration_minutes,
            rules=member.rules,
            overrides=member.overrides,
            bookings=member.bookings,
        )
        for slot in slots:
            entry = matrix.get(slot.key)
            if entry is None:
                entry = TeamSlotMatrixEntry(starts_at=slot.starts_at, ends_at=slot.ends_at)
                matrix[slot.key] = entry
            entry.by_user_id[member.user_id] = slot

    return matrix


def choose_round_robin_assignee(
    ordered_member_ids: list[str],
    available_member_ids: Iterable[str],
    cursor: int,
) -> tuple[str, int] | None:
    """
    Pick the first available member at or after the cursor.

    Returns (assignee_user_id, next_cursor) or None when nobody is free.
    next_cursor points one past the assignee, wrapping around.
    """
    total = len(ordered_member_ids)
    if total == 0:
        return None

    available = set(available_member_ids)
    start_index = normalize_cursor(cursor, total)
    for offset in range(total):
        index = (start_index + offset) % total
        candidate = ordered_member_ids[index]
        if candidate in available:
            return candidate, (index + 1) % total
    return None


def _collective_slots(
    matrix: dict[SlotKey, TeamSlotMatrixEntry],
    member_ids: list[str],
) -> list[TeamSlot]:
    slots: list[TeamSlot] = []
    for key in sorted(matrix):
        entry = matrix[key]
        if not all(user_id in entry.by_user_id for user_id in member_ids):
            continue
        slots.append(
            TeamSlot(
                starts_at=entry.starts_at,
                ends_at=entry.ends_at,
                assignment_user_ids=tuple(member_ids),
                buffer_before_minutes=max(s.buffer_before_minutes for s in entry.by_user_id.values()),
                buffer_after_minutes=max(s.buffer_after_minutes for s in entry.by_user_id.values()),
            )
        )
    return slots


def compute_team_slots(
    mode: TeamSchedulingMode | str,
    members: list[TeamMemberSchedule],
    range_start: str | datetime | None,
    days: int,
    duration_minutes: int,
    round_robin_cursor: int = 0,
) -> TeamSlotsResult:
    """
    Compose per-member availability into team slots.

    Members are ordered by user_id so round-robin rotation is reproducible.
    The cursor is caller-owned: feed next_cursor back on the following call.
    """
    ordered = _ordered_members(members)
    if not ordered:
        return TeamSlotsResult(slots=[], next_cursor=0)

    member_ids = [member.user_id for member in ordered]
    matrix = compute_team_slot_matrix(ordered, range_start, days, duration_minutes)
    cursor = normalize_cursor(round_robin_cursor, len(member_ids))

    if TeamSchedulingMode(mode) is TeamSchedulingMode.collective:
        return TeamSlotsResult(slots=_collective_slots(matrix, member_ids), next_cursor=cursor)

    slots: list[TeamSlot] = []
    for key in sorted(matrix):
        entry = matrix[key]
        selection = choose_round_robin_assignee(member_ids, entry.by_user_id.keys(), cursor)
        if selection is None:
            continue
        assignee, cursor = selection
        member_slot = entry.by_user_id[assignee]
        slots.append(
            TeamSlot(
                starts_at=entry.starts_at,
                ends_at=entry.ends_at,
                assignment_user_ids=(assignee,),
                buffer_before_minutes=member_slot.buffer_before_minutes,
                buffer_after_minutes=member_slot.buffer_after_minutes,
            )
        )

    return TeamSlotsResult(slots=slots, next_cursor=cursor)
