"""
Parse-or-default handling for the loosely typed booking metadata blob.

Availability must never fail on legacy or malformed metadata, so every reader
here degrades to defaults instead of raising.
"""

from __future__ import annotations

import json
import math
from typing import Any, Callable

from slotkeeper.domain.entities.booking_metadata import BookingMetadata, TeamAssignment


# Roughly 19 years; anything larger is treated as corrupt.
MAX_BUFFER_MINUTES = 10_000_000


def _load_object(raw: str | None) -> dict[str, Any] | None:
    if not raw:
        return None
    try:
        parsed = json.loads(raw)
    except (TypeError, ValueError):
        return None
    return parsed if isinstance(parsed, dict) else None


def _non_negative_number(value: Any) -> int | float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value) or value < 0 or value > MAX_BUFFER_MINUTES:
        return None
    return value


def read_booking_buffers(raw: str | None) -> tuple[int | float, int | float]:
    """Buffers frozen on a booking at commit time; (0, 0) when absent or invalid."""
    data = _load_object(raw)
    if data is None:
        return 0, 0
    before = _non_negative_number(data.get("bufferBeforeMinutes"))
    after = _non_negative_number(data.get("bufferAfterMinutes"))
    return before or 0, after or 0


def _parse_team(value: Any) -> TeamAssignment | None:
    if not isinstance(value, dict):
        return None
    team_id = value.get("teamId")
    team_event_type_id = value.get("teamEventTypeId")
    mode = value.get("mode")
    user_ids = value.get("assignmentUserIds")
    if not isinstance(team_id, str) or not isinstance(team_event_type_id, str):
        return None
    if mode not in ("round_robin", "collective") or not isinstance(user_ids, list):
        return None
    team_slug = value.get("teamSlug")
    return TeamAssignment(
        team_id=team_id,
        team_event_type_id=team_event_type_id,
        mode=mode,
        assignment_user_ids=tuple(uid for uid in user_ids if isinstance(uid, str)),
        team_slug=team_slug if isinstance(team_slug, str) and team_slug else None,
    )


def parse_booking_metadata(
    raw: str | None,
    normalize_timezone: Callable[[str], str] | None = None,
) -> BookingMetadata:
    data = _load_object(raw)
    if data is None:
        return BookingMetadata()

    answers_raw = data.get("answers")
    answers = (
        {str(k): v for k, v in answers_raw.items() if isinstance(v, str)}
        if isinstance(answers_raw, dict)
        else {}
    )

    timezone = data.get("timezone")
    if isinstance(timezone, str) and timezone.strip():
        timezone = normalize_timezone(timezone) if normalize_timezone else timezone.strip()
    else:
        timezone = None

    before = _non_negative_number(data.get("bufferBeforeMinutes"))
    after = _non_negative_number(data.get("bufferAfterMinutes"))

    return BookingMetadata(
        answers=answers,
        timezone=timezone,
        buffer_before_minutes=before,
        buffer_after_minutes=after,
        team=_parse_team(data.get("team")),
    )


def serialize_booking_metadata(metadata: BookingMetadata) -> str:
    data: dict[str, Any] = {"answers": dict(metadata.answers)}
    if metadata.timezone is not None:
        data["timezone"] = metadata.timezone
    if metadata.buffer_before_minutes is not None:
        data["bufferBeforeMinutes"] = metadata.buffer_before_minutes
    if metadata.buffer_after_minutes is not None:
        data["bufferAfterMinutes"] = metadata.buffer_after_minutes
    if metadata.team is not None:
        team: dict[str, Any] = {
            "teamId": metadata.team.team_id,
            "teamEventTypeId": metadata.team.team_event_type_id,
            "mode": metadata.team.mode,
            "assignmentUserIds": list(metadata.team.assignment_user_ids),
        }
        if metadata.team.team_slug:
            team["teamSlug"] = metadata.team.team_slug
        data["team"] = team
    return json.dumps(data)
