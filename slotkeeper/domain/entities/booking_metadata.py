from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class TeamAssignment:
    team_id: str
    team_event_type_id: str
    mode: str  # "round_robin" | "collective"
    assignment_user_ids: tuple[str, ...] = ()
    team_slug: str | None = None


@dataclass(frozen=True)
class BookingMetadata:
    answers: dict[str, str] = field(default_factory=dict)
    timezone: str | None = None
    buffer_before_minutes: int | None = None
    buffer_after_minutes: int | None = None
    team: TeamAssignment | None = None
