from __future__ import annotations

import logging
from datetime import datetime, timezone
from zoneinfo import ZoneInfo


logger = logging.getLogger(__name__)

UTC = ZoneInfo("UTC")

# Instants outside this window leave no room for day ranges and buffers.
EARLIEST_INSTANT = datetime(1000, 1, 1, tzinfo=timezone.utc)
LATEST_INSTANT = datetime(9000, 1, 1, tzinfo=timezone.utc)


def safe_timezone(name: str | None) -> ZoneInfo:
    """Resolve an IANA zone name, falling back to UTC for anything unknown."""
    if not name or not name.strip():
        return UTC
    try:
        return ZoneInfo(name.strip())
    except Exception:
        logger.debug("Unknown timezone, using UTC", extra={"timezone": name})
        return UTC


def normalize_timezone_name(name: str | None) -> str:
    return safe_timezone(name).key


def parse_utc_instant(value: str | datetime | None) -> datetime | None:
    """
    Parse an ISO-8601 string (or datetime) into an aware UTC datetime.
    Naive values are taken as UTC. Returns None when unparseable or outside
    the supported scheduling window.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if not text:
            return None
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    try:
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        else:
            parsed = parsed.astimezone(timezone.utc)
    except OverflowError:
        return None
    if not EARLIEST_INSTANT <= parsed < LATEST_INSTANT:
        return None
    return parsed


def to_iso(value: datetime) -> str:
    """UTC ISO string with millisecond precision and a Z suffix."""
    utc_value = value.astimezone(timezone.utc)
    return utc_value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc_value.microsecond // 1000:03d}Z"
