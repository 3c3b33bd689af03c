from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone

from slotkeeper.core.config import settings
from slotkeeper.domain.entities.webhook import WebhookDeliveryAttempt


def delay_seconds(
    attempt_number: int,
    base_seconds: int | None = None,
    max_seconds: int | None = None,
) -> int:
    """Exponential backoff: base * 2^(attempt-1), capped. Attempts below 1 count as 1."""
    if base_seconds is None:
        base_seconds = settings.WEBHOOK_RETRY_BASE_SECONDS
    if max_seconds is None:
        max_seconds = settings.WEBHOOK_RETRY_MAX_SECONDS
    attempt = max(1, math.floor(attempt_number))
    # The cap always wins past this exponent.
    if attempt > 64:
        return max_seconds
    return min(max_seconds, base_seconds * 2 ** (attempt - 1))


def next_attempt_at(attempt_number: int, now: datetime | None = None) -> datetime:
    now = now or datetime.now(timezone.utc)
    return now + timedelta(seconds=delay_seconds(attempt_number))


def is_exhausted(attempt_count: int, max_attempts: int | None = None) -> bool:
    if max_attempts is None:
        max_attempts = settings.WEBHOOK_DEFAULT_MAX_ATTEMPTS
    return attempt_count >= max_attempts


def schedule_failure(attempt: WebhookDeliveryAttempt, now: datetime | None = None) -> WebhookDeliveryAttempt | None:
    """
    Record one more failed attempt.
    Returns the next retry state, or None when the delivery is exhausted.
    """
    attempt_count = attempt.attempt_count + 1
    if is_exhausted(attempt_count, attempt.max_attempts):
        return None
    return WebhookDeliveryAttempt(
        attempt_count=attempt_count,
        next_attempt_at=next_attempt_at(attempt_count, now),
        max_attempts=attempt.max_attempts,
    )
