from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class WebhookDeliveryAttempt:
    attempt_count: int
    next_attempt_at: datetime
    max_attempts: int = 6
