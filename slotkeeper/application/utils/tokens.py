from __future__ import annotations

import hashlib
import secrets
from datetime import datetime, timedelta

from slotkeeper.domain.entities.action_token import ActionType, IssuedActionToken


def create_raw_token() -> str:
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def issue_action_tokens(now: datetime, ttl_days: int) -> list[IssuedActionToken]:
    """Mint one cancel and one reschedule token. Expiry does not depend on the meeting time."""
    expires_at = now + timedelta(days=ttl_days)
    issued: list[IssuedActionToken] = []
    for action_type in (ActionType.cancel, ActionType.reschedule):
        raw = create_raw_token()
        issued.append(
            IssuedActionToken(
                action_type=action_type,
                raw_token=raw,
                token_hash=hash_token(raw),
                expires_at=expires_at,
            )
        )
    return issued
