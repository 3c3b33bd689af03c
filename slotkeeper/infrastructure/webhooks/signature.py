from __future__ import annotations

import hmac
import logging
import time

from slotkeeper.core.config import settings


logger = logging.getLogger(__name__)


def create_signature(secret: str, serialized_payload: str, timestamp_seconds: int) -> str:
    message = f"{timestamp_seconds}.{serialized_payload}".encode("utf-8")
    return hmac.new(secret.encode("utf-8"), message, "sha256").hexdigest()


def build_signature_header(secret: str, serialized_payload: str, timestamp_seconds: int) -> str:
    return f"t={timestamp_seconds},v1={create_signature(secret, serialized_payload, timestamp_seconds)}"


def parse_signature_header(header: str | None) -> tuple[int, str] | None:
    if not header:
        return None

    parts: dict[str, str] = {}
    for item in header.split(","):
        key, sep, value = item.strip().partition("=")
        if sep:
            parts[key] = value

    try:
        timestamp = int(parts["t"])
    except (KeyError, ValueError):
        return None

    signature = parts.get("v1")
    if not signature:
        return None
    return timestamp, signature


def verify_signature_header(
    header: str | None,
    serialized_payload: str,
    secret: str | None,
    tolerance_seconds: int | None = settings.WEBHOOK_SIGNATURE_TOLERANCE_SECONDS,
    now_ts: float | None = None,
) -> bool:
    if not secret:
        logger.error("Missing webhook secret for signature verification")
        return False

    parsed = parse_signature_header(header)
    if parsed is None:
        return False
    timestamp, signature = parsed

    if tolerance_seconds is not None:
        now_ts = time.time() if now_ts is None else now_ts
        if abs(now_ts - timestamp) > tolerance_seconds:
            logger.warning("Webhook signature timestamp outside tolerance", extra={"timestamp": timestamp})
            return False

    expected = create_signature(secret, serialized_payload, timestamp)
    return hmac.compare_digest(expected, signature)
