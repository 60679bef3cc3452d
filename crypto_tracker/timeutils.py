"""
Single source for "now" time. Supports deterministic mode for tests via
CRYPTO_TRACKER_DETERMINISTIC_TIME (ISO format, e.g. 2026-01-01T00:00:00Z).
"""

from __future__ import annotations

import os
from datetime import datetime, timezone


def utc_now() -> datetime:
    """
    Return the current time as an aware UTC datetime.
    If env CRYPTO_TRACKER_DETERMINISTIC_TIME is set, return that instant instead.
    """
    fixed = os.environ.get("CRYPTO_TRACKER_DETERMINISTIC_TIME", "").strip()
    if fixed:
        return parse_utc(fixed)
    return datetime.now(timezone.utc)


def parse_utc(value: str) -> datetime:
    """Parse an ISO timestamp; naive values are taken as UTC, 'Z' suffix accepted."""
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def to_iso(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat(timespec="seconds")


def from_unix_ms(ms: float) -> datetime:
    return datetime.fromtimestamp(float(ms) / 1000.0, tz=timezone.utc)
