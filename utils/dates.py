"""Date helpers shared by models and API payloads."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Naive UTC timestamp, matching how the models store datetimes."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_iso(value: Optional[datetime]) -> Optional[str]:
    """Format a datetime as ISO-8601 UTC with millisecond precision and a ``Z`` suffix.

    Naive values are treated as UTC. ``1700000000`` seconds formats as
    ``2023-11-14T22:13:20.000Z``.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def from_epoch_seconds(raw: object) -> Optional[datetime]:
    """Parse an epoch-seconds header value into an aware UTC datetime."""
    if raw is None:
        return None
    try:
        return datetime.fromtimestamp(int(str(raw).strip()), tz=timezone.utc)
    except (ValueError, OverflowError, OSError):
        return None


def parse_iso(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 string (``Z`` allowed) into a naive UTC datetime."""
    if not value:
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed
