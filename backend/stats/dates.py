"""
Normalisation of the date values found on studio documents.

Class instance and attendance dates arrive as Firestore timestamps
(``datetime`` subclasses), ISO-8601 strings written by the import wizard,
epoch numbers, or JSON-encoded timestamps (``{"seconds": ..}`` /
``{"_seconds": ..}``) in change-event payloads.
"""

from __future__ import annotations

from datetime import date, datetime, time, timezone
from typing import Any, Optional

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# Epoch values above this are treated as milliseconds
_MILLIS_THRESHOLD = 100_000_000_000


def to_utc_datetime(value: Any) -> Optional[datetime]:
    """Convert a stored date value to an aware UTC datetime, or None."""
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    if isinstance(value, date):
        return datetime.combine(value, time(), tzinfo=timezone.utc)

    if isinstance(value, (int, float)):
        seconds = value / 1000 if abs(value) >= _MILLIS_THRESHOLD else value
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None

    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return to_utc_datetime(datetime.fromisoformat(text))
        except ValueError:
            return None

    if isinstance(value, dict):
        seconds = value.get("seconds", value.get("_seconds"))
        if isinstance(seconds, (int, float)) and not isinstance(seconds, bool):
            nanos = value.get("nanoseconds", value.get("_nanoseconds")) or 0
            return to_utc_datetime(seconds + nanos / 1_000_000_000)
        return None

    return None


def sort_key(value: Any, doc_id: str):
    """Ascending date order; missing dates first, ties broken by document id."""
    return (to_utc_datetime(value) or EPOCH, doc_id or "")
