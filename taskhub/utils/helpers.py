"""Shared parsing helpers for blueprints and services."""
from datetime import datetime, timezone


def parse_datetime(value):
    """Parse an ISO datetime string into a naive UTC datetime.

    Stored datetimes are naive UTC (SQLite drops tzinfo), so aware inputs
    are converted and stripped. Returns None for empty input.
    """
    if not value:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value)
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError as exc:
            raise ValueError("Invalid datetime format. Use ISO 8601.") from exc
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def utcnow() -> datetime:
    """Naive UTC now, comparable with stored DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
