from datetime import datetime, timezone
from typing import Optional, Union

from errors import QueryError

# Fixed-width RFC 3339 in UTC, so lexical order of stored values is time order.
TIMESTAMP_FORMAT = '%Y-%m-%dT%H:%M:%S.%f+00:00'

TimeBound = Union[None, str, datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """Serialize a datetime to the stored timestamp form (naive values are UTC)."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT)


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 string into an aware UTC datetime."""
    if not isinstance(value, str):
        raise TypeError(f"Timestamp must be a string, got {type(value).__name__}")
    text = value.strip()
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def normalize_bound(value: TimeBound) -> Optional[str]:
    """
    Convert a query bound into the stored timestamp form.

    Raises:
        QueryError: If the bound is a string that is not ISO-8601.
    """
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return format_timestamp(value)
    try:
        return format_timestamp(parse_timestamp(value))
    except (TypeError, ValueError) as e:
        raise QueryError(f"Invalid time bound {value!r}: {e}")


def calculate_uptime_percentage(online_samples, total_samples):
    """Calculate uptime percentage"""
    if total_samples == 0:
        return 0.0
    return (online_samples * 100) / total_samples
