"""Conversions between engine timestamps and storage datetimes.

Engine models carry Unix-second floats; the database stores
timezone-aware UTC datetimes.
"""

from datetime import datetime, timezone


def datetime_to_timestamp(dt: datetime) -> float:
    """Convert datetime to Unix timestamp."""
    return dt.timestamp()


def timestamp_to_datetime(ts: float) -> datetime:
    """Convert Unix timestamp to UTC datetime."""
    return datetime.fromtimestamp(ts, tz=timezone.utc)
