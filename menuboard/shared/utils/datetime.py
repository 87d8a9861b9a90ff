"""
UTC datetime utilities for consistent timezone handling.

All datetime values in the system should be timezone-aware UTC.
Use these helpers instead of datetime.now() or datetime.fromtimestamp().
"""

from datetime import UTC, datetime


def utc_now() -> datetime:
    """Return the current UTC datetime with timezone info."""
    return datetime.now(UTC)


def from_timestamp_utc(timestamp: float) -> datetime:
    """
    Create a UTC-aware datetime from a Unix timestamp (e.g. os.stat st_mtime).

    Use instead of datetime.fromtimestamp() which returns naive local time.
    """
    return datetime.fromtimestamp(timestamp, tz=UTC)
