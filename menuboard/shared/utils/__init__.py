"""Shared utilities: datetime."""

from menuboard.shared.utils.datetime import from_timestamp_utc, utc_now

__all__ = [
    "utc_now",
    "from_timestamp_utc",
]
