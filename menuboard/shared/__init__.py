"""Shared utilities: enums, telemetry, and cross-cutting helpers.

Used by domain, application, and infrastructure. No business logic.
"""

from menuboard.shared.enums import ProviderType
from menuboard.shared.utils import from_timestamp_utc, utc_now

__all__ = [
    "ProviderType",
    "from_timestamp_utc",
    "utc_now",
]
