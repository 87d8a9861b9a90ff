"""Core: config, rate limiting, exception handlers and application bootstrap.

Single place for settings.
"""

from menuboard.core.config import Settings, get_settings

__all__ = ["Settings", "get_settings"]
