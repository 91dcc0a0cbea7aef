"""
Local configuration package for embedded-cassandra.

Exposes the merged runtime settings through the `app_settings` singleton.
"""

from .config import app_settings, MergedSettings

__all__ = ["app_settings", "MergedSettings"]
