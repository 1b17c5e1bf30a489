"""LRU-cached settings loaders.

Settings are loaded and validated once, then cached for the lifetime of the
process.

Usage:
    from mesh_rbac.core.settings.loader import get_rbac_settings

    settings = get_rbac_settings()  # First call: loads and validates
    settings = get_rbac_settings()  # Subsequent calls: returns cached instance

Testing:
    In tests, clear the cache to force reload:
    clear_all_caches()

    Or override with custom values:
    settings = RbacSettings(policy_paths=[tmp_path])
"""

from __future__ import annotations

from functools import lru_cache

from .logs import LoggingSettings
from .rbac import RbacSettings


@lru_cache(maxsize=1)
def get_rbac_settings() -> RbacSettings:
    """Get cached RBAC settings.

    Returns:
        Validated and frozen RbacSettings instance.
    """
    return RbacSettings()


@lru_cache(maxsize=1)
def get_logging_settings() -> LoggingSettings:
    """Get cached logging settings.

    Returns:
        Validated and frozen LoggingSettings instance.
    """
    return LoggingSettings()


def clear_all_caches() -> None:
    """Clear all settings caches.

    Useful for testing or when you need to force reload settings.
    In production, prefer process restarts over cache clearing.
    """
    get_rbac_settings.cache_clear()
    get_logging_settings.cache_clear()
