"""Modular Pydantic Settings v2 configuration.

Settings are split by domain (rbac/logging), frozen, and loaded through
LRU-cached loaders:

    from mesh_rbac.core.settings import get_rbac_settings

    settings = get_rbac_settings()
    print(settings.policy_paths)

Configuration precedence (highest to lowest):
    1. init kwargs (testing/overrides)
    2. YAML/conf.d files (conf/rbac.yaml, conf/rbac.d/*.yaml, ...)
    3. Environment variables (RBAC_*, LOG_*)
    4. .env file (development only)
    5. secrets_dir (Kubernetes/Docker secrets)
"""

from __future__ import annotations

from .loader import clear_all_caches, get_logging_settings, get_rbac_settings
from .logs import LoggingSettings
from .rbac import RbacSettings

__all__ = [
    "LoggingSettings",
    "RbacSettings",
    "clear_all_caches",
    "get_logging_settings",
    "get_rbac_settings",
]
