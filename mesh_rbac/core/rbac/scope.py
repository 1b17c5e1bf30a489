"""Mesh-wide RBAC scope resolution.

Decides from the ``RbacConfig`` singleton whether RBAC policies apply to a
(service, namespace) pair at all:

============================  ==============================================
Mode                          Active for
============================  ==============================================
OFF (or no RbacConfig)        nothing
ON                            everything
ON_WITH_INCLUSION             service or namespace listed in ``inclusion``
ON_WITH_EXCLUSION             everything except listed in ``exclusion``
============================  ==============================================

Membership tests are exact; unlike access rules there is no prefix or
suffix matching here.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from mesh_rbac.core.rbac.models import RbacConfigMode

if TYPE_CHECKING:
    from mesh_rbac.core.rbac.models import RbacConfig

__all__ = ["ScopeResolver", "ScopeResult", "ScopeStatus", "is_rbac_enabled"]


class ScopeStatus(str, Enum):
    ACTIVE = "active"
    DISABLED = "disabled"
    OUT_OF_SCOPE = "out_of_scope"


@dataclass(frozen=True)
class ScopeResult:
    """Outcome of a scope check."""

    status: ScopeStatus
    mode: RbacConfigMode

    @property
    def active(self) -> bool:
        return self.status is ScopeStatus.ACTIVE


class ScopeResolver:
    """Applies an ``RbacConfig`` to (service, namespace) pairs.

    Example:
        >>> from mesh_rbac.core.rbac.models import RbacConfig, Target
        >>> resolver = ScopeResolver(
        ...     RbacConfig(mode="ON_WITH_INCLUSION", inclusion=Target(namespaces=("ns1",)))
        ... )
        >>> resolver.is_active("svc.ns1.svc.cluster.local", "ns1")
        True
        >>> resolver.is_active("svc.ns2.svc.cluster.local", "ns2")
        False
    """

    def __init__(self, config: RbacConfig | None) -> None:
        self.config = config

    @property
    def mode(self) -> RbacConfigMode:
        return self.config.mode if self.config is not None else RbacConfigMode.OFF

    def resolve(self, service: str, namespace: str) -> ScopeResult:
        config = self.config
        if config is None or config.mode is RbacConfigMode.OFF:
            return ScopeResult(ScopeStatus.DISABLED, RbacConfigMode.OFF)

        mode = config.mode
        if mode is RbacConfigMode.ON:
            return ScopeResult(ScopeStatus.ACTIVE, mode)
        if mode is RbacConfigMode.ON_WITH_INCLUSION:
            included = config.inclusion.contains(service, namespace)
            return ScopeResult(
                ScopeStatus.ACTIVE if included else ScopeStatus.OUT_OF_SCOPE, mode
            )

        excluded = config.exclusion.contains(service, namespace)
        return ScopeResult(ScopeStatus.OUT_OF_SCOPE if excluded else ScopeStatus.ACTIVE, mode)

    def is_active(self, service: str, namespace: str) -> bool:
        return self.resolve(service, namespace).active


def is_rbac_enabled(config: RbacConfig | None, service: str, namespace: str) -> bool:
    """Shortcut for ``ScopeResolver(config).is_active(service, namespace)``."""
    return ScopeResolver(config).is_active(service, namespace)
