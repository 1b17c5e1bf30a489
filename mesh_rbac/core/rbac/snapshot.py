"""Immutable policy snapshots and the store that swaps them.

A ``PolicySnapshot`` is an indexed, read-only view of one consistent set of
configuration objects. Decisions only ever read a snapshot, so any number of
them can run concurrently without locking. ``PolicyStore`` holds the current
snapshot behind a single reference: replacing it is atomic, and decisions
already in flight keep the snapshot they started with.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
import threading
from types import MappingProxyType
from typing import TYPE_CHECKING

from mesh_rbac.core.exceptions import RbacConfigConflictError
from mesh_rbac.core.rbac.engine import DecisionEngine, log_decision
from mesh_rbac.core.rbac.models import (
    RbacConfigObject,
    ServiceRoleBindingObject,
    ServiceRoleObject,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping

    from mesh_rbac.core.rbac.engine import DecisionResult
    from mesh_rbac.core.rbac.models import ConfigObject, RbacConfig, ServiceRole
    from mesh_rbac.core.rbac.request import RequestContext
    from mesh_rbac.core.settings.rbac import RbacSettings

__all__ = ["PolicySnapshot", "PolicyStore"]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PolicySnapshot:
    """Read-only index of roles, bindings and the RbacConfig.

    Attributes:
        roles: ServiceRoles keyed by (namespace, name).
        bindings: ServiceRoleBindings per namespace, in load order.
        rbac_config: The mesh RbacConfig, or None (treated as OFF).
        version: Free-form label of where the snapshot came from.
    """

    roles: Mapping[tuple[str, str], ServiceRoleObject] = field(
        default_factory=lambda: MappingProxyType({})
    )
    bindings: Mapping[str, tuple[ServiceRoleBindingObject, ...]] = field(
        default_factory=lambda: MappingProxyType({})
    )
    rbac_config: RbacConfigObject | None = None
    version: str = ""

    @classmethod
    def build(cls, objects: Iterable[ConfigObject], version: str = "") -> PolicySnapshot:
        """Index configuration objects into a snapshot.

        Later objects with the same (kind, namespace, name) replace earlier
        ones, as a re-applied manifest would.

        Raises:
            RbacConfigConflictError: If more than one RbacConfig is present.
        """
        roles: dict[tuple[str, str], ServiceRoleObject] = {}
        bindings: dict[tuple[str, str], ServiceRoleBindingObject] = {}
        rbac_config: RbacConfigObject | None = None

        for obj in objects:
            if isinstance(obj, ServiceRoleObject):
                roles[(obj.namespace, obj.name)] = obj
            elif isinstance(obj, ServiceRoleBindingObject):
                bindings[(obj.namespace, obj.name)] = obj
            elif isinstance(obj, RbacConfigObject):
                if rbac_config is not None and (
                    rbac_config.namespace,
                    rbac_config.name,
                ) != (obj.namespace, obj.name):
                    raise RbacConfigConflictError(existing=rbac_config.ref, rejected=obj.ref)
                rbac_config = obj
            else:
                msg = f"Unsupported configuration object: {type(obj).__name__}"
                raise TypeError(msg)

        by_namespace: dict[str, list[ServiceRoleBindingObject]] = {}
        for (namespace, _), binding in bindings.items():
            by_namespace.setdefault(namespace, []).append(binding)

        return cls(
            roles=MappingProxyType(dict(roles)),
            bindings=MappingProxyType(
                {namespace: tuple(items) for namespace, items in by_namespace.items()}
            ),
            rbac_config=rbac_config,
            version=version,
        )

    @property
    def config(self) -> RbacConfig | None:
        return self.rbac_config.spec if self.rbac_config is not None else None

    def get_role(self, namespace: str, name: str) -> ServiceRole | None:
        role = self.roles.get((namespace, name))
        return role.spec if role is not None else None

    def bindings_for(self, namespace: str) -> tuple[ServiceRoleBindingObject, ...]:
        """Bindings consulted for requests to services in ``namespace``."""
        return self.bindings.get(namespace, ())

    def objects(self) -> list[ConfigObject]:
        """All objects in the snapshot, roles first."""
        items: list[ConfigObject] = list(self.roles.values())
        for namespace_bindings in self.bindings.values():
            items.extend(namespace_bindings)
        if self.rbac_config is not None:
            items.append(self.rbac_config)
        return items

    def __len__(self) -> int:
        return (
            len(self.roles)
            + sum(len(items) for items in self.bindings.values())
            + (1 if self.rbac_config is not None else 0)
        )


class PolicyStore:
    """Holds the current snapshot and evaluates decisions against it.

    Readers never lock: ``current`` is a plain attribute read, and
    assignment of a new snapshot is atomic. Writers serialize on a lock so
    concurrent reloads cannot interleave.

    Example:
        >>> store = PolicyStore()
        >>> store.swap(PolicySnapshot.build(objects, version="v2"))
        >>> result = store.decide(request)
    """

    def __init__(
        self,
        snapshot: PolicySnapshot | None = None,
        loader: Callable[[], PolicySnapshot] | None = None,
        *,
        log_decisions: bool = False,
        log_permissive: bool = True,
    ) -> None:
        """Initialize the store.

        Args:
            snapshot: Initial snapshot; defaults to an empty one (RBAC off).
            loader: Callable producing a fresh snapshot, used by ``reload``.
            log_decisions: Log every verdict at INFO instead of DEBUG.
            log_permissive: Log permissive would-allow matches at INFO.
        """
        self._snapshot = snapshot if snapshot is not None else PolicySnapshot()
        self._loader = loader
        self._write_lock = threading.Lock()
        self.log_decisions = log_decisions
        self.log_permissive = log_permissive

    @classmethod
    def from_settings(cls, settings: RbacSettings | None = None) -> PolicyStore:
        """Create a store that loads manifests from ``settings.policy_paths``.

        The snapshot is loaded eagerly so configuration errors surface at
        startup rather than on the first request.
        """
        from mesh_rbac.core.rbac.loader import load_snapshot

        if settings is None:
            from mesh_rbac.core.settings import get_rbac_settings

            settings = get_rbac_settings()

        def loader() -> PolicySnapshot:
            return load_snapshot(
                settings.policy_paths,
                validate=settings.validate_on_load,
                default_namespace=settings.default_namespace,
            )

        return cls(
            loader(),
            loader,
            log_decisions=settings.log_decisions,
            log_permissive=settings.log_permissive,
        )

    @property
    def current(self) -> PolicySnapshot:
        return self._snapshot

    def swap(self, snapshot: PolicySnapshot) -> PolicySnapshot:
        """Replace the current snapshot and return the previous one."""
        with self._write_lock:
            previous = self._snapshot
            self._snapshot = snapshot
        logger.info(
            "RBAC policy snapshot swapped",
            extra={
                "previous_version": previous.version,
                "snapshot_version": snapshot.version,
                "object_count": len(snapshot),
            },
        )
        return previous

    def reload(self) -> PolicySnapshot:
        """Build a new snapshot with the configured loader and swap it in.

        A loader failure propagates and leaves the current snapshot in place.
        """
        if self._loader is None:
            msg = "PolicyStore has no loader configured"
            raise RuntimeError(msg)
        snapshot = self._loader()
        self.swap(snapshot)
        return snapshot

    def decide(self, request: RequestContext) -> DecisionResult:
        """Evaluate a request against the snapshot current at call time."""
        result = DecisionEngine(self._snapshot).decide(request)
        log_decision(
            result,
            log_verdict=self.log_decisions,
            log_permissive=self.log_permissive,
        )
        return result
