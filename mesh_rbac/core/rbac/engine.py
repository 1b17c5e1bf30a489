"""RBAC decision engine.

Turns a request into an ALLOW/DENY verdict against one policy snapshot:

1. If the RbacConfig leaves the target (service, namespace) out of scope,
   the request is allowed by bypass: RBAC does not apply to it.
2. Otherwise the bindings of the target namespace are walked in order. A
   binding counts when one of its subjects matches the caller and the
   ServiceRole it references permits the request.
3. The first ENFORCED binding that counts allows the request and stops the
   walk. PERMISSIVE bindings that count are recorded as would-allow and
   never change the verdict.
4. With no ENFORCED match the request is denied.

A binding whose ``roleRef`` cannot be resolved contributes nothing and is
recorded as a ``ResolutionMiss``. Bindings only grant; there is no explicit
deny, so matches can never conflict.

Evaluation is synchronous, performs no I/O and keeps no state between
calls, so ``decide`` may run concurrently against a shared snapshot. The
outcome is returned as a ``DecisionResult`` carrying both the verdict and
the audit trail; logging happens afterwards in :func:`log_decision`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
import logging
from typing import TYPE_CHECKING, Any

from mesh_rbac.core.rbac.constants import ROLE_REF_KIND
from mesh_rbac.core.rbac.evaluator import binding_applies, role_matches
from mesh_rbac.core.rbac.models import EnforcementMode
from mesh_rbac.core.rbac.scope import ScopeResolver, ScopeStatus

if TYPE_CHECKING:
    from mesh_rbac.core.rbac.models import ServiceRole, ServiceRoleBindingObject
    from mesh_rbac.core.rbac.request import RequestContext
    from mesh_rbac.core.rbac.snapshot import PolicySnapshot

__all__ = [
    "BindingMatch",
    "DecisionEngine",
    "DecisionReason",
    "DecisionResult",
    "ResolutionMiss",
    "Verdict",
    "log_decision",
]

logger = logging.getLogger(__name__)


class Verdict(str, Enum):
    ALLOW = "ALLOW"
    DENY = "DENY"


class DecisionReason(str, Enum):
    """Why a verdict was reached."""

    RBAC_DISABLED = "rbac_disabled"
    OUT_OF_SCOPE = "out_of_scope"
    ENFORCED_MATCH = "enforced_match"
    NO_MATCH = "no_match"


@dataclass(frozen=True)
class BindingMatch:
    """A binding whose subject and role both matched the request."""

    namespace: str
    binding: str
    role: str
    mode: EnforcementMode

    def to_dict(self) -> dict[str, str]:
        return {
            "namespace": self.namespace,
            "binding": self.binding,
            "role": self.role,
            "mode": self.mode.value,
        }


@dataclass(frozen=True)
class ResolutionMiss:
    """A matching binding whose roleRef did not resolve to a ServiceRole."""

    namespace: str
    binding: str
    role_kind: str
    role_name: str
    reason: str

    def to_dict(self) -> dict[str, str]:
        return {
            "namespace": self.namespace,
            "binding": self.binding,
            "role_kind": self.role_kind,
            "role_name": self.role_name,
            "reason": self.reason,
        }


@dataclass(frozen=True)
class DecisionResult:
    """Verdict plus audit trail for one request.

    Attributes:
        verdict: Authoritative ALLOW or DENY.
        reason: Why the verdict was reached.
        service: Target service of the request.
        namespace: Target namespace of the request.
        enforced_match: The ENFORCED binding that allowed the request, if any.
        permissive_matches: PERMISSIVE bindings that would have allowed it.
        resolution_misses: Matching bindings with an unresolvable roleRef.
        snapshot_version: Version label of the snapshot evaluated against.
    """

    verdict: Verdict
    reason: DecisionReason
    service: str
    namespace: str
    enforced_match: BindingMatch | None = None
    permissive_matches: tuple[BindingMatch, ...] = field(default_factory=tuple)
    resolution_misses: tuple[ResolutionMiss, ...] = field(default_factory=tuple)
    snapshot_version: str = ""

    @property
    def allowed(self) -> bool:
        return self.verdict is Verdict.ALLOW

    @property
    def bypassed(self) -> bool:
        """True when RBAC did not apply to the request at all."""
        return self.reason in (DecisionReason.RBAC_DISABLED, DecisionReason.OUT_OF_SCOPE)

    @property
    def shadow_verdict(self) -> Verdict:
        """Verdict the request would get if permissive bindings were enforced."""
        if self.allowed or self.permissive_matches:
            return Verdict.ALLOW
        return Verdict.DENY

    def to_audit_record(self) -> dict[str, Any]:
        """Plain mapping for the decision log."""
        return {
            "verdict": self.verdict.value,
            "reason": self.reason.value,
            "service": self.service,
            "namespace": self.namespace,
            "enforced_match": self.enforced_match.to_dict() if self.enforced_match else None,
            "permissive_matches": [match.to_dict() for match in self.permissive_matches],
            "shadow_verdict": self.shadow_verdict.value,
            "resolution_misses": [miss.to_dict() for miss in self.resolution_misses],
            "snapshot_version": self.snapshot_version,
        }


class DecisionEngine:
    """Evaluates requests against one immutable policy snapshot.

    Example:
        >>> engine = DecisionEngine(snapshot)
        >>> result = engine.decide(
        ...     RequestContext(
        ...         service="products.svc.cluster.local",
        ...         namespace="default",
        ...         method="GET",
        ...         caller=Caller(user="alice@yahoo.com"),
        ...         destination_labels={"version": "v1"},
        ...     )
        ... )
        >>> result.verdict
        <Verdict.ALLOW: 'ALLOW'>
    """

    def __init__(self, snapshot: PolicySnapshot) -> None:
        self.snapshot = snapshot
        self.scope = ScopeResolver(snapshot.config)

    def decide(self, request: RequestContext) -> DecisionResult:
        """Produce the verdict and audit trail for a request."""
        scope = self.scope.resolve(request.service, request.namespace)
        if not scope.active:
            reason = (
                DecisionReason.RBAC_DISABLED
                if scope.status is ScopeStatus.DISABLED
                else DecisionReason.OUT_OF_SCOPE
            )
            return self._result(request, Verdict.ALLOW, reason)

        permissive: list[BindingMatch] = []
        misses: list[ResolutionMiss] = []

        for binding in self.snapshot.bindings_for(request.namespace):
            if not binding_applies(binding.spec, request.caller):
                continue

            role = self._resolve_role(binding, misses)
            if role is None or not role_matches(role, request):
                continue

            match = BindingMatch(
                namespace=binding.namespace,
                binding=binding.name,
                role=binding.spec.role_ref.name,
                mode=binding.spec.mode,
            )
            if binding.spec.mode is EnforcementMode.ENFORCED:
                return self._result(
                    request,
                    Verdict.ALLOW,
                    DecisionReason.ENFORCED_MATCH,
                    enforced_match=match,
                    permissive=permissive,
                    misses=misses,
                )
            permissive.append(match)

        return self._result(
            request,
            Verdict.DENY,
            DecisionReason.NO_MATCH,
            permissive=permissive,
            misses=misses,
        )

    def _resolve_role(
        self, binding: ServiceRoleBindingObject, misses: list[ResolutionMiss]
    ) -> ServiceRole | None:
        role_ref = binding.spec.role_ref
        if role_ref.kind != ROLE_REF_KIND:
            reason = "unsupported-kind"
            role = None
        else:
            role = self.snapshot.get_role(binding.namespace, role_ref.name)
            reason = "role-not-found"

        if role is None:
            misses.append(
                ResolutionMiss(
                    namespace=binding.namespace,
                    binding=binding.name,
                    role_kind=role_ref.kind,
                    role_name=role_ref.name,
                    reason=reason,
                )
            )
        return role

    def _result(
        self,
        request: RequestContext,
        verdict: Verdict,
        reason: DecisionReason,
        *,
        enforced_match: BindingMatch | None = None,
        permissive: list[BindingMatch] | None = None,
        misses: list[ResolutionMiss] | None = None,
    ) -> DecisionResult:
        return DecisionResult(
            verdict=verdict,
            reason=reason,
            service=request.service,
            namespace=request.namespace,
            enforced_match=enforced_match,
            permissive_matches=tuple(permissive or ()),
            resolution_misses=tuple(misses or ()),
            snapshot_version=self.snapshot.version,
        )


def log_decision(
    result: DecisionResult,
    *,
    log_verdict: bool = False,
    log_permissive: bool = True,
) -> None:
    """Emit log records for a computed decision.

    Args:
        result: Decision to log.
        log_verdict: Log the verdict at INFO instead of DEBUG.
        log_permissive: Log permissive would-allow matches at INFO instead of DEBUG.
    """
    for miss in result.resolution_misses:
        logger.warning(
            "RBAC binding %s/%s references unresolvable role %s %r",
            miss.namespace,
            miss.binding,
            miss.role_kind,
            miss.role_name,
            extra={"rbac_resolution_miss": miss.to_dict()},
        )

    permissive_level = logging.INFO if log_permissive else logging.DEBUG
    for match in result.permissive_matches:
        logger.log(
            permissive_level,
            "RBAC permissive binding %s/%s would allow %s (enforced verdict: %s)",
            match.namespace,
            match.binding,
            result.service,
            result.verdict.value,
            extra={"rbac_permissive_match": match.to_dict()},
        )

    logger.log(
        logging.INFO if log_verdict else logging.DEBUG,
        "RBAC %s %s/%s (%s)",
        result.verdict.value,
        result.namespace,
        result.service,
        result.reason.value,
        extra={"rbac_decision": result.to_audit_record()},
    )
