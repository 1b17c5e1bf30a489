"""Role-based access control for service-to-service requests in a mesh.

This package evaluates requests against declarative RBAC configuration:
``ServiceRole`` objects grant permissions, ``ServiceRoleBinding`` objects
assign them to subjects, and a single ``RbacConfig`` decides which services
and namespaces RBAC applies to.

Architecture:
    ┌────────────────────┐        ┌─────────────────────────────────┐
    │  manifests (YAML)  │        │            mesh_rbac            │
    │                    │        │                                 │
    │  ServiceRole       │──load──►  AdmissionValidator             │
    │  ServiceRoleBinding│        │       │                         │
    │  RbacConfig        │        │  PolicySnapshot (immutable)     │
    └────────────────────┘        │       │                         │
                                  │  PolicyStore ── swap/reload     │
    ┌────────────────────┐        │       │                         │
    │  interception proxy│──req───►  DecisionEngine                 │
    │  (external)        │◄─ALLOW/│   ScopeResolver → bindings →    │
    │                    │  DENY  │   subjects → roles → rules      │
    └────────────────────┘        └─────────────────────────────────┘

Components:
    Matching:
        - matches / matches_any: exact, prefix ("foo*"), suffix ("*foo")
          and wildcard ("*") string patterns
        - rule_matches / role_matches: permission evaluation
        - subject_matches / binding_applies: identity evaluation
        - ScopeResolver: RbacConfig mode and inclusion/exclusion targets

    Decisions:
        - DecisionEngine: first ENFORCED match allows, otherwise deny;
          PERMISSIVE matches are recorded as would-allow only
        - DecisionResult: verdict, reason and audit record

    Configuration:
        - load_manifests / load_snapshot: YAML/JSON manifests to snapshots
        - AdmissionValidator: rejects malformed objects and a second RbacConfig
        - PolicyStore: atomic snapshot swap for live reloads

Example:
    >>> from mesh_rbac.core.rbac import Caller, PolicyStore, RequestContext, load_snapshot
    >>>
    >>> store = PolicyStore(load_snapshot(["conf/policies"]))
    >>> result = store.decide(
    ...     RequestContext(
    ...         service="products.svc.cluster.local",
    ...         namespace="default",
    ...         method="GET",
    ...         destination_labels={"version": "v1"},
    ...         caller=Caller(user="alice@yahoo.com"),
    ...     )
    ... )
    >>> result.allowed
    True
"""

from __future__ import annotations

from mesh_rbac.core.rbac.admission import AdmissionReport, AdmissionValidator
from mesh_rbac.core.rbac.engine import (
    BindingMatch,
    DecisionEngine,
    DecisionReason,
    DecisionResult,
    ResolutionMiss,
    Verdict,
    log_decision,
)
from mesh_rbac.core.rbac.evaluator import (
    binding_applies,
    constraint_matches,
    role_matches,
    rule_matches,
    subject_matches,
)
from mesh_rbac.core.rbac.loader import (
    LoadedManifests,
    load_manifests,
    load_snapshot,
    parse_document,
)
from mesh_rbac.core.rbac.matcher import matches, matches_any
from mesh_rbac.core.rbac.models import (
    AccessRule,
    Constraint,
    EnforcementMode,
    ObjectMeta,
    RbacConfig,
    RbacConfigMode,
    RbacConfigObject,
    RoleRef,
    ServiceRole,
    ServiceRoleBinding,
    ServiceRoleBindingObject,
    ServiceRoleObject,
    Subject,
    Target,
)
from mesh_rbac.core.rbac.request import Caller, RequestContext, RequestProtocol
from mesh_rbac.core.rbac.scope import ScopeResolver, ScopeResult, ScopeStatus, is_rbac_enabled
from mesh_rbac.core.rbac.snapshot import PolicySnapshot, PolicyStore

__all__ = [
    "AccessRule",
    "AdmissionReport",
    "AdmissionValidator",
    "BindingMatch",
    "Caller",
    "Constraint",
    "DecisionEngine",
    "DecisionReason",
    "DecisionResult",
    "EnforcementMode",
    "LoadedManifests",
    "ObjectMeta",
    "PolicySnapshot",
    "PolicyStore",
    "RbacConfig",
    "RbacConfigMode",
    "RbacConfigObject",
    "RequestContext",
    "RequestProtocol",
    "ResolutionMiss",
    "RoleRef",
    "ScopeResolver",
    "ScopeResult",
    "ScopeStatus",
    "ServiceRole",
    "ServiceRoleBinding",
    "ServiceRoleBindingObject",
    "ServiceRoleObject",
    "Subject",
    "Target",
    "Verdict",
    "binding_applies",
    "constraint_matches",
    "is_rbac_enabled",
    "load_manifests",
    "load_snapshot",
    "log_decision",
    "matches",
    "matches_any",
    "parse_document",
    "role_matches",
    "rule_matches",
    "subject_matches",
]
