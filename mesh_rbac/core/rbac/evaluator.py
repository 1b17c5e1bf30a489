"""Rule, role and subject evaluation.

All checks are pure predicates combined with ``any``/``all``:

- a role grants access if ANY of its rules matches
- a rule matches if its services AND paths AND methods AND every
  constraint match
- a binding applies if ANY of its subjects matches
- a subject matches if every populated field matches

Empty ``paths``/``methods`` lists match anything. Every string comparison
goes through :func:`mesh_rbac.core.rbac.matcher.matches`.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from mesh_rbac.core.rbac.matcher import matches, matches_any

if TYPE_CHECKING:
    from mesh_rbac.core.rbac.models import (
        AccessRule,
        Constraint,
        ServiceRole,
        ServiceRoleBinding,
        Subject,
    )
    from mesh_rbac.core.rbac.request import Caller, RequestContext

__all__ = [
    "binding_applies",
    "constraint_matches",
    "role_matches",
    "rule_matches",
    "subject_matches",
]


def constraint_matches(constraint: Constraint, request: RequestContext) -> bool:
    """Check one constraint; a key the request does not provide never matches."""
    value = request.constraint_value(constraint.key)
    if value is None:
        return False
    return matches_any(constraint.values, value)


def rule_matches(rule: AccessRule, request: RequestContext) -> bool:
    """Check whether an access rule permits the request.

    Args:
        rule: Access rule from a ServiceRole.
        request: Request attributes.

    Returns:
        True if services, paths, methods and all constraints are satisfied.
    """
    if not matches_any(rule.services, request.service):
        return False

    if rule.paths and not matches_any(rule.paths, request.path):
        return False

    # gRPC requests carry no meaningful method
    if rule.methods and not request.is_grpc and not matches_any(rule.methods, request.method):
        return False

    return all(constraint_matches(constraint, request) for constraint in rule.constraints)


def role_matches(role: ServiceRole, request: RequestContext) -> bool:
    """Check whether any rule of a role permits the request.

    A role without rules grants nothing.
    """
    return any(rule_matches(rule, request) for rule in role.rules)


def subject_matches(subject: Subject, caller: Caller) -> bool:
    """Check whether a subject describes the caller.

    Unset subject fields are not checked. A caller attribute that is
    missing compares as the empty string, so ``*`` matches it and every
    other pattern does not.
    """
    if subject.user and not _matches_optional(subject.user, caller.user):
        return False
    if subject.group and not _matches_optional(subject.group, caller.group):
        return False
    return all(
        _matches_optional(pattern, caller.properties.get(key))
        for key, pattern in subject.properties.items()
    )


def binding_applies(binding: ServiceRoleBinding, caller: Caller) -> bool:
    """Check whether any subject of a binding matches the caller."""
    return any(subject_matches(subject, caller) for subject in binding.subjects)


def _matches_optional(pattern: str, value: str | None) -> bool:
    return matches(pattern, value or "")
