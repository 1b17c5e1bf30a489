"""Admission validation for RBAC configuration objects.

Malformed objects are rejected here, before they can reach a snapshot:

- a ServiceRole needs at least one rule, every rule a non-empty
  ``services`` list, and every constraint a key and at least one value
- a ServiceRoleBinding needs at least one subject and a ``roleRef`` of kind
  ``ServiceRole`` with a name
- patterns and subject fields must not carry surrounding whitespace
- only one RbacConfig may exist in the mesh

Dangling role references are not errors (the binding simply grants
nothing) and are reported alongside other warnings.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import TYPE_CHECKING

from mesh_rbac.core.exceptions import ConfigurationError, RbacConfigConflictError
from mesh_rbac.core.rbac.constants import ROLE_REF_KIND
from mesh_rbac.core.rbac.engine import ResolutionMiss
from mesh_rbac.core.rbac.models import (
    RbacConfigMode,
    RbacConfigObject,
    ServiceRoleBindingObject,
    ServiceRoleObject,
)

if TYPE_CHECKING:
    from collections.abc import Iterable

    from mesh_rbac.core.rbac.models import AccessRule, ConfigObject

__all__ = ["AdmissionReport", "AdmissionValidator"]

logger = logging.getLogger(__name__)


@dataclass
class AdmissionReport:
    """Non-fatal findings from validating a set of objects."""

    admitted: int = 0
    warnings: list[str] = field(default_factory=list)
    dangling_refs: list[ResolutionMiss] = field(default_factory=list)

    @property
    def clean(self) -> bool:
        return not (self.warnings or self.dangling_refs)


class AdmissionValidator:
    """Validates configuration objects the way the authoring layer admits them.

    Example:
        >>> validator = AdmissionValidator()
        >>> validator.validate(role_object)  # raises ConfigurationError if malformed
        >>> report = validator.validate_all(objects)
        >>> report.dangling_refs
        []
    """

    # ──────────────────────────────────────────────────────────────
    # Per-object checks
    # ──────────────────────────────────────────────────────────────

    def role_errors(self, obj: ServiceRoleObject) -> list[str]:
        errors: list[str] = []
        if not obj.spec.rules:
            errors.append("rules must not be empty")
        for index, rule in enumerate(obj.spec.rules):
            errors.extend(f"rules[{index}].{error}" for error in _rule_errors(rule))
        return errors

    def binding_errors(self, obj: ServiceRoleBindingObject) -> list[str]:
        errors: list[str] = []
        spec = obj.spec
        if not spec.subjects:
            errors.append("subjects must not be empty")
        for index, subject in enumerate(spec.subjects):
            for field_name in ("user", "group"):
                if _padded(getattr(subject, field_name)):
                    errors.append(
                        f"subjects[{index}].{field_name} has surrounding whitespace"
                    )
            for key, value in subject.properties.items():
                if not key:
                    errors.append(f"subjects[{index}].properties has an empty key")
                if not value:
                    errors.append(f"subjects[{index}].properties[{key}] must not be empty")
        if spec.role_ref.kind != ROLE_REF_KIND:
            errors.append(
                f"roleRef.kind must be {ROLE_REF_KIND!r}, got {spec.role_ref.kind!r}"
            )
        if not spec.role_ref.name:
            errors.append("roleRef.name must not be empty")
        return errors

    def rbac_config_warnings(self, obj: RbacConfigObject) -> list[str]:
        """Fields that are set but ignored under the configured mode."""
        spec = obj.spec
        warnings: list[str] = []
        if not spec.inclusion.is_empty and spec.mode is not RbacConfigMode.ON_WITH_INCLUSION:
            warnings.append(f"{obj.ref}: inclusion is ignored in mode {spec.mode.value}")
        if not spec.exclusion.is_empty and spec.mode is not RbacConfigMode.ON_WITH_EXCLUSION:
            warnings.append(f"{obj.ref}: exclusion is ignored in mode {spec.mode.value}")
        return warnings

    def validate_role(self, obj: ServiceRoleObject) -> list[str]:
        """Admit a ServiceRole.

        Raises:
            ConfigurationError: If the role has no rules or a malformed rule.
        """
        _raise_for(obj, self.role_errors(obj))
        return []

    def validate_binding(self, obj: ServiceRoleBindingObject) -> list[str]:
        """Admit a ServiceRoleBinding.

        Raises:
            ConfigurationError: If subjects or roleRef are malformed.
        """
        _raise_for(obj, self.binding_errors(obj))
        return []

    def validate_rbac_config(self, obj: RbacConfigObject) -> list[str]:
        """Admit an RbacConfig; ignored fields are reported as warnings."""
        return self.rbac_config_warnings(obj)

    def validate(self, obj: ConfigObject) -> list[str]:
        """Validate one object.

        Returns:
            Warnings for the object.

        Raises:
            ConfigurationError: If the object is malformed.
        """
        if isinstance(obj, ServiceRoleObject):
            return self.validate_role(obj)
        if isinstance(obj, ServiceRoleBindingObject):
            return self.validate_binding(obj)
        if isinstance(obj, RbacConfigObject):
            return self.validate_rbac_config(obj)
        msg = f"Unsupported configuration object: {type(obj).__name__}"
        raise TypeError(msg)

    # ──────────────────────────────────────────────────────────────
    # Cross-object checks
    # ──────────────────────────────────────────────────────────────

    def validate_create(self, obj: ConfigObject, existing: Iterable[ConfigObject]) -> list[str]:
        """Admit a newly created object against the objects already stored.

        Raises:
            ConfigurationError: If the object is malformed.
            RbacConfigConflictError: If ``obj`` is an RbacConfig and another
                one already exists.
        """
        if isinstance(obj, RbacConfigObject):
            for other in existing:
                if isinstance(other, RbacConfigObject) and (
                    other.namespace,
                    other.name,
                ) != (obj.namespace, obj.name):
                    raise RbacConfigConflictError(existing=other.ref, rejected=obj.ref)
        return self.validate(obj)

    def validate_all(self, objects: Iterable[ConfigObject]) -> AdmissionReport:
        """Validate a complete set of objects.

        Every malformed object is collected before raising so a whole
        manifest set can be fixed in one pass.

        Raises:
            ConfigurationError: If any object is malformed or duplicated.
            RbacConfigConflictError: If more than one RbacConfig is present.
        """
        items = list(objects)
        report = AdmissionReport()
        errors: list[str] = []
        seen: set[tuple[str, str, str]] = set()
        rbac_config: RbacConfigObject | None = None

        for obj in items:
            identity = (obj.kind, obj.namespace, obj.name)  # type: ignore[attr-defined]
            if identity in seen:
                errors.append(f"{obj.ref}: defined more than once")
                continue
            seen.add(identity)

            if isinstance(obj, RbacConfigObject):
                if rbac_config is not None:
                    raise RbacConfigConflictError(existing=rbac_config.ref, rejected=obj.ref)
                rbac_config = obj

            try:
                report.warnings.extend(self.validate(obj))
            except ConfigurationError as exc:
                errors.extend(f"{obj.ref}: {error}" for error in exc.errors)

        if errors:
            raise ConfigurationError(
                f"{len(errors)} invalid RBAC configuration entr{'y' if len(errors) == 1 else 'ies'}",
                errors=errors,
            )

        report.dangling_refs = _dangling_refs(items)
        report.admitted = len(items)
        for warning in report.warnings:
            logger.warning("RBAC admission warning: %s", warning)
        for miss in report.dangling_refs:
            logger.warning(
                "RBAC binding %s/%s references missing ServiceRole %r",
                miss.namespace,
                miss.binding,
                miss.role_name,
            )
        return report


def _rule_errors(rule: AccessRule) -> list[str]:
    errors: list[str] = []
    if not rule.services:
        errors.append("services must not be empty")
    for field_name in ("services", "paths", "methods"):
        patterns = getattr(rule, field_name)
        if any(not pattern for pattern in patterns):
            errors.append(f"{field_name} must not contain empty patterns")
        errors.extend(
            f"{field_name} pattern {pattern!r} has surrounding whitespace"
            for pattern in patterns
            if _padded(pattern)
        )
    for index, constraint in enumerate(rule.constraints):
        if not constraint.key:
            errors.append(f"constraints[{index}].key must not be empty")
        if not constraint.values:
            errors.append(f"constraints[{index}].values must not be empty")
        elif any(not value for value in constraint.values):
            errors.append(f"constraints[{index}].values must not contain empty patterns")
        errors.extend(
            f"constraints[{index}].values pattern {value!r} has surrounding whitespace"
            for value in constraint.values
            if _padded(value)
        )
    return errors


def _padded(pattern: str) -> bool:
    return pattern != pattern.strip()


def _dangling_refs(objects: list[ConfigObject]) -> list[ResolutionMiss]:
    roles = {
        (obj.namespace, obj.name) for obj in objects if isinstance(obj, ServiceRoleObject)
    }
    return [
        ResolutionMiss(
            namespace=obj.namespace,
            binding=obj.name,
            role_kind=obj.spec.role_ref.kind,
            role_name=obj.spec.role_ref.name,
            reason="role-not-found",
        )
        for obj in objects
        if isinstance(obj, ServiceRoleBindingObject)
        and (obj.namespace, obj.spec.role_ref.name) not in roles
    ]


def _raise_for(obj: ConfigObject, errors: list[str]) -> None:
    if errors:
        raise ConfigurationError(
            f"{obj.ref} is invalid: {'; '.join(errors)}",
            object_ref=obj.ref,
            errors=errors,
        )
