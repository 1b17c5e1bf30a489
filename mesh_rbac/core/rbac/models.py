"""Declarative RBAC configuration schema.

Three object kinds make up a mesh's RBAC configuration:

- ``ServiceRole``: a list of access rules (permissions), OR-combined.
- ``ServiceRoleBinding``: assigns subjects to a ServiceRole in the same
  namespace, optionally in permissive (audit-only) mode.
- ``RbacConfig``: mesh-wide singleton switching RBAC off, on, or on for an
  included/excluded set of services and namespaces.

Each object travels as a Kubernetes-style record::

    apiVersion: "rbac.istio.io/v1alpha1"
    kind: ServiceRole
    metadata:
      name: products-viewer
      namespace: default
    spec:
      rules:
      - services: ["products.svc.cluster.local"]
        methods: ["GET", "HEAD"]
        constraints:
        - key: "destination.labels[version]"
          values: ["v1", "v2"]

Field names accept both the camelCase wire form (``roleRef``) and the
snake_case attribute names. The schema itself does not enforce semantic
rules such as non-empty ``services``; that is the job of
:mod:`mesh_rbac.core.rbac.admission`.
"""

from __future__ import annotations

from enum import Enum
from typing import Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from mesh_rbac.core.rbac.constants import API_VERSION, ROLE_REF_KIND, Kind

__all__ = [
    "AccessRule",
    "ConfigObject",
    "Constraint",
    "EnforcementMode",
    "ObjectMeta",
    "RbacConfig",
    "RbacConfigMode",
    "RbacConfigObject",
    "RoleRef",
    "ServiceRole",
    "ServiceRoleBinding",
    "ServiceRoleBindingObject",
    "ServiceRoleObject",
    "Subject",
    "Target",
]


class RbacModel(BaseModel):
    """Base model for all RBAC schema records.

    Records are immutable so a loaded snapshot can be shared by concurrent
    decisions. Unknown fields are rejected: a misspelled optional field
    such as ``method`` would otherwise silently widen a rule.
    """

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
        # YAML turns `version: 1` into an int
        coerce_numbers_to_str=True,
    )


# ──────────────────────────────────────────────────────────────
# ServiceRole
# ──────────────────────────────────────────────────────────────


class Constraint(RbacModel):
    """Custom constraint on a request attribute.

    The published example manifests spell the list ``value``; both spellings
    are accepted.
    """

    key: str = Field(description="Attribute key, e.g. 'destination.labels[version]'")
    values: tuple[str, ...] = Field(
        default=(),
        validation_alias=AliasChoices("values", "value"),
        description="Accepted values; exact, prefix and suffix patterns are supported",
    )


class AccessRule(RbacModel):
    """One permission clause of a ServiceRole."""

    services: tuple[str, ...] = Field(
        default=(),
        description="Service name patterns. Required; ['*'] means every service.",
    )
    paths: tuple[str, ...] = Field(
        default=(),
        description="HTTP paths or gRPC methods ('/pkg.Service/Method'). Empty matches any.",
    )
    methods: tuple[str, ...] = Field(
        default=(),
        description="HTTP methods. Empty or ['*'] matches any; ignored for gRPC.",
    )
    constraints: tuple[Constraint, ...] = Field(
        default=(),
        description="Extra constraints, all of which must hold",
    )


class ServiceRole(RbacModel):
    """Set of access rules (permissions), OR-combined."""

    rules: tuple[AccessRule, ...] = Field(default=())


# ──────────────────────────────────────────────────────────────
# ServiceRoleBinding
# ──────────────────────────────────────────────────────────────


class EnforcementMode(str, Enum):
    """Whether a binding affects the verdict or is only audited."""

    ENFORCED = "ENFORCED"
    PERMISSIVE = "PERMISSIVE"


class Subject(RbacModel):
    """Identity descriptor.

    Every populated field must match the caller. Empty strings count as
    unset, so a subject with no fields matches every caller.
    """

    user: str = Field(default="", description="User name/ID the subject represents")
    group: str = Field(default="", description="Group the subject belongs to (deprecated)")
    properties: dict[str, str] = Field(
        default_factory=dict,
        description="Caller properties, e.g. {'source.namespace': 'abc'}",
    )

    @field_validator("user", "group", mode="before")
    @classmethod
    def null_as_unset(cls, v: object) -> object:
        """An explicit ``null`` in a manifest means the field is unset."""
        return "" if v is None else v

    @field_validator("properties", mode="before")
    @classmethod
    def null_properties(cls, v: object) -> object:
        return {} if v is None else v

    @property
    def is_unconstrained(self) -> bool:
        """True when no field is populated."""
        return not (self.user or self.group or self.properties)


class RoleRef(RbacModel):
    """Reference to a ServiceRole in the binding's namespace."""

    kind: str = Field(default=ROLE_REF_KIND)
    name: str = Field(default="")


class ServiceRoleBinding(RbacModel):
    """Assignment of subjects to a ServiceRole."""

    subjects: tuple[Subject, ...] = Field(default=())
    role_ref: RoleRef = Field(default_factory=RoleRef)
    mode: EnforcementMode = Field(default=EnforcementMode.ENFORCED)


# ──────────────────────────────────────────────────────────────
# RbacConfig
# ──────────────────────────────────────────────────────────────


class RbacConfigMode(str, Enum):
    """Mesh-wide RBAC switch."""

    OFF = "OFF"
    ON = "ON"
    ON_WITH_INCLUSION = "ON_WITH_INCLUSION"
    ON_WITH_EXCLUSION = "ON_WITH_EXCLUSION"


class Target(RbacModel):
    """Services and namespaces, matched exactly."""

    services: tuple[str, ...] = Field(default=())
    namespaces: tuple[str, ...] = Field(default=())

    @property
    def is_empty(self) -> bool:
        return not (self.services or self.namespaces)

    def contains(self, service: str, namespace: str) -> bool:
        """Exact membership test on service or namespace."""
        return service in self.services or namespace in self.namespaces


class RbacConfig(RbacModel):
    """Global RBAC behaviour. Only one may exist in a mesh."""

    mode: RbacConfigMode = Field(default=RbacConfigMode.OFF)
    inclusion: Target = Field(
        default_factory=Target,
        description="Only used with ON_WITH_INCLUSION",
    )
    exclusion: Target = Field(
        default_factory=Target,
        description="Only used with ON_WITH_EXCLUSION",
    )

    @field_validator("mode", mode="before")
    @classmethod
    def unquoted_mode(cls, v: object) -> object:
        """YAML 1.1 reads an unquoted ``mode: ON`` as a boolean."""
        if isinstance(v, bool):
            return RbacConfigMode.ON if v else RbacConfigMode.OFF
        return v


# ──────────────────────────────────────────────────────────────
# Object envelopes
# ──────────────────────────────────────────────────────────────


class ObjectMeta(RbacModel):
    """Name and namespace of a configuration object."""

    # Kubernetes metadata carries labels, annotations, uid, ...
    model_config = ConfigDict(extra="ignore")

    name: str = Field(min_length=1)
    namespace: str = Field(default="default", min_length=1)


class ConfigObject(RbacModel):
    """Common envelope fields of every configuration object."""

    api_version: str = Field(default=API_VERSION)
    metadata: ObjectMeta

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def namespace(self) -> str:
        return self.metadata.namespace

    @property
    def ref(self) -> str:
        """Human-readable reference, e.g. ``ServiceRole default/viewer``."""
        kind = getattr(self, "kind", type(self).__name__)
        return f"{kind} {self.metadata.namespace}/{self.metadata.name}"


class ServiceRoleObject(ConfigObject):
    kind: Literal["ServiceRole"] = Kind.SERVICE_ROLE.value
    spec: ServiceRole = Field(default_factory=ServiceRole)


class ServiceRoleBindingObject(ConfigObject):
    kind: Literal["ServiceRoleBinding"] = Kind.SERVICE_ROLE_BINDING.value
    spec: ServiceRoleBinding = Field(default_factory=ServiceRoleBinding)


class RbacConfigObject(ConfigObject):
    kind: Literal["RbacConfig"] = Kind.RBAC_CONFIG.value
    spec: RbacConfig = Field(default_factory=RbacConfig)
