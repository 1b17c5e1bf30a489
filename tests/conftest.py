"""Pytest configuration and shared fixtures.

Organization:
    - Environment: keep settings from picking up local conf/ files
    - Object Builders: factories for ServiceRole/ServiceRoleBinding/RbacConfig objects
    - Scenario Fixtures: the products-viewer policy set, in memory and on disk
"""

from __future__ import annotations

import os
from pathlib import Path
import textwrap

import pytest

# Settings must not read conf/ files of the working tree during tests
os.environ.setdefault("RBAC_CONFIG_DIR", "/nonexistent/mesh-rbac-test-conf")
os.environ.setdefault("LOGGING_CONFIG_DIR", "/nonexistent/mesh-rbac-test-conf")

from mesh_rbac.core.rbac import (  # noqa: E402
    AccessRule,
    Caller,
    Constraint,
    EnforcementMode,
    ObjectMeta,
    PolicySnapshot,
    RbacConfig,
    RbacConfigMode,
    RbacConfigObject,
    RequestContext,
    RoleRef,
    ServiceRole,
    ServiceRoleBinding,
    ServiceRoleBindingObject,
    ServiceRoleObject,
    Subject,
)
from mesh_rbac.core.settings import clear_all_caches  # noqa: E402

PRODUCTS_SERVICE = "products.svc.cluster.local"


@pytest.fixture(autouse=True)
def _reset_settings_cache():
    """Drop cached settings so env changes made by a test do not leak."""
    clear_all_caches()
    yield
    clear_all_caches()


# ============================================================================
# Object Builders
# ============================================================================


def make_role(name: str, *rules: AccessRule, namespace: str = "default") -> ServiceRoleObject:
    return ServiceRoleObject(
        metadata=ObjectMeta(name=name, namespace=namespace),
        spec=ServiceRole(rules=rules),
    )


def make_binding(
    name: str,
    role: str,
    *subjects: Subject,
    mode: EnforcementMode = EnforcementMode.ENFORCED,
    namespace: str = "default",
    role_kind: str = "ServiceRole",
) -> ServiceRoleBindingObject:
    return ServiceRoleBindingObject(
        metadata=ObjectMeta(name=name, namespace=namespace),
        spec=ServiceRoleBinding(
            subjects=subjects,
            role_ref=RoleRef(kind=role_kind, name=role),
            mode=mode,
        ),
    )


def make_rbac_config(
    mode: RbacConfigMode = RbacConfigMode.ON,
    name: str = "default",
    **targets,
) -> RbacConfigObject:
    return RbacConfigObject(
        metadata=ObjectMeta(name=name, namespace="istio-system"),
        spec=RbacConfig(mode=mode, **targets),
    )


@pytest.fixture
def role_factory():
    """Factory fixture for ServiceRole objects."""
    return make_role


@pytest.fixture
def binding_factory():
    """Factory fixture for ServiceRoleBinding objects."""
    return make_binding


@pytest.fixture
def rbac_config_factory():
    """Factory fixture for RbacConfig objects."""
    return make_rbac_config


# ============================================================================
# Scenario Fixtures
# ============================================================================


@pytest.fixture
def products_viewer_rule() -> AccessRule:
    return AccessRule(
        services=(PRODUCTS_SERVICE,),
        methods=("GET", "HEAD"),
        constraints=(Constraint(key="destination.labels[version]", values=("v1", "v2")),),
    )


@pytest.fixture
def products_viewer_objects(products_viewer_rule):
    """RBAC on, one role and one ENFORCED binding for alice."""
    return [
        make_rbac_config(RbacConfigMode.ON),
        make_role("products-viewer", products_viewer_rule),
        make_binding("bind-alice", "products-viewer", Subject(user="alice@yahoo.com")),
    ]


@pytest.fixture
def products_snapshot(products_viewer_objects) -> PolicySnapshot:
    return PolicySnapshot.build(products_viewer_objects, version="test")


@pytest.fixture
def alice_request():
    """Factory for alice's GET request to products with the given version label."""

    def _build(version: str = "v1", **overrides) -> RequestContext:
        fields = {
            "service": PRODUCTS_SERVICE,
            "namespace": "default",
            "path": "/products",
            "method": "GET",
            "destination_labels": {"version": version},
            "caller": Caller(user="alice@yahoo.com"),
        }
        fields.update(overrides)
        return RequestContext(**fields)

    return _build


PRODUCTS_MANIFEST = textwrap.dedent(
    """\
    apiVersion: "rbac.istio.io/v1alpha1"
    kind: RbacConfig
    metadata:
      name: default
      namespace: istio-system
    spec:
      mode: "ON"
    ---
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
          value: ["v1", "v2"]
    ---
    apiVersion: "rbac.istio.io/v1alpha1"
    kind: ServiceRoleBinding
    metadata:
      name: bind-alice
      namespace: default
    spec:
      subjects:
      - user: "alice@yahoo.com"
      roleRef:
        kind: ServiceRole
        name: "products-viewer"
    """
)


@pytest.fixture
def policy_dir(tmp_path: Path) -> Path:
    """Directory holding the products-viewer manifests as YAML."""
    directory = tmp_path / "policies"
    directory.mkdir()
    (directory / "products.yaml").write_text(PRODUCTS_MANIFEST, encoding="utf-8")
    return directory
