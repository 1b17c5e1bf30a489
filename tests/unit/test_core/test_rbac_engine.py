"""Tests for the RBAC decision engine."""

from __future__ import annotations

import logging

import pytest

from mesh_rbac.core.rbac.engine import (
    BindingMatch,
    DecisionEngine,
    DecisionReason,
    DecisionResult,
    Verdict,
    log_decision,
)
from mesh_rbac.core.rbac.models import (
    AccessRule,
    EnforcementMode,
    RbacConfigMode,
    Subject,
    Target,
)
from mesh_rbac.core.rbac.request import Caller, RequestContext, RequestProtocol
from mesh_rbac.core.rbac.snapshot import PolicySnapshot

ALICE = Subject(user="alice@yahoo.com")


@pytest.mark.unit
class TestEndToEnd:
    """products-viewer scenario."""

    def test_v1_is_allowed(self, products_snapshot, alice_request) -> None:
        result = DecisionEngine(products_snapshot).decide(alice_request("v1"))

        assert result.verdict is Verdict.ALLOW
        assert result.reason is DecisionReason.ENFORCED_MATCH
        assert result.enforced_match is not None
        assert result.enforced_match.binding == "bind-alice"
        assert result.enforced_match.role == "products-viewer"

    def test_v3_is_denied(self, products_snapshot, alice_request) -> None:
        result = DecisionEngine(products_snapshot).decide(alice_request("v3"))

        assert result.verdict is Verdict.DENY
        assert result.reason is DecisionReason.NO_MATCH
        assert result.enforced_match is None

    def test_other_user_denied(self, products_snapshot, alice_request) -> None:
        result = DecisionEngine(products_snapshot).decide(
            alice_request("v1", caller=Caller(user="bob@yahoo.com"))
        )

        assert result.verdict is Verdict.DENY

    def test_write_method_denied(self, products_snapshot, alice_request) -> None:
        result = DecisionEngine(products_snapshot).decide(alice_request("v1", method="POST"))

        assert not result.allowed

    def test_bindings_of_other_namespaces_are_not_consulted(
        self, products_snapshot, alice_request
    ) -> None:
        result = DecisionEngine(products_snapshot).decide(alice_request("v1", namespace="other"))

        assert result.verdict is Verdict.DENY

    def test_idempotent(self, products_snapshot, alice_request) -> None:
        engine = DecisionEngine(products_snapshot)
        request = alice_request("v1")

        first = engine.decide(request)
        second = engine.decide(request)

        assert first == second
        assert first.to_audit_record() == second.to_audit_record()


@pytest.mark.unit
class TestPermissiveMode:
    """ENFORCED bindings decide; PERMISSIVE ones are only audited."""

    def test_enforced_match_is_authoritative(
        self, products_viewer_rule, role_factory, binding_factory, rbac_config_factory, alice_request
    ) -> None:
        snapshot = PolicySnapshot.build(
            [
                rbac_config_factory(),
                role_factory("products-viewer", products_viewer_rule),
                binding_factory("enforced", "products-viewer", ALICE),
                binding_factory(
                    "permissive", "products-viewer", ALICE, mode=EnforcementMode.PERMISSIVE
                ),
            ]
        )

        result = DecisionEngine(snapshot).decide(alice_request())

        assert result.verdict is Verdict.ALLOW
        assert result.enforced_match is not None
        assert result.enforced_match.binding == "enforced"
        assert result.enforced_match.mode is EnforcementMode.ENFORCED

    def test_permissive_before_enforced_is_recorded(
        self, products_viewer_rule, role_factory, binding_factory, rbac_config_factory, alice_request
    ) -> None:
        snapshot = PolicySnapshot.build(
            [
                rbac_config_factory(),
                role_factory("products-viewer", products_viewer_rule),
                binding_factory(
                    "permissive", "products-viewer", ALICE, mode=EnforcementMode.PERMISSIVE
                ),
                binding_factory("enforced", "products-viewer", ALICE),
            ]
        )

        result = DecisionEngine(snapshot).decide(alice_request())

        assert result.allowed
        assert [match.binding for match in result.permissive_matches] == ["permissive"]
        assert result.enforced_match.binding == "enforced"

    def test_permissive_only_denies_with_would_allow(
        self, products_viewer_rule, role_factory, binding_factory, rbac_config_factory, alice_request
    ) -> None:
        snapshot = PolicySnapshot.build(
            [
                rbac_config_factory(),
                role_factory("products-viewer", products_viewer_rule),
                binding_factory(
                    "permissive", "products-viewer", ALICE, mode=EnforcementMode.PERMISSIVE
                ),
            ]
        )

        result = DecisionEngine(snapshot).decide(alice_request())

        assert result.verdict is Verdict.DENY
        assert result.shadow_verdict is Verdict.ALLOW
        assert len(result.permissive_matches) == 1
        assert result.permissive_matches[0].mode is EnforcementMode.PERMISSIVE
        record = result.to_audit_record()
        assert record["verdict"] == "DENY"
        assert record["shadow_verdict"] == "ALLOW"
        assert record["permissive_matches"][0]["binding"] == "permissive"

    def test_permissive_non_match_is_not_recorded(
        self, products_viewer_rule, role_factory, binding_factory, rbac_config_factory, alice_request
    ) -> None:
        snapshot = PolicySnapshot.build(
            [
                rbac_config_factory(),
                role_factory("products-viewer", products_viewer_rule),
                binding_factory(
                    "permissive", "products-viewer", ALICE, mode=EnforcementMode.PERMISSIVE
                ),
            ]
        )

        result = DecisionEngine(snapshot).decide(alice_request("v3"))

        assert result.permissive_matches == ()
        assert result.shadow_verdict is Verdict.DENY


@pytest.mark.unit
class TestScopeBypass:
    """Requests RBAC does not apply to are allowed without evaluation."""

    def test_empty_snapshot_bypasses(self, alice_request) -> None:
        result = DecisionEngine(PolicySnapshot()).decide(alice_request("v3"))

        assert result.verdict is Verdict.ALLOW
        assert result.reason is DecisionReason.RBAC_DISABLED
        assert result.bypassed

    def test_out_of_scope_bypasses(
        self, products_viewer_rule, role_factory, binding_factory, rbac_config_factory, alice_request
    ) -> None:
        snapshot = PolicySnapshot.build(
            [
                rbac_config_factory(
                    RbacConfigMode.ON_WITH_INCLUSION, inclusion=Target(namespaces=("ns1",))
                ),
                role_factory("products-viewer", products_viewer_rule),
                binding_factory("bind-alice", "products-viewer", ALICE),
            ]
        )

        result = DecisionEngine(snapshot).decide(alice_request("v3", namespace="ns2"))

        assert result.verdict is Verdict.ALLOW
        assert result.reason is DecisionReason.OUT_OF_SCOPE

    def test_in_scope_is_evaluated(
        self, products_viewer_rule, role_factory, binding_factory, rbac_config_factory, alice_request
    ) -> None:
        snapshot = PolicySnapshot.build(
            [
                rbac_config_factory(
                    RbacConfigMode.ON_WITH_INCLUSION, inclusion=Target(namespaces=("ns1",))
                ),
                role_factory("products-viewer", products_viewer_rule, namespace="ns1"),
                binding_factory("bind-alice", "products-viewer", ALICE, namespace="ns1"),
            ]
        )

        engine = DecisionEngine(snapshot)

        assert engine.decide(alice_request("v1", namespace="ns1")).reason is (
            DecisionReason.ENFORCED_MATCH
        )
        assert engine.decide(alice_request("v3", namespace="ns1")).verdict is Verdict.DENY


@pytest.mark.unit
class TestResolutionMisses:
    """Bindings whose roleRef cannot be resolved."""

    def test_missing_role_contributes_nothing(
        self, binding_factory, rbac_config_factory, alice_request
    ) -> None:
        snapshot = PolicySnapshot.build(
            [rbac_config_factory(), binding_factory("bind-alice", "ghost", ALICE)]
        )

        result = DecisionEngine(snapshot).decide(alice_request())

        assert result.verdict is Verdict.DENY
        assert len(result.resolution_misses) == 1
        miss = result.resolution_misses[0]
        assert miss.role_name == "ghost"
        assert miss.reason == "role-not-found"

    def test_unsupported_kind(
        self, products_viewer_rule, role_factory, binding_factory, rbac_config_factory, alice_request
    ) -> None:
        snapshot = PolicySnapshot.build(
            [
                rbac_config_factory(),
                role_factory("products-viewer", products_viewer_rule),
                binding_factory("bind-alice", "products-viewer", ALICE, role_kind="ClusterRole"),
            ]
        )

        result = DecisionEngine(snapshot).decide(alice_request())

        assert result.verdict is Verdict.DENY
        assert result.resolution_misses[0].reason == "unsupported-kind"

    def test_miss_does_not_block_later_binding(
        self, products_viewer_rule, role_factory, binding_factory, rbac_config_factory, alice_request
    ) -> None:
        snapshot = PolicySnapshot.build(
            [
                rbac_config_factory(),
                role_factory("products-viewer", products_viewer_rule),
                binding_factory("dangling", "ghost", ALICE),
                binding_factory("bind-alice", "products-viewer", ALICE),
            ]
        )

        result = DecisionEngine(snapshot).decide(alice_request())

        assert result.allowed
        assert [miss.binding for miss in result.resolution_misses] == ["dangling"]

    def test_roles_resolved_only_for_matching_subjects(
        self, binding_factory, rbac_config_factory, alice_request
    ) -> None:
        snapshot = PolicySnapshot.build(
            [rbac_config_factory(), binding_factory("bind-bob", "ghost", Subject(user="bob"))]
        )

        result = DecisionEngine(snapshot).decide(alice_request())

        assert result.resolution_misses == ()


@pytest.mark.unit
class TestGrpc:
    """gRPC requests ignore methods."""

    def test_method_ignored(self, role_factory, binding_factory, rbac_config_factory) -> None:
        rule = AccessRule(
            services=("bookstore.svc.cluster.local",),
            paths=("/bookstore.Bookstore/*",),
            methods=("GET",),
        )
        snapshot = PolicySnapshot.build(
            [
                rbac_config_factory(),
                role_factory("bookstore-reader", rule),
                binding_factory("bind-all", "bookstore-reader", Subject(user="*")),
            ]
        )

        result = DecisionEngine(snapshot).decide(
            RequestContext(
                service="bookstore.svc.cluster.local",
                namespace="default",
                path="/bookstore.Bookstore/ListShelves",
                protocol=RequestProtocol.GRPC,
                caller=Caller(user="carol"),
            )
        )

        assert result.allowed


@pytest.mark.unit
class TestAnonymousCaller:
    """Callers without an authenticated identity."""

    def test_wildcard_user_binding_admits_anonymous_caller(
        self, role_factory, binding_factory, rbac_config_factory
    ) -> None:
        snapshot = PolicySnapshot.build(
            [
                rbac_config_factory(),
                role_factory("public", AccessRule(services=("*",))),
                binding_factory("bind-everyone", "public", Subject(user="*")),
            ]
        )

        result = DecisionEngine(snapshot).decide(
            RequestContext(service="products.svc.cluster.local", namespace="default", path="/")
        )

        assert result.verdict is Verdict.ALLOW
        assert result.enforced_match.binding == "bind-everyone"

    def test_named_user_binding_denies_anonymous_caller(
        self, role_factory, binding_factory, rbac_config_factory
    ) -> None:
        snapshot = PolicySnapshot.build(
            [
                rbac_config_factory(),
                role_factory("public", AccessRule(services=("*",))),
                binding_factory("bind-alice", "public", ALICE),
            ]
        )

        result = DecisionEngine(snapshot).decide(
            RequestContext(service="products.svc.cluster.local", namespace="default", path="/")
        )

        assert result.verdict is Verdict.DENY


@pytest.mark.unit
class TestLogDecision:
    """Logging of computed decisions."""

    def test_resolution_miss_logged_as_warning(
        self, binding_factory, rbac_config_factory, alice_request, caplog
    ) -> None:
        snapshot = PolicySnapshot.build(
            [rbac_config_factory(), binding_factory("bind-alice", "ghost", ALICE)]
        )
        result = DecisionEngine(snapshot).decide(alice_request())

        with caplog.at_level(logging.DEBUG, logger="mesh_rbac.core.rbac.engine"):
            log_decision(result)

        warnings = [record for record in caplog.records if record.levelno == logging.WARNING]
        assert len(warnings) == 1
        assert "ghost" in warnings[0].getMessage()

    def test_verdict_level(self, products_snapshot, alice_request, caplog) -> None:
        result = DecisionEngine(products_snapshot).decide(alice_request())

        with caplog.at_level(logging.DEBUG, logger="mesh_rbac.core.rbac.engine"):
            log_decision(result, log_verdict=True)

        record = caplog.records[-1]
        assert record.levelno == logging.INFO
        assert record.rbac_decision["verdict"] == "ALLOW"

    def test_permissive_level(self, caplog) -> None:
        result = DecisionResult(
            verdict=Verdict.DENY,
            reason=DecisionReason.NO_MATCH,
            service="products.svc.cluster.local",
            namespace="default",
            permissive_matches=(
                BindingMatch("default", "permissive", "products-viewer", EnforcementMode.PERMISSIVE),
            ),
        )

        with caplog.at_level(logging.DEBUG, logger="mesh_rbac.core.rbac.engine"):
            log_decision(result, log_permissive=False)

        permissive = [r for r in caplog.records if hasattr(r, "rbac_permissive_match")]
        assert permissive[0].levelno == logging.DEBUG
