"""RBAC policy commands: validate manifests, evaluate requests, inspect scope."""

from collections import Counter
import json
from pathlib import Path
import sys

import click

from mesh_rbac.cli.utils import error, header, info, key_values, success, verdict, warning
from mesh_rbac.core.exceptions import AppException
from mesh_rbac.core.rbac import (
    AdmissionValidator,
    Caller,
    PolicySnapshot,
    PolicyStore,
    RequestContext,
    RequestProtocol,
    ScopeResolver,
    load_manifests,
    load_snapshot,
)
from mesh_rbac.core.settings import get_rbac_settings
from mesh_rbac.infra.logging import set_log_context

# Exit code for a DENY verdict with --fail-on-deny; load errors exit with 1
EXIT_DENIED = 2


def _parse_pairs(
    ctx: click.Context, param: click.Parameter, values: tuple[str, ...]
) -> dict[str, str]:
    """Parse repeated ``key=value`` options into a dict."""
    pairs: dict[str, str] = {}
    for raw in values:
        key, sep, value = raw.partition("=")
        if not sep or not key:
            msg = f"expected KEY=VALUE, got {raw!r}"
            raise click.BadParameter(msg, ctx=ctx, param=param)
        pairs[key] = value
    return pairs


def _policy_paths(paths: tuple[Path, ...]) -> list[Path]:
    return list(paths) if paths else list(get_rbac_settings().policy_paths)


def _load_snapshot_or_exit(paths: tuple[Path, ...]) -> PolicySnapshot:
    settings = get_rbac_settings()
    try:
        return load_snapshot(
            _policy_paths(paths),
            validate=settings.validate_on_load,
            default_namespace=settings.default_namespace,
        )
    except AppException as e:
        error(f"Failed to load policies: {e.detail}")
        for detail in e.extra.get("errors") or []:
            error(f"  {detail}")
        sys.exit(1)


paths_argument = click.argument(
    "paths",
    nargs=-1,
    type=click.Path(path_type=Path),
)


@click.group(name="policy")
def policy() -> None:
    """Validate and evaluate RBAC policies."""


@policy.command()
@paths_argument
@click.option(
    "--strict",
    is_flag=True,
    help="Fail when a binding references a missing ServiceRole "
    "(also enabled by RBAC_FAIL_ON_RESOLUTION_MISS)",
)
def validate(paths: tuple[Path, ...], strict: bool) -> None:
    """Validate manifests the way the authoring layer admits them."""
    settings = get_rbac_settings()
    strict = strict or settings.fail_on_resolution_miss

    try:
        manifests = load_manifests(
            _policy_paths(paths), default_namespace=settings.default_namespace
        )
        report = AdmissionValidator().validate_all(manifests)
    except AppException as e:
        error(f"Validation failed: {e.detail}")
        for detail in e.extra.get("errors") or []:
            error(f"  {detail}")
        sys.exit(1)

    info(f"Read {len(manifests.files)} file(s), digest {manifests.digest}")
    kinds = Counter(obj.kind for obj in manifests)
    key_values(dict(sorted(kinds.items())))

    for message in report.warnings:
        warning(message)
    for miss in report.dangling_refs:
        warning(
            f"ServiceRoleBinding {miss.namespace}/{miss.binding} references "
            f"missing ServiceRole {miss.role_name!r}"
        )

    if strict and report.dangling_refs:
        error(f"{len(report.dangling_refs)} unresolved role reference(s)")
        sys.exit(1)

    success(f"{report.admitted} object(s) admitted")


@policy.command()
@paths_argument
@click.option("--service", required=True, help="Fully-qualified target service name")
@click.option("--namespace", required=True, help="Namespace of the target service")
@click.option("--path", "request_path", default="", help="HTTP path or /package.Service/Method")
@click.option("--method", default="", help="HTTP method (ignored with --grpc)")
@click.option("--grpc", is_flag=True, help="Treat the request as gRPC")
@click.option("--user", default=None, help="Authenticated caller identity")
@click.option("--group", default=None, help="Caller group")
@click.option(
    "--property",
    "properties",
    multiple=True,
    callback=_parse_pairs,
    help="Caller property KEY=VALUE (repeatable), e.g. source.namespace=abc",
)
@click.option(
    "--label",
    "labels",
    multiple=True,
    callback=_parse_pairs,
    help="Destination label KEY=VALUE (repeatable)",
)
@click.option(
    "--header",
    "headers",
    multiple=True,
    callback=_parse_pairs,
    help="Request header KEY=VALUE (repeatable)",
)
@click.option(
    "--attribute",
    "attributes",
    multiple=True,
    callback=_parse_pairs,
    help="Extra constraint attribute KEY=VALUE (repeatable)",
)
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["json", "table"]),
    default="table",
    help="Output format",
)
@click.option("--fail-on-deny", is_flag=True, help=f"Exit with {EXIT_DENIED} on DENY")
def check(
    paths: tuple[Path, ...],
    service: str,
    namespace: str,
    request_path: str,
    method: str,
    grpc: bool,
    user: str | None,
    group: str | None,
    properties: dict[str, str],
    labels: dict[str, str],
    headers: dict[str, str],
    attributes: dict[str, str],
    output_format: str,
    fail_on_deny: bool,
) -> None:
    """Evaluate one request against the policies."""
    settings = get_rbac_settings()
    snapshot = _load_snapshot_or_exit(paths)
    store = PolicyStore(
        snapshot,
        log_decisions=settings.log_decisions,
        log_permissive=settings.log_permissive,
    )

    request = RequestContext(
        service=service,
        namespace=namespace,
        path=request_path,
        method=method,
        protocol=RequestProtocol.GRPC if grpc else RequestProtocol.HTTP,
        destination_labels=labels,
        headers=headers,
        attributes=attributes,
        caller=Caller(user=user, group=group, properties=properties),
    )
    set_log_context(rbac_service=service, rbac_namespace=namespace)
    result = store.decide(request)
    record = result.to_audit_record()

    if output_format == "json":
        click.echo(json.dumps(record, indent=2))
    else:
        verdict(result.allowed, f"{result.verdict.value} ({result.reason.value})")
        key_values(
            {
                "service": result.service,
                "namespace": result.namespace,
                "snapshot": result.snapshot_version,
                "shadow verdict": result.shadow_verdict.value,
            }
        )
        if result.enforced_match is not None:
            match = result.enforced_match
            info(f"Allowed by {match.namespace}/{match.binding} (role {match.role})")
        for match in result.permissive_matches:
            warning(
                f"PERMISSIVE {match.namespace}/{match.binding} (role {match.role}) would allow"
            )
        for miss in result.resolution_misses:
            warning(
                f"{miss.namespace}/{miss.binding}: {miss.role_kind} {miss.role_name!r} "
                f"not resolved ({miss.reason})"
            )

    if fail_on_deny and not result.allowed:
        sys.exit(EXIT_DENIED)


@policy.command()
@paths_argument
@click.option("--service", required=True, help="Fully-qualified target service name")
@click.option("--namespace", required=True, help="Namespace of the target service")
def scope(paths: tuple[Path, ...], service: str, namespace: str) -> None:
    """Show whether RBAC applies to a service."""
    snapshot = _load_snapshot_or_exit(paths)
    resolver = ScopeResolver(snapshot.config)
    outcome = resolver.resolve(service, namespace)

    header(f"{namespace}/{service}")
    key_values(
        {
            "rbac config": snapshot.rbac_config.ref if snapshot.rbac_config else "<none>",
            "mode": outcome.mode.value,
            "status": outcome.status.value,
        }
    )
    if outcome.active:
        success("RBAC is enforced for this service")
    else:
        info("RBAC is not applied; requests are allowed")
