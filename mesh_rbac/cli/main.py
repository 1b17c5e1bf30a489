"""Main CLI entry point for mesh-rbac commands."""

import click

from mesh_rbac.cli.commands import config, policy
from mesh_rbac.infra.logging.config import setup_logging


@click.group()
@click.version_option(version="0.1.0", prog_name="mesh-rbac")
@click.pass_context
def cli(ctx: click.Context) -> None:
    """mesh-rbac - Evaluate and validate service mesh RBAC policies.

    Policies are ServiceRole, ServiceRoleBinding and RbacConfig manifests
    (YAML or JSON). Paths default to RBAC_POLICY_PATHS.

    \b
    Command Groups:
      policy     Validate manifests and evaluate requests against them
      config     Inspect effective settings

    \b
    Quick Start:
      mesh-rbac policy validate conf/policies
      mesh-rbac policy check conf/policies \\
          --service products.svc.cluster.local --namespace default \\
          --method GET --user alice@yahoo.com --label version=v1
      mesh-rbac policy scope conf/policies --service products.svc.cluster.local --namespace default
    """
    ctx.ensure_object(dict)


cli.add_command(policy.policy)
cli.add_command(config.config)


def main() -> None:
    """Entry point for CLI."""
    setup_logging()
    cli(obj={})


if __name__ == "__main__":
    main()
