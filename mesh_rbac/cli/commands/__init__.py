"""CLI command modules."""

from mesh_rbac.cli.commands import config, policy

__all__ = [
    "config",
    "policy",
]
