"""CLI utilities for formatting output."""

from mesh_rbac.cli.utils.formatters import (
    error,
    header,
    info,
    key_values,
    success,
    verdict,
    warning,
)

__all__ = [
    "error",
    "header",
    "info",
    "key_values",
    "success",
    "verdict",
    "warning",
]
