"""Constants shared by the RBAC schema, loader and decision engine."""

from __future__ import annotations

from enum import Enum
import re

__all__ = [
    "API_VERSION",
    "DESTINATION_LABELS",
    "DESTINATION_NAMESPACE",
    "REQUEST_HEADERS",
    "ROLE_REF_KIND",
    "WILDCARD",
    "Kind",
    "parse_indexed_key",
]

API_VERSION = "rbac.istio.io/v1alpha1"

# Universal wildcard pattern
WILDCARD = "*"

# Only supported RoleRef kind
ROLE_REF_KIND = "ServiceRole"

# Constraint keys resolved from request attributes
DESTINATION_LABELS = "destination.labels"
DESTINATION_NAMESPACE = "destination.namespace"
REQUEST_HEADERS = "request.headers"

_INDEXED_KEY = re.compile(r"^(?P<prefix>[A-Za-z0-9_.\-]+)\[(?P<name>[^\[\]]+)\]$")


class Kind(str, Enum):
    """Kinds of declarative RBAC configuration objects."""

    SERVICE_ROLE = "ServiceRole"
    SERVICE_ROLE_BINDING = "ServiceRoleBinding"
    RBAC_CONFIG = "RbacConfig"


def parse_indexed_key(key: str) -> tuple[str, str] | None:
    """Split a map-style attribute key into prefix and entry name.

    Example:
        >>> parse_indexed_key("destination.labels[version]")
        ('destination.labels', 'version')
        >>> parse_indexed_key("destination.port") is None
        True
    """
    match = _INDEXED_KEY.match(key)
    if match is None:
        return None
    return match.group("prefix"), match.group("name")
