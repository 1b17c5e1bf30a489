"""Request descriptor consumed by the decision engine.

The interception proxy (outside this package) builds a ``RequestContext``
for every request it wants authorized. The caller identity is assumed to be
authenticated already.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from mesh_rbac.core.rbac.constants import (
    DESTINATION_LABELS,
    DESTINATION_NAMESPACE,
    REQUEST_HEADERS,
    parse_indexed_key,
)

__all__ = ["Caller", "RequestContext", "RequestProtocol"]


class RequestProtocol(str, Enum):
    HTTP = "http"
    GRPC = "grpc"


class Caller(BaseModel):
    """Authenticated identity of the calling workload or user."""

    model_config = ConfigDict(frozen=True)

    user: str | None = Field(default=None, description="Authenticated user/principal")
    group: str | None = Field(default=None, description="Group of the caller")
    properties: dict[str, str] = Field(
        default_factory=dict,
        description="Source properties, e.g. {'source.namespace': 'abc'}",
    )


class RequestContext(BaseModel):
    """Attributes of one request to authorize.

    ``attributes`` holds any additional constraint keys the proxy knows
    about (``destination.port``, ``destination.ip``, ...). Keys found there
    take precedence over the derived ones.
    """

    model_config = ConfigDict(frozen=True)

    service: str = Field(min_length=1, description="Fully-qualified target service name")
    namespace: str = Field(min_length=1, description="Namespace of the target service")
    path: str = Field(default="", description="HTTP path or '/package.Service/Method'")
    method: str = Field(default="", description="HTTP method; ignored for gRPC")
    protocol: RequestProtocol = Field(default=RequestProtocol.HTTP)
    destination_labels: dict[str, str] = Field(default_factory=dict)
    headers: dict[str, str] = Field(default_factory=dict)
    attributes: dict[str, str] = Field(default_factory=dict)
    caller: Caller = Field(default_factory=Caller)

    @property
    def is_grpc(self) -> bool:
        return self.protocol is RequestProtocol.GRPC

    def constraint_value(self, key: str) -> str | None:
        """Resolve a constraint key against this request.

        Args:
            key: Constraint key such as ``destination.labels[version]``.

        Returns:
            The attribute value, or None if the request does not provide it.
        """
        if key in self.attributes:
            return self.attributes[key]

        indexed = parse_indexed_key(key)
        if indexed is not None:
            prefix, name = indexed
            if prefix == DESTINATION_LABELS:
                return self.destination_labels.get(name)
            if prefix == REQUEST_HEADERS:
                return _header_lookup(self.headers, name)
            return None

        if key == DESTINATION_NAMESPACE:
            return self.namespace
        return None


def _header_lookup(headers: dict[str, str], name: str) -> str | None:
    # Header names are case-insensitive
    if name in headers:
        return headers[name]
    lowered = name.lower()
    for header, value in headers.items():
        if header.lower() == lowered:
            return value
    return None
