"""RBAC enforcement utilities for route handlers.

Turn decisions into HTTPException(403) responses with structured RFC 7807
Problem Details bodies. The decision itself is computed by
:class:`mesh_rbac.core.rbac.PolicyStore`; these helpers only translate a
DENY into a response.

Pattern: Imperative checking in the route body (raises HTTPException on DENY)

Example Usage:
    ```python
    from fastapi import FastAPI, Request

    from mesh_rbac.core.rbac import Caller, PolicyStore, RequestContext
    from mesh_rbac.core.utils.rbac import enforce

    app = FastAPI()
    store = PolicyStore.from_settings()

    @app.get("/products/{product_id}")
    async def get_product(product_id: str, request: Request):
        enforce(
            store,
            RequestContext(
                service="products.svc.cluster.local",
                namespace="default",
                path=request.url.path,
                method=request.method,
                caller=Caller(user=request.headers.get("x-forwarded-user")),
            ),
            request.url.path,
        )
        return {"id": product_id}
    ```
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import HTTPException, status

from mesh_rbac.core.exceptions import AccessDeniedError

if TYPE_CHECKING:
    from mesh_rbac.core.rbac.engine import DecisionResult
    from mesh_rbac.core.rbac.request import RequestContext
    from mesh_rbac.core.rbac.snapshot import PolicyStore

__all__ = ["enforce", "require_allow"]


def require_allow(result: DecisionResult, request_path: str | None = None) -> None:
    """Require a decision to be ALLOW.

    Raises HTTPException(403) with RFC 7807 Problem Details if it is DENY.
    The audit record of the decision is included in the body so callers can
    see which bindings were consulted.

    Args:
        result: Decision returned by ``PolicyStore.decide``.
        request_path: Optional request path for error context (use request.url.path)

    Raises:
        HTTPException: 403 Forbidden if the verdict is DENY
    """
    if result.allowed:
        return

    denied = AccessDeniedError(result.to_audit_record(), instance=request_path)
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail=denied.to_problem_details(),
    )


def enforce(
    store: PolicyStore,
    request: RequestContext,
    request_path: str | None = None,
) -> DecisionResult:
    """Decide a request against the store's current snapshot and require ALLOW.

    Args:
        store: Policy store holding the current snapshot.
        request: Request attributes to authorize.
        request_path: Optional request path for error context.

    Returns:
        The ALLOW decision, for callers that want to inspect it.

    Raises:
        HTTPException: 403 Forbidden if the verdict is DENY
    """
    result = store.decide(request)
    require_allow(result, request_path or request.path or None)
    return result
