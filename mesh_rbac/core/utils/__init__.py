"""Core utility functions.

Utilities Organization:
    - rbac: turn RBAC decisions into HTTP 403 responses

Example:
    ```python
    from mesh_rbac.core.utils.rbac import enforce

    result = enforce(store, request_context, request.url.path)
    ```
"""

from __future__ import annotations

from mesh_rbac.core.utils.rbac import enforce, require_allow

__all__ = [
    "enforce",
    "require_allow",
]
