"""Context propagation for structured logging.

Fields set with :func:`set_log_context` are attached to every log record
emitted from the same thread or async task. The CLI uses it to tag decision
logs with the request being checked; an enforcing service would set it per
request.
"""

from __future__ import annotations

from contextvars import ContextVar
import logging
from typing import Any

_log_context: ContextVar[dict[str, Any]] = ContextVar("log_context", default={})


def set_log_context(**kwargs: Any) -> None:
    """Add fields to the logging context of the current task/thread.

    Example:
        set_log_context(rbac_service="products.svc.cluster.local", rbac_namespace="default")
        logger.info("Checking request")  # includes rbac_service and rbac_namespace
    """
    current = _log_context.get().copy()
    current.update(kwargs)
    _log_context.set(current)


def get_log_context() -> dict[str, Any]:
    """Return a copy of the current logging context."""
    return _log_context.get().copy()


def remove_from_log_context(*keys: str) -> None:
    """Remove specific keys from the logging context."""
    current = _log_context.get().copy()
    for key in keys:
        current.pop(key, None)
    _log_context.set(current)


def clear_log_context() -> None:
    """Clear the logging context of the current task/thread."""
    _log_context.set({})


class ContextInjectingFilter(logging.Filter):
    """Copy the current logging context onto each LogRecord.

    Installed on the root queue handler by ``configure_logging``. Attributes that
    already exist on the record (including ``extra=`` fields) win.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in _log_context.get().items():
            if not hasattr(record, key):
                setattr(record, key, value)
        return True
