"""Logging infrastructure.

Structured logging on top of the standard library:
- text or JSON Lines output with OpenTelemetry trace correlation
- automatic context injection via contextvars
- QueueHandler + QueueListener for non-blocking I/O
- per-handler log levels (console vs file)

Basic usage:
    from mesh_rbac.infra.logging import set_log_context, setup_logging
    import logging

    setup_logging()
    logger = logging.getLogger(__name__)

    set_log_context(rbac_namespace="default")
    logger.info("Checking request")  # includes rbac_namespace
"""

from mesh_rbac.infra.logging.config import (
    complete,
    configure_logging,
    setup_logging,
    shutdown,
)
from mesh_rbac.infra.logging.context import (
    ContextInjectingFilter,
    clear_log_context,
    get_log_context,
    remove_from_log_context,
    set_log_context,
)
from mesh_rbac.infra.logging.formatters import JSONFormatter

__all__ = [
    "ContextInjectingFilter",
    "JSONFormatter",
    "clear_log_context",
    "complete",
    "configure_logging",
    "get_log_context",
    "remove_from_log_context",
    "set_log_context",
    "setup_logging",
    "shutdown",
]
