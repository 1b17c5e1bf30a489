"""Logging configuration setup.

Configures the root logger through ``logging.config.dictConfig`` and routes
records through a ``QueueHandler`` so handlers run on a background
``QueueListener`` thread:

- ContextInjectingFilter on the queue handler
- console (stderr) and optional rotating file handler
- text or JSON Lines output
"""

from __future__ import annotations

import atexit
import logging
import logging.config
from logging.handlers import QueueHandler, QueueListener, RotatingFileHandler
from pathlib import Path
from queue import Queue
import time
from typing import TYPE_CHECKING, Any

from mesh_rbac.infra.logging.context import ContextInjectingFilter
from mesh_rbac.infra.logging.formatters import DEFAULT_FMT_KEYS, JSONFormatter

if TYPE_CHECKING:
    from mesh_rbac.core.settings.logs import LoggingSettings

_log_queue: Queue[logging.LogRecord] | None = None
_listener: QueueListener | None = None
_queue_handler: QueueHandler | None = None
_LOGGING_INITIALIZED = False
_SHUTDOWN_REGISTERED = False

logger = logging.getLogger(__name__)

TEXT_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def complete(max_wait: float = 5.0) -> None:
    """Block until queued log records have been handed to the handlers.

    Args:
        max_wait: Upper bound in seconds.
    """
    if _log_queue is None or _listener is None:
        return

    start = time.monotonic()
    while not _log_queue.empty() and (time.monotonic() - start) < max_wait:
        time.sleep(0.01)
    # Last dequeued record may still be in a handler
    time.sleep(0.05)


def shutdown() -> None:
    """Flush pending records and stop the QueueListener.

    Registered with ``atexit`` when logging is configured.
    """
    global _log_queue, _listener, _queue_handler

    if _listener is not None:
        complete()
        _listener.stop()
        _listener = None

    if _queue_handler is not None:
        logging.getLogger().removeHandler(_queue_handler)
        _queue_handler = None

    _log_queue = None


def setup_logging(
    log_settings: LoggingSettings | None = None,
    *,
    force: bool = False,
    **configure_kwargs: Any,
) -> None:
    """Configure logging once per process.

    Args:
        log_settings: Logging settings; loaded via ``get_logging_settings()``
            when omitted.
        force: Reconfigure even if logging was already set up.
        **configure_kwargs: Overrides for :func:`configure_logging`.
    """
    global _LOGGING_INITIALIZED

    if _LOGGING_INITIALIZED and not force:
        return

    if log_settings is None:
        from mesh_rbac.core.settings import get_logging_settings

        log_settings = get_logging_settings()

    log_config = {**log_settings.to_logging_kwargs(), **configure_kwargs}
    configure_logging(**log_config)
    _LOGGING_INITIALIZED = True


def configure_logging(
    log_level: str = "INFO",
    console_level: str | None = None,
    file_level: str | None = None,
    file_path: str | Path | None = None,
    json_logs: bool = False,
    console_enabled: bool = True,
    include_context: bool = True,
    capture_warnings: bool = True,
    include_function_name: bool = False,
    file_max_bytes: int = 10 * 1024 * 1024,
    file_backup_count: int = 5,
    service_name: str = "mesh-rbac",
    **kwargs: Any,
) -> None:
    """Configure root logging with dictConfig and the QueueHandler pattern.

    Args:
        log_level: Root logger level.
        console_level: Console handler level; defaults to ``log_level``.
        file_level: File handler level; defaults to ``log_level``.
        file_path: Log file path. None disables file logging.
        json_logs: Emit JSON Lines instead of text.
        console_enabled: Log to stderr.
        include_context: Inject the log context into every record.
        capture_warnings: Route ``warnings`` through logging.
        include_function_name: Add the function name to each record.
        file_max_bytes: Size at which the log file rotates.
        file_backup_count: Number of rotated files to keep.
        service_name: Static ``service`` field of JSON records.
        **kwargs: Unknown options; logged at DEBUG and ignored.

    Example:
        from mesh_rbac.core.settings import get_logging_settings

        configure_logging(**get_logging_settings().to_logging_kwargs())
    """
    if kwargs:
        logger.debug("Unused logging kwargs supplied: %s", ", ".join(sorted(kwargs)))

    logging.captureWarnings(capture_warnings)

    resolved_path = Path(file_path) if file_path else None
    if resolved_path is not None:
        resolved_path.parent.mkdir(parents=True, exist_ok=True)

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            # Handlers are attached to the QueueListener below
            "root": {
                "level": log_level.upper(),
                "handlers": [],
            },
        }
    )

    _setup_queue_logging(
        include_context=include_context,
        console_enabled=console_enabled,
        console_level=console_level or log_level,
        file_path=resolved_path,
        file_level=file_level or log_level,
        file_max_bytes=file_max_bytes,
        file_backup_count=file_backup_count,
        formatter=_build_formatter(json_logs, include_function_name, service_name),
    )


def _build_formatter(
    json_logs: bool,
    include_function_name: bool,
    service_name: str,
) -> logging.Formatter:
    if json_logs:
        fmt_keys = dict(DEFAULT_FMT_KEYS)
        if include_function_name:
            fmt_keys["function"] = "funcName"
        return JSONFormatter(fmt_keys=fmt_keys, static={"service": service_name})
    return logging.Formatter(fmt=_text_format(include_function_name), datefmt=DATE_FORMAT)


def _text_format(include_function_name: bool) -> str:
    if include_function_name:
        return "%(asctime)s - %(levelname)s - %(name)s - %(funcName)s - %(message)s"
    return TEXT_FORMAT


def _setup_queue_logging(
    include_context: bool,
    console_enabled: bool,
    console_level: str,
    file_path: Path | None,
    file_level: str,
    file_max_bytes: int,
    file_backup_count: int,
    formatter: logging.Formatter,
) -> None:
    """Start a QueueListener with the real handlers and queue the root logger."""
    global _log_queue, _listener, _queue_handler, _SHUTDOWN_REGISTERED

    # Reconfiguration replaces the previous listener
    shutdown()

    _log_queue = Queue()
    handlers: list[logging.Handler] = []

    if console_enabled:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(console_level.upper())
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    if file_path is not None:
        file_handler = RotatingFileHandler(
            file_path,
            maxBytes=file_max_bytes,
            backupCount=file_backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(file_level.upper())
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    if handlers:
        _listener = QueueListener(_log_queue, *handlers, respect_handler_level=True)
        _listener.start()
        if not _SHUTDOWN_REGISTERED:
            atexit.register(shutdown)
            _SHUTDOWN_REGISTERED = True

    _queue_handler = QueueHandler(_log_queue)
    # Logger filters do not see propagated records; handler filters do
    if include_context:
        _queue_handler.addFilter(ContextInjectingFilter())
    logging.getLogger().addHandler(_queue_handler)
