"""Tests for logging configuration, formatters and context injection."""

import json
import logging
import sys

import pytest

from mesh_rbac.infra.logging import config as logging_config
from mesh_rbac.infra.logging import (
    ContextInjectingFilter,
    JSONFormatter,
    clear_log_context,
    complete,
    configure_logging,
    get_log_context,
    remove_from_log_context,
    set_log_context,
    shutdown,
)


@pytest.fixture
def restore_root_logger():
    """Restore root logger handlers, filters and level after a test reconfigures it."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    filters = list(root.filters)
    level = root.level
    yield root
    shutdown()
    root.handlers[:] = handlers
    root.filters[:] = filters
    root.setLevel(level)


@pytest.fixture(autouse=True)
def _clean_context():
    clear_log_context()
    yield
    clear_log_context()


def _record(msg: str = "hello %s", args=("world",), **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="mesh_rbac.test",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg=msg,
        args=args,
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


@pytest.mark.unit
class TestLogContext:
    """contextvars-based log context."""

    def test_set_and_get(self) -> None:
        set_log_context(rbac_service="products", rbac_namespace="default")

        assert get_log_context() == {"rbac_service": "products", "rbac_namespace": "default"}

    def test_remove(self) -> None:
        set_log_context(a=1, b=2)
        remove_from_log_context("a")

        assert get_log_context() == {"b": 2}

    def test_filter_injects_without_overwriting(self) -> None:
        set_log_context(rbac_service="products", name="ignored")
        record = _record()

        assert ContextInjectingFilter().filter(record) is True
        assert record.rbac_service == "products"
        assert record.name == "mesh_rbac.test"


@pytest.mark.unit
class TestJSONFormatter:
    """JSON Lines output."""

    def test_basic_fields(self) -> None:
        data = json.loads(JSONFormatter(static={"service": "mesh-rbac"}).format(_record()))

        assert data["level"] == "INFO"
        assert data["logger"] == "mesh_rbac.test"
        assert data["message"] == "hello world"
        assert data["service"] == "mesh-rbac"
        assert data["timestamp"].endswith("Z")
        assert "trace_id" not in data

    def test_extra_fields_are_copied(self) -> None:
        record = _record(rbac_decision={"verdict": "DENY", "permissive_matches": []})

        data = json.loads(JSONFormatter().format(record))

        assert data["rbac_decision"] == {"verdict": "DENY", "permissive_matches": []}
        assert "args" not in data

    def test_exception_stays_on_one_line(self) -> None:
        try:
            raise ValueError("boom")
        except ValueError:
            record = logging.LogRecord(
                "mesh_rbac.test", logging.ERROR, __file__, 1, "failed", (), sys.exc_info()
            )

        output = JSONFormatter().format(record)

        assert "\n" not in output
        assert "ValueError: boom" in json.loads(output)["exception"]


@pytest.mark.unit
class TestConfigureLogging:
    """dictConfig + QueueHandler setup."""

    def test_json_file_logging(self, tmp_path, restore_root_logger) -> None:
        log_file = tmp_path / "logs" / "rbac.log.jsonl"
        configure_logging(
            log_level="INFO",
            file_path=log_file,
            json_logs=True,
            console_enabled=False,
            service_name="mesh-rbac-test",
        )

        set_log_context(rbac_namespace="default")
        logging.getLogger("mesh_rbac.test").info("decision made", extra={"verdict": "ALLOW"})
        logging.getLogger("mesh_rbac.test").debug("filtered out")
        complete()
        shutdown()

        lines = log_file.read_text(encoding="utf-8").splitlines()
        assert len(lines) == 1
        data = json.loads(lines[0])
        assert data["message"] == "decision made"
        assert data["verdict"] == "ALLOW"
        assert data["service"] == "mesh-rbac-test"
        assert data["rbac_namespace"] == "default"

    def test_text_file_logging(self, tmp_path, restore_root_logger) -> None:
        log_file = tmp_path / "rbac.log"
        configure_logging(log_level="DEBUG", file_path=log_file, console_enabled=False)

        logging.getLogger("mesh_rbac.test").debug("checking %s", "products")
        complete()
        shutdown()

        content = log_file.read_text(encoding="utf-8")
        assert "DEBUG - mesh_rbac.test - checking products" in content

    def test_reconfiguring_registers_shutdown_once(
        self, tmp_path, monkeypatch, restore_root_logger
    ) -> None:
        registered = []
        monkeypatch.setattr(logging_config, "_SHUTDOWN_REGISTERED", False)
        monkeypatch.setattr(logging_config.atexit, "register", registered.append)

        configure_logging(file_path=tmp_path / "first.log", console_enabled=False)
        configure_logging(file_path=tmp_path / "second.log", console_enabled=False)

        assert registered == [shutdown]
