"""Logging settings for the CLI and for services embedding the engine."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

from pydantic import AliasChoices, Field, computed_field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .yaml_sources import create_logging_yaml_source

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class LoggingSettings(BaseSettings):
    """Where decision and loader logs go, and in which format.

    Environment variables use the LOG_ prefix, e.g. ``LOG_LEVEL=DEBUG``,
    ``LOG_JSON=true``, ``LOG_FILE_ENABLED=true``. YAML comes from
    ``conf/logging.yaml`` and ``conf/logging.d/*.yaml``.
    """

    service_name: str = Field(
        default="mesh-rbac",
        description="Static 'service' field of JSON records",
    )
    level: LogLevel = Field(default="INFO", description="Root logger level")
    json_logs: bool = Field(
        default=False,
        validation_alias=AliasChoices("json", "log_json"),
        description="Write JSON Lines instead of text",
    )

    # Handlers
    console_enabled: bool = Field(default=True, description="Log to stderr")
    console_level: LogLevel | None = Field(
        default=None,
        description="stderr handler level; falls back to 'level'",
    )
    file_enabled: bool = Field(default=False, description="Also log to a rotating file")
    file_path: Path | None = Field(default=Path("logs/mesh-rbac.log.jsonl"))
    file_level: LogLevel | None = Field(
        default=None,
        description="File handler level; falls back to 'level'",
    )
    file_max_bytes: int = Field(default=10_485_760, ge=1024, le=1_073_741_824)
    file_backup_count: int = Field(default=5, ge=0, le=100)

    # Record content
    include_context: bool = Field(
        default=True,
        description="Copy set_log_context() values onto every record",
    )
    include_function_name: bool = Field(default=False)
    capture_warnings: bool = Field(
        default=True,
        description="Route the warnings module through logging",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        env_ignore_empty=True,
    )

    @field_validator("level", "console_level", "file_level", mode="before")
    @classmethod
    def normalize_level(cls, v: Any) -> Any:
        return v.upper() if isinstance(v, str) else v

    @computed_field
    @property
    def effective_file_path(self) -> Path | None:
        """File path, or None when file logging is off."""
        return self.file_path if self.file_enabled else None

    @computed_field
    @property
    def effective_console_level(self) -> LogLevel:
        return self.console_level or self.level

    @computed_field
    @property
    def effective_file_level(self) -> LogLevel:
        return self.file_level or self.level

    def to_logging_kwargs(self) -> dict[str, Any]:
        """Keyword arguments for :func:`mesh_rbac.infra.logging.configure_logging`."""
        file_path = self.effective_file_path
        return {
            "service_name": self.service_name,
            "log_level": self.level,
            "json_logs": self.json_logs,
            "console_enabled": self.console_enabled,
            "console_level": self.effective_console_level,
            "file_path": str(file_path) if file_path else None,
            "file_level": self.effective_file_level,
            "file_max_bytes": self.file_max_bytes,
            "file_backup_count": self.file_backup_count,
            "include_context": self.include_context,
            "include_function_name": self.include_function_name,
            "capture_warnings": self.capture_warnings,
        }

    @classmethod
    def settings_customise_sources(
        cls, settings_cls, init_settings, env_settings, dotenv_settings, file_secret_settings
    ):
        """Precedence: init > yaml > env > dotenv > secrets."""
        return (
            init_settings,
            create_logging_yaml_source(settings_cls),
            env_settings,
            dotenv_settings,
            file_secret_settings,
        )
