"""RBAC policy loading and decision logging settings."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Annotated

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from .yaml_sources import create_rbac_yaml_source


class RbacSettings(BaseSettings):
    """Where policies come from and how decisions are logged.

    Environment variables use RBAC_ prefix.
    Example: RBAC_POLICY_PATHS=conf/policies,/etc/mesh/rbac RBAC_LOG_DECISIONS=true
    """

    # ──────────────────────────────────────────────────────────────
    # Policy sources
    # ──────────────────────────────────────────────────────────────

    policy_paths: Annotated[list[Path], NoDecode] = Field(
        default_factory=lambda: [Path("conf/policies")],
        description="Manifest files or directories holding ServiceRole/ServiceRoleBinding/RbacConfig objects",
    )

    default_namespace: str = Field(
        default="default",
        min_length=1,
        description="Namespace applied to objects whose metadata omits one",
    )

    validate_on_load: bool = Field(
        default=True,
        description="Run admission validation when loading a snapshot",
    )

    fail_on_resolution_miss: bool = Field(
        default=False,
        description="Treat bindings that reference a missing ServiceRole as errors in `policy validate`",
    )

    # ──────────────────────────────────────────────────────────────
    # Decision logging
    # ──────────────────────────────────────────────────────────────

    log_decisions: bool = Field(
        default=False,
        description="Log every verdict at INFO (DEBUG otherwise)",
    )

    log_permissive: bool = Field(
        default=True,
        description="Log would-allow results of PERMISSIVE bindings at INFO (DEBUG otherwise)",
    )

    @field_validator("policy_paths", mode="before")
    @classmethod
    def split_policy_paths(cls, v: object) -> object:
        """Accept a JSON list or a comma-separated string as well as a list."""
        if isinstance(v, str) and v.lstrip().startswith("["):
            return json.loads(v)
        if isinstance(v, str):
            return [part.strip() for part in v.split(",") if part.strip()]
        return v

    model_config = SettingsConfigDict(
        env_prefix="RBAC_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        env_ignore_empty=True,
    )

    @classmethod
    def settings_customise_sources(
        cls, settings_cls, init_settings, env_settings, dotenv_settings, file_secret_settings
    ):
        """Customize settings source precedence: init > yaml > env > dotenv > secrets."""
        return (
            init_settings,
            create_rbac_yaml_source(settings_cls),
            env_settings,
            dotenv_settings,
            file_secret_settings,
        )
