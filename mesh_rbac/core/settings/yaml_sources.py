"""YAML settings sources with conf.d overrides.

Each settings model reads ``<base>/<name>.yaml`` followed by the files of
``<base>/<name>.d/`` in name order, so a deployment can drop override files
next to the packaged defaults. Later files win key by key.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic_settings import YamlConfigSettingsSource

if TYPE_CHECKING:
    from pydantic_settings import BaseSettings

# JSON is valid YAML
CONFD_PATTERNS = ("*.yaml", "*.yml", "*.json")


def discover_yaml_files(base: Path, yaml_file: str, confd_dir: str | None) -> list[Path]:
    """Existing config files under ``base``, main file first."""
    files: list[Path] = []
    main_file = base / yaml_file
    if main_file.is_file():
        files.append(main_file)
    if confd_dir and (base / confd_dir).is_dir():
        for pattern in CONFD_PATTERNS:
            files.extend(sorted((base / confd_dir).glob(pattern)))
    return files


class ConfDYamlConfigSettingsSource(YamlConfigSettingsSource):
    """``YamlConfigSettingsSource`` over a main file plus a conf.d directory.

    The base directory defaults to ``conf`` and can be moved with the
    environment variable named by ``config_dir_env`` (e.g. RBAC_CONFIG_DIR).
    """

    def __init__(
        self,
        settings_cls: type[BaseSettings],
        yaml_file: str = "rbac.yaml",
        confd_dir: str | None = "rbac.d",
        config_dir_env: str = "CONFIG_DIR",
        base_dir: str = "conf",
        yaml_file_encoding: str | None = "utf-8",
    ) -> None:
        base = Path(os.getenv(config_dir_env, base_dir))
        self._yaml_files = discover_yaml_files(base, yaml_file, confd_dir)

        super().__init__(
            settings_cls=settings_cls,
            yaml_file=self._yaml_files or None,
            yaml_file_encoding=yaml_file_encoding,
        )

    @property
    def yaml_files(self) -> list[Path]:
        return list(self._yaml_files)

    def __repr__(self) -> str:
        files = ", ".join(str(path) for path in self._yaml_files)
        return f"{self.__class__.__name__}(yaml_files=[{files}])"


def create_rbac_yaml_source(settings_cls: type[BaseSettings]) -> ConfDYamlConfigSettingsSource:
    """conf/rbac.yaml + conf/rbac.d/, relocatable with RBAC_CONFIG_DIR."""
    return ConfDYamlConfigSettingsSource(
        settings_cls,
        yaml_file="rbac.yaml",
        confd_dir="rbac.d",
        config_dir_env="RBAC_CONFIG_DIR",
    )


def create_logging_yaml_source(settings_cls: type[BaseSettings]) -> ConfDYamlConfigSettingsSource:
    """conf/logging.yaml + conf/logging.d/, relocatable with LOGGING_CONFIG_DIR."""
    return ConfDYamlConfigSettingsSource(
        settings_cls,
        yaml_file="logging.yaml",
        confd_dir="logging.d",
        config_dir_env="LOGGING_CONFIG_DIR",
    )
