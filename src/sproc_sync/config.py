"""
Configuration for sproc_sync runs.

Settings are read from a YAML file. Relative paths in the file are resolved
against the directory holding the configuration file, so a project can keep
its configuration next to its routine sources.

Example:

    database:
      host: localhost
      port: 3306
      user: app
      password: secret
      database: app

    loader:
      sources: lib/psql/**/*.psql
      metadata: etc/routines.json
      sql_mode: STRICT_ALL_TABLES,ONLY_FULL_GROUP_BY
      character_set: utf8mb4
      collate: utf8mb4_general_ci

    constants:
      C_MAX_NAME_LENGTH: 80

    wrapper:
      wrapper_file: app/data_layer.py
      wrapper_class: DataLayer
      parent_class: sproc_sync.runtime.mysql:MySqlDataLayer
      mangler: sproc_sync.naming:SnakeCaseMangler
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from sproc_sync.errors import ConfigError

logger = logging.getLogger(__name__)


def get_setting(
    settings: Dict[str, Any],
    mandatory: bool,
    section: str,
    name: str,
    default: Any = None,
) -> Any:
    """
    Return a setting from a section of the configuration.

    Raises:
        ConfigError: a mandatory setting (or its section) is missing
    """
    section_data = settings.get(section)
    if section_data is None:
        if mandatory:
            raise ConfigError(f"Section '{section}' not found in configuration")
        return default
    if not isinstance(section_data, dict):
        raise ConfigError(f"Section '{section}' must be a mapping")

    value = section_data.get(name)
    if value is None or value == "":
        if mandatory:
            raise ConfigError(f"Setting '{name}' not found in section '{section}'")
        return default

    return value


@dataclass
class DatabaseSettings:
    """Connection settings for the target database."""
    host: str = "localhost"
    port: int = 3306
    user: str = ""
    password: str = ""
    database: str = ""

    def to_connect_kwargs(self) -> Dict[str, Any]:
        return {
            "host": self.host,
            "port": self.port,
            "user": self.user,
            "password": self.password,
            "database": self.database,
        }


@dataclass
class LoaderSettings:
    """Settings of the routine loader."""
    sources: str
    metadata: Path
    sql_mode: str
    character_set: str
    collate: str
    constants: Dict[str, Any] = field(default_factory=dict)
    mangler: Optional[str] = None


@dataclass
class WrapperSettings:
    """Settings of the wrapper generator."""
    wrapper_file: Path
    wrapper_class: str
    parent_class: str
    metadata: Path
    mangler: Optional[str] = None
    lob_as_string: bool = False


@dataclass
class Settings:
    """All settings of a sproc_sync project."""
    base_dir: Path
    database: DatabaseSettings
    raw: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def load(cls, path: Union[str, Path]) -> Settings:
        """Read settings from a YAML file."""
        path = Path(path)
        try:
            with open(path, "r") as f:
                data = yaml.safe_load(f) or {}
        except OSError as e:
            raise ConfigError(f"Unable to read configuration file '{path}': {e}") from e
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in configuration file '{path}': {e}") from e

        if not isinstance(data, dict):
            raise ConfigError(f"Configuration file '{path}' must contain a mapping")

        logger.debug(f"Read configuration from {path}")
        return cls.from_dict(data, base_dir=path.resolve().parent)

    @classmethod
    def from_dict(cls, data: Dict[str, Any], base_dir: Path) -> Settings:
        db = data.get("database") or {}
        database = DatabaseSettings(
            host=db.get("host", "localhost"),
            port=int(db.get("port", 3306)),
            user=db.get("user", ""),
            password=db.get("password", ""),
            database=db.get("database", ""),
        )
        return cls(base_dir=Path(base_dir), database=database, raw=data)

    def resolve_path(self, value: Union[str, Path]) -> Path:
        """Resolve a path relative to the configuration directory."""
        path = Path(value)
        return path if path.is_absolute() else self.base_dir / path

    def loader(self) -> LoaderSettings:
        """Return the loader settings; all of them except constants are mandatory."""
        constants = self.raw.get("constants") or {}
        if not isinstance(constants, dict):
            raise ConfigError("Section 'constants' must be a mapping of names to values")

        return LoaderSettings(
            sources=get_setting(self.raw, True, "loader", "sources"),
            metadata=self.resolve_path(get_setting(self.raw, True, "loader", "metadata")),
            sql_mode=get_setting(self.raw, True, "loader", "sql_mode"),
            character_set=get_setting(self.raw, True, "loader", "character_set"),
            collate=get_setting(self.raw, True, "loader", "collate"),
            constants=constants,
            mangler=get_setting(self.raw, False, "wrapper", "mangler"),
        )

    def wrapper(self) -> WrapperSettings:
        """Return the wrapper generator settings."""
        metadata = get_setting(self.raw, False, "wrapper", "metadata")
        if metadata is None:
            metadata = get_setting(self.raw, True, "loader", "metadata")

        return WrapperSettings(
            wrapper_file=self.resolve_path(get_setting(self.raw, True, "wrapper", "wrapper_file")),
            wrapper_class=get_setting(self.raw, True, "wrapper", "wrapper_class"),
            parent_class=get_setting(
                self.raw, False, "wrapper", "parent_class",
                default="sproc_sync.runtime.mysql:MySqlDataLayer",
            ),
            metadata=self.resolve_path(metadata),
            mangler=get_setting(self.raw, False, "wrapper", "mangler"),
            lob_as_string=bool(get_setting(self.raw, False, "wrapper", "lob_as_string", default=False)),
        )
