"""YAML manifest and override loading, plus settings resolution."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING, Any, TypeVar

from dotenv import dotenv_values
from pydantic import BaseModel, ValidationError
from ruamel.yaml import YAML

from pkgstrap.config.schema import (
    Config,
    ConfigOverrides,
    Dependency,
    GitRepositoryOverride,
    LocalPathOverride,
    LocalPathSource,
)
from pkgstrap.config.settings import DirectorySettings, SshCredentials

if TYPE_CHECKING:
    from pkgstrap.config.settings import Directories

logger = logging.getLogger(__name__)

MANIFEST_NAME = "pkgstrap.yaml"
OVERRIDES_NAME = "pkgstrap.local.yaml"

M = TypeVar("M", bound=BaseModel)


class ConfigError(Exception):
    """Raised for configuration loading / validation errors."""


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        raw = YAML(typ="safe").load(path)
    except Exception as exc:
        raise ConfigError(f"Failed to read {path}: {exc}") from exc
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigError(f"{path}: expected a mapping at the top level")
    return raw


def _validate(model: type[M], raw: dict[str, Any], path: Path) -> M:
    try:
        return model.model_validate(raw)
    except ValidationError as exc:
        raise ConfigError(f"{path}: {exc}") from exc


def _anchor(path: Path, base: Path) -> Path:
    path = path.expanduser()
    return path if path.is_absolute() else base / path


def _anchor_dependency(dep: Dependency, base: Path) -> Dependency:
    if isinstance(dep.source, LocalPathSource):
        source = dep.source.model_copy(update={"local_path": _anchor(dep.source.local_path, base)})
        return dep.model_copy(update={"source": source})
    return dep


def load_config(path: Path | str) -> Config:
    """Load a manifest file and return a ``Config``.

    Local source paths are anchored at the manifest's directory; targets and
    links are anchored there at acquisition time via ``config_dir``.

    Raises:
        ConfigError: On YAML parse errors or validation failures.
    """
    path = Path(path)
    config = _validate(Config, _read_yaml(path), path)
    config.config_dir = path.parent
    config.dependencies = {
        name: _anchor_dependency(dep, config.config_dir)
        for name, dep in config.dependencies.items()
    }
    logger.info("Loaded manifest %s (%d dependencies)", path, len(config.dependencies))
    return config


def load_overrides(path: Path | str) -> ConfigOverrides:
    """Load an override file.

    Raises:
        ConfigError: On YAML parse errors or validation failures.
    """
    path = Path(path)
    overrides = _validate(ConfigOverrides, _read_yaml(path), path)
    anchored: dict[str, LocalPathOverride | GitRepositoryOverride] = {}
    for name, override in overrides.dependencies.items():
        if isinstance(override, LocalPathOverride):
            override = override.model_copy(
                update={"local_path": _anchor(override.local_path, path.parent)}
            )
        anchored[name] = override
    logger.info("Loaded overrides %s (%d entries)", path, len(anchored))
    return ConfigOverrides(dependencies=anchored)


def find_overrides(config_path: Path) -> Path | None:
    """The override file next to *config_path*, if there is one."""
    candidate = config_path.parent / OVERRIDES_NAME
    return candidate if candidate.is_file() else None


def _dotenv_fallbacks(project_dir: Path, prefix: str, fields: list[str]) -> dict[str, str]:
    """Values from ``<project_dir>/.env`` for fields not already set in the environment.

    Priority (highest wins): environment variable > ``.env`` file > default.
    """
    env_file = project_dir / ".env"
    dotenv_vals = dotenv_values(env_file, encoding="utf-8-sig") if env_file.is_file() else {}

    resolved: dict[str, str] = {}
    for field in fields:
        env_key = f"{prefix}{field.upper()}"
        if env_key in os.environ:
            continue
        val = dotenv_vals.get(env_key)
        if val is not None:
            resolved[field] = val
    return resolved


def load_settings(project_dir: Path) -> tuple[Directories, SshCredentials]:
    """Resolve run directories and SSH credentials for *project_dir*.

    Relative directory settings are taken from *project_dir*.

    Raises:
        ConfigError: A setting fails validation.
    """
    try:
        dir_settings = DirectorySettings(
            **_dotenv_fallbacks(project_dir, "PKGSTRAP_", list(DirectorySettings.model_fields))
        )
        credentials = SshCredentials(
            **_dotenv_fallbacks(project_dir, "PKGSTRAP_SSH_", list(SshCredentials.model_fields))
        )
    except ValidationError as exc:
        raise ConfigError(str(exc)) from exc

    directories = dir_settings.directories(project_dir)
    directories = directories.model_copy(
        update={
            field: _anchor(getattr(directories, field), project_dir)
            for field in type(directories).model_fields
        }
    )
    credentials = credentials.model_copy(update={"key": credentials.key.expanduser()})
    logger.debug("Directories: %s", directories)
    return directories, credentials
