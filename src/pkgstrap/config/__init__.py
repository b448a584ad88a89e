"""YAML manifest loading and convenience resolve/sync API."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from pkgstrap.config.loader import (
    ConfigError,
    find_overrides,
    load_config,
    load_overrides,
    load_settings,
)
from pkgstrap.config.schema import Config, ConfigOverrides, Dependency
from pkgstrap.config.settings import Directories, SshCredentials

if TYPE_CHECKING:
    from pkgstrap.core.resolver import ResolvedDependency
    from pkgstrap.engine.engine import ProgressCallback
    from pkgstrap.engine.types import CleanResult, SyncResult

logger = logging.getLogger(__name__)

__all__ = [
    "Config",
    "ConfigError",
    "ConfigOverrides",
    "Dependency",
    "Directories",
    "SshCredentials",
    "clean",
    "find_overrides",
    "load",
    "load_config",
    "load_overrides",
    "load_settings",
    "resolve",
    "sync",
]


def load(
    path: Path | str, overrides_path: Path | str | None = None
) -> tuple[Config, ConfigOverrides | None]:
    """Load a manifest and its overrides.

    Without *overrides_path*, ``pkgstrap.local.yaml`` next to the manifest is
    used when present.
    """
    path = Path(path)
    config = load_config(path)
    if overrides_path is None:
        overrides_path = find_overrides(path)
    overrides = load_overrides(overrides_path) if overrides_path is not None else None
    return config, overrides


def resolve(
    config: Config, overrides: ConfigOverrides | None = None
) -> dict[str, ResolvedDependency]:
    """Resolve every dependency without touching git."""
    from pkgstrap.core.resolver import Resolver

    return Resolver(config, overrides).resolve_all()


def sync(
    config: Config,
    overrides: ConfigOverrides | None = None,
    *,
    directories: Directories | None = None,
    credentials: SshCredentials | None = None,
    progress: ProgressCallback | None = None,
) -> SyncResult:
    """Resolve and acquire every dependency.

    Unset *directories*/*credentials* come from :func:`load_settings` for the
    manifest's directory. The four root directories are created if missing.
    """
    from pkgstrap.engine.engine import Acquirer

    resolved = resolve(config, overrides)
    if directories is None or credentials is None:
        loaded_dirs, loaded_creds = load_settings(config.config_dir)
        directories = directories or loaded_dirs
        credentials = credentials or loaded_creds
    directories.create()
    acquirer = Acquirer(directories=directories, credentials=credentials)
    return acquirer.sync(config, resolved, progress=progress)


def clean(
    config: Config,
    *,
    everything: bool = False,
    directories: Directories | None = None,
) -> CleanResult:
    """Remove materialized links and worktrees; see :meth:`Acquirer.clean`."""
    from pkgstrap.engine.engine import Acquirer

    loaded_dirs, credentials = load_settings(config.config_dir)
    acquirer = Acquirer(directories=directories or loaded_dirs, credentials=credentials)
    return acquirer.clean(config, everything=everything)
