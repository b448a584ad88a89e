"""Merge manifest entries with overrides into fully resolved dependencies."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from pkgstrap.config.schema import (
    GitRepositoryOverride,
    GitRepositorySource,
    LocalPathOverride,
    LocalPathSource,
)
from pkgstrap.core.refs import fetch_refspec
from pkgstrap.engine.errors import (
    InvalidPathError,
    MissingRepositoryUrlError,
    UnknownOverrideError,
)

if TYPE_CHECKING:
    from pkgstrap.config.schema import Config, ConfigOverrides, Dependency, DependencyOverride
    from pkgstrap.core.refs import GitRef

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedGitRepository:
    """A git dependency with every ref already translated for fetch and checkout."""

    url: str
    fetch_ref: str
    checkout_ref: str

    @property
    def refspec(self) -> str:
        return fetch_refspec(self.fetch_ref, self.checkout_ref)

    @classmethod
    def from_ref(cls, url: str, git_ref: GitRef) -> ResolvedGitRepository:
        return cls(url=url, fetch_ref=git_ref.fetch_ref(), checkout_ref=git_ref.checkout_target())


@dataclass(frozen=True)
class ResolvedLocalPath:
    """A dependency served straight from a directory on disk."""

    local_path: Path


ResolvedDependency = ResolvedGitRepository | ResolvedLocalPath


def _check_local_path(path: Path) -> Path:
    try:
        path.resolve(strict=True)
    except OSError as exc:
        raise InvalidPathError(path, exc.strerror or str(exc)) from exc
    # Keep the user's spelling of the path.
    return path


def resolve_one(
    name: str, dependency: Dependency, override: DependencyOverride | None = None
) -> ResolvedDependency:
    """Resolve a single manifest entry against its optional override."""
    if override is None:
        source = dependency.source
        if isinstance(source, GitRepositorySource):
            return ResolvedGitRepository.from_ref(source.git_repo, source.git_ref)
        if isinstance(source, LocalPathSource):
            return ResolvedLocalPath(local_path=_check_local_path(source.local_path))
        raise TypeError(f"Unsupported source for {name}: {type(source).__name__}")

    if isinstance(override, LocalPathOverride):
        logger.debug("Override redirects %s to %s", name, override.local_path)
        return ResolvedLocalPath(local_path=_check_local_path(override.local_path))

    if isinstance(override, GitRepositoryOverride):
        url = override.git_repo or dependency.git_repo_url()
        if not url:
            raise MissingRepositoryUrlError(name)
        logger.debug("Override sets %s to %s at %s", name, url, override.git_ref.fetch_ref())
        return ResolvedGitRepository.from_ref(url, override.git_ref)

    raise TypeError(f"Unsupported override for {name}: {type(override).__name__}")


class Resolver:
    """Resolve a manifest, optionally with overrides.

    Resolution reads nothing but the existence of local paths; it never
    touches git.
    """

    def __init__(self, config: Config, overrides: ConfigOverrides | None = None) -> None:
        self._config = config
        self._overrides = overrides

    def with_overrides(self, overrides: ConfigOverrides) -> Resolver:
        return Resolver(self._config, overrides)

    def resolve_all(self) -> dict[str, ResolvedDependency]:
        """Resolve every entry, in manifest order.

        Raises:
            UnknownOverrideError: An override names a dependency the manifest lacks.
            MissingRepositoryUrlError: A git override has no URL to inherit.
            InvalidPathError: A local path does not exist.
        """
        overrides = self._overrides.dependencies if self._overrides else {}
        unknown = sorted(set(overrides) - set(self._config.dependencies))
        if unknown:
            raise UnknownOverrideError(unknown)

        resolved: dict[str, ResolvedDependency] = {}
        for name, dependency in self._config.dependencies.items():
            resolved[name] = resolve_one(name, dependency, overrides.get(name))
        logger.info(
            "Resolved %d dependencies (%d overridden)", len(resolved), len(overrides)
        )
        return resolved


def resolve_all(
    config: Config, overrides: ConfigOverrides | None = None
) -> dict[str, ResolvedDependency]:
    """Shorthand for ``Resolver(config, overrides).resolve_all()``."""
    return Resolver(config, overrides).resolve_all()
