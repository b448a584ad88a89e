"""Acquisition engine: materialize resolved dependencies on disk."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Literal

from pkgstrap.core.resolver import ResolvedGitRepository, ResolvedLocalPath
from pkgstrap.engine.errors import AcquireError, CorruptLocalStateError, SyncCanceled
from pkgstrap.engine.symlinks import ensure_symlinks
from pkgstrap.engine.types import (
    CleanResult,
    CommitTransition,
    DependencyDirs,
    DependencyResult,
    SourceKind,
    SyncResult,
)
from pkgstrap.git.cache import RepositoryCache
from pkgstrap.git.checkout import checkout_repository
from pkgstrap.git.worktree import remove_path

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, Literal["start", "done"], DependencyResult | None], None]

if TYPE_CHECKING:
    from collections.abc import Mapping
    from pathlib import Path

    from pkgstrap.config.schema import Config, Dependency
    from pkgstrap.config.settings import Directories, SshCredentials
    from pkgstrap.core.resolver import ResolvedDependency


class Acquirer:
    """Acquire dependencies one at a time, in manifest order."""

    def __init__(self, *, directories: Directories, credentials: SshCredentials) -> None:
        self._directories = directories
        self._cache = RepositoryCache(directories.global_git_repos, credentials)

    @property
    def directories(self) -> Directories:
        return self._directories

    @property
    def cache(self) -> RepositoryCache:
        return self._cache

    def dirs_for(self, name: str, dependency: Dependency, base_dir: Path) -> DependencyDirs:
        """Target layout of *dependency*; relative paths are taken from *base_dir*."""

        def anchor(p: Path) -> Path:
            return p if p.is_absolute() else base_dir / p

        return DependencyDirs.for_dependency(
            self._directories,
            name,
            target=anchor(dependency.target) if dependency.target is not None else None,
            links=[anchor(p) for p in dependency.links],
        )

    def acquire(
        self, resolved: ResolvedDependency, dirs: DependencyDirs
    ) -> tuple[Path, CommitTransition | None]:
        """Materialize one dependency and link every target to it.

        Returns the source directory and, for git dependencies, the commit
        transition of its worktree.
        """
        transition: CommitTransition | None = None
        if isinstance(resolved, ResolvedGitRepository):
            worktree, transition = checkout_repository(self._cache, resolved, dirs.worktree)
            source = worktree.path
        elif isinstance(resolved, ResolvedLocalPath):
            source = resolved.local_path
        else:
            raise TypeError(f"Unsupported resolved dependency: {type(resolved).__name__}")

        ensure_symlinks(dirs.all_targets, source)
        return source, transition

    def sync(
        self,
        config: Config,
        resolved: Mapping[str, ResolvedDependency],
        *,
        progress: ProgressCallback | None = None,
    ) -> SyncResult:
        """Acquire every resolved dependency; stop at the first failure.

        Raises:
            AcquireError: A dependency failed; carries the results before it.
            SyncCanceled: The run was interrupted.
        """
        acquired: list[DependencyResult] = []
        logger.info("Syncing %d dependencies", len(resolved))
        name = ""
        try:
            for name, dep in resolved.items():
                if progress:
                    progress(name, "start", None)
                dirs = self.dirs_for(name, config.dependencies[name], config.config_dir)
                source, transition = self.acquire(dep, dirs)
                result = DependencyResult(
                    name=name,
                    kind=SourceKind.GIT if transition is not None else SourceKind.LOCAL,
                    source=source,
                    targets=dirs.all_targets,
                    transition=transition,
                )
                acquired.append(result)
                if progress:
                    progress(name, "done", result)
        except KeyboardInterrupt as e:  # pragma: no cover
            raise SyncCanceled("Sync canceled") from e
        except Exception as e:
            raise AcquireError(acquired=acquired, name=name, message=str(e)) from e

        return SyncResult(acquired=acquired)

    def clean(self, config: Config, *, everything: bool = False) -> CleanResult:
        """Remove materialized links and local worktrees of every dependency.

        Only symlinks are removed from target paths. Failures are collected and
        the remaining paths are still processed. With *everything*, the whole
        state directory is removed afterwards; the shared cache is never touched.
        """
        result = CleanResult()
        for name, dependency in config.dependencies.items():
            dirs = self.dirs_for(name, dependency, config.config_dir)
            for link in dirs.all_targets:
                if link.is_symlink():
                    self._remove(link, result)
                elif link.exists():
                    result.failed[link] = "not a symlink, left in place"
            if dirs.worktree.exists() or dirs.worktree.is_symlink():
                self._remove(dirs.worktree, result)

        state_dir = self._directories.pkgstrap_dir
        if everything and state_dir.exists():
            self._remove(state_dir, result)
        logger.info("Cleaned %d paths (%d failed)", len(result.removed), len(result.failed))
        return result

    @staticmethod
    def _remove(path: Path, result: CleanResult) -> None:
        try:
            remove_path(path)
        except CorruptLocalStateError as exc:
            logger.warning("Could not remove %s: %s", path, exc)
            result.failed[path] = str(exc)
        else:
            logger.debug("Removed %s", path)
            result.removed.append(path)
