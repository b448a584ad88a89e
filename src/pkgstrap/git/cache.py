"""Shared cache of bare repositories, one per normalized URL."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from pkgstrap.engine.errors import (
    AuthenticationError,
    CloneError,
    GitCommandError,
    WrongRepoKindError,
)
from pkgstrap.engine.lock import RepositoryLock
from pkgstrap.git.repository import Repository
from pkgstrap.git.runner import is_auth_failure, run_git
from pkgstrap.git.urls import normalize_url, url_username

if TYPE_CHECKING:
    from pathlib import Path

    from pkgstrap.config.settings import SshCredentials

logger = logging.getLogger(__name__)


def credentials_env(credentials: SshCredentials, url: str) -> dict[str, str]:
    """Environment that makes git authenticate to *url* with *credentials*."""
    return {"GIT_SSH_COMMAND": credentials.ssh_command(url_username(url))}


class RepositoryCache:
    """Bare repositories under *root*, keyed by normalized URL.

    An entry is shared by every dependency (and every project) that names the
    same repository; no dependency owns it.
    """

    def __init__(self, root: Path, credentials: SshCredentials) -> None:
        self.root = root
        self.credentials = credentials

    def entry_path(self, url: str) -> Path:
        return self.root / normalize_url(url)

    def lock(self, url: str) -> RepositoryLock:
        """Lock guarding the entry for *url* across processes."""
        return RepositoryLock(self.entry_path(url))

    def get_or_create_bare(self, url: str) -> Repository:
        """Open the cached bare repository for *url*, cloning it on first use.

        Raises:
            CloneError: The clone failed.
            AuthenticationError: The remote rejected the SSH credentials.
            OpenError: The entry exists but is not a git repository.
            WrongRepoKindError: The entry is not bare, or is a linked worktree.
        """
        path = self.entry_path(url)
        path.parent.mkdir(parents=True, exist_ok=True)

        if path.exists():
            logger.debug("Opening cached repository %s", path)
            repo = Repository.open(path)
        else:
            repo = self._clone(url, path)

        if not repo.is_bare():
            raise WrongRepoKindError(path, "is not a bare repository")
        if repo.is_linked_worktree():
            raise WrongRepoKindError(path, "is a linked worktree")
        return repo

    def _clone(self, url: str, path: Path) -> Repository:
        logger.info("Cloning %s into %s", url, path)
        try:
            run_git(
                "clone",
                "--bare",
                "--quiet",
                url,
                str(path),
                cwd=path.parent,
                env=credentials_env(self.credentials, url),
            )
        except GitCommandError as exc:
            if is_auth_failure(exc):
                raise AuthenticationError(url, exc.stderr) from exc
            raise CloneError(url, exc.stderr) from exc
        return Repository(path)
