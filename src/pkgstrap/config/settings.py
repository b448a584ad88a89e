"""Runtime settings: working directories and SSH credentials."""

from __future__ import annotations

import logging
import os
import shlex
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from pkgstrap.engine.errors import InvalidDependencyNameError

logger = logging.getLogger(__name__)

STATE_DIR_NAME = ".pkgstrap"
DEFAULT_SSH_USER = "git"


def home_or_dot() -> Path:
    """Home directory, or ``.`` when it cannot be determined."""
    try:
        return Path.home()
    except RuntimeError:
        logger.debug("Home directory unavailable, falling back to '.'")
        return Path(".")


def default_cache_dir() -> Path:
    """Per-user root of the shared bare-repository cache."""
    xdg = os.environ.get("XDG_CACHE_HOME")
    base = Path(xdg) if xdg else home_or_dot() / ".cache"
    return base / "pkgstrap" / "repos"


def default_ssh_key() -> Path:
    return home_or_dot() / ".ssh" / "id_rsa"


def check_dependency_name(name: str) -> str:
    """Return *name* if it is usable as a single directory name."""
    if name in ("", ".", "..") or any(c in name for c in "/\\\x00"):
        raise InvalidDependencyNameError(name)
    return name


def _child(root: Path, name: str) -> Path:
    path = root / check_dependency_name(name)
    if path.parent != root:
        raise InvalidDependencyNameError(name)
    return path


class Directories(BaseModel):
    """The four base paths of a run. Read-only once built."""

    model_config = ConfigDict(frozen=True)

    pkgstrap_dir: Path
    deps_dir: Path
    local_git_workdirs: Path
    global_git_repos: Path

    def create(self) -> None:
        """Create the four root directories."""
        for path in (
            self.pkgstrap_dir,
            self.deps_dir,
            self.local_git_workdirs,
            self.global_git_repos,
        ):
            path.mkdir(parents=True, exist_ok=True)

    def worktree_path(self, name: str) -> Path:
        return _child(self.local_git_workdirs, name)

    def default_target(self, name: str) -> Path:
        return _child(self.deps_dir, name)


class DirectorySettings(BaseSettings):
    """Directory overrides from ``PKGSTRAP_*`` environment variables.

    Unset fields fall back to defaults rooted at the project directory
    (``<project>/.pkgstrap/...``) and the per-user cache directory.
    """

    model_config = SettingsConfigDict(env_prefix="PKGSTRAP_")

    dir: Path | None = None
    deps_dir: Path | None = None
    worktrees_dir: Path | None = None
    cache_dir: Path | None = None

    def directories(self, project_dir: Path) -> Directories:
        state_dir = self.dir or project_dir / STATE_DIR_NAME
        return Directories(
            pkgstrap_dir=state_dir,
            deps_dir=self.deps_dir or state_dir / "deps",
            local_git_workdirs=self.worktrees_dir or state_dir / "worktrees",
            global_git_repos=self.cache_dir or default_cache_dir(),
        )


class SshCredentials(BaseSettings):
    """SSH key authentication used for every clone and fetch.

    Set via ``PKGSTRAP_SSH_KEY`` / ``PKGSTRAP_SSH_USER``. ``user`` applies only
    when the repository URL does not name a user itself.
    """

    model_config = SettingsConfigDict(env_prefix="PKGSTRAP_SSH_", frozen=True)

    key: Path = Field(default_factory=default_ssh_key)
    user: str = DEFAULT_SSH_USER

    def ssh_command(self, url_username: str | None) -> str:
        """``GIT_SSH_COMMAND`` value for a remote whose URL names *url_username*."""
        # ssh's -l takes precedence over user@host, so only pass it when the URL has no user.
        parts = ["ssh", "-i", shlex.quote(str(self.key)), "-o", "IdentitiesOnly=yes"]
        if not url_username:
            parts += ["-l", shlex.quote(self.user)]
        return " ".join(parts)
