"""Pytest fixtures for integration tests against real git repositories."""

from __future__ import annotations

import shutil
import subprocess
from pathlib import Path, PurePosixPath

import pytest

from pkgstrap.config.settings import Directories, SshCredentials


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Auto-skip @pytest.mark.git tests when git is not installed."""
    _ = config
    if shutil.which("git") is not None:
        return
    skip = pytest.mark.skip(reason="git is not installed")
    for item in items:
        if "git" in item.keywords:
            item.add_marker(skip)


_PKGSTRAP_ENV_VARS = (
    "PKGSTRAP_DIR",
    "PKGSTRAP_DEPS_DIR",
    "PKGSTRAP_WORKTREES_DIR",
    "PKGSTRAP_CACHE_DIR",
    "PKGSTRAP_SSH_KEY",
    "PKGSTRAP_SSH_USER",
    "PKGSTRAP_LOG",
)


def git(*args: str, cwd: Path) -> str:
    return subprocess.run(
        ["git", *args], cwd=cwd, check=True, capture_output=True, text=True
    ).stdout.strip()


class Upstream:
    """A local repository standing in for a remote."""

    def __init__(self, path: Path) -> None:
        self.path = path
        path.mkdir(parents=True)
        git("init", "--quiet", cwd=path)
        git("symbolic-ref", "HEAD", "refs/heads/main", cwd=path)

    @property
    def url(self) -> str:
        return str(self.path)

    def commit(self, filename: str, content: str) -> str:
        (self.path / filename).write_text(content)
        git("add", filename, cwd=self.path)
        git("commit", "--quiet", "-m", f"update {filename}", cwd=self.path)
        return self.head()

    def head(self) -> str:
        return git("rev-parse", "HEAD", cwd=self.path)

    def tag(self, name: str) -> None:
        git("tag", "-a", name, "-m", name, cwd=self.path)

    def branch(self, name: str) -> None:
        git("branch", name, cwd=self.path)


@pytest.fixture(autouse=True)
def _git_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Isolate git from user config and give commits a fixed identity."""
    for var in _PKGSTRAP_ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(home / ".config"))
    monkeypatch.setenv("XDG_CACHE_HOME", str(home / ".cache"))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    for role in ("AUTHOR", "COMMITTER"):
        monkeypatch.setenv(f"GIT_{role}_NAME", "Test")
        monkeypatch.setenv(f"GIT_{role}_EMAIL", "test@example.com")


@pytest.fixture(autouse=True)
def _local_cache_keys(monkeypatch: pytest.MonkeyPatch) -> None:
    """Key filesystem-path remotes (which have no domain) by their directory name."""
    monkeypatch.setattr(
        "pkgstrap.git.cache.normalize_url",
        lambda url: PurePosixPath("localhost", Path(url).name),
    )


@pytest.fixture
def upstream(tmp_path: Path) -> Upstream:
    repo = Upstream(tmp_path / "remotes" / "foo")
    repo.commit("README", "first\n")
    return repo


@pytest.fixture
def project(tmp_path: Path) -> Path:
    path = tmp_path / "project"
    path.mkdir()
    return path


@pytest.fixture
def directories(project: Path, tmp_path: Path) -> Directories:
    state = project / ".pkgstrap"
    return Directories(
        pkgstrap_dir=state,
        deps_dir=state / "deps",
        local_git_workdirs=state / "worktrees",
        global_git_repos=tmp_path / "cache",
    )


@pytest.fixture
def credentials(tmp_path: Path) -> SshCredentials:
    return SshCredentials(key=tmp_path / "no-such-key")
