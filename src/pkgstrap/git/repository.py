"""Repository handles over the git CLI."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from pkgstrap.engine.errors import OpenError
from pkgstrap.git.runner import run_git

if TYPE_CHECKING:
    import subprocess
    from collections.abc import Mapping

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WorktreeEntry:
    """One entry of ``git worktree list --porcelain``."""

    path: Path
    head: str | None = None
    branch: str | None = None
    bare: bool = False
    prunable: bool = False


def parse_worktree_list(output: str) -> list[WorktreeEntry]:
    """Parse ``git worktree list --porcelain`` output."""
    entries: list[WorktreeEntry] = []
    current: dict[str, str | bool] = {}

    def flush() -> None:
        if current:
            entries.append(
                WorktreeEntry(
                    path=Path(str(current["path"])),
                    head=current.get("head"),  # type: ignore[arg-type]
                    branch=current.get("branch"),  # type: ignore[arg-type]
                    bare=bool(current.get("bare", False)),
                    prunable=bool(current.get("prunable", False)),
                )
            )

    for line in output.splitlines():
        if line.startswith("worktree "):
            flush()
            current = {"path": line.split(" ", 1)[1]}
        elif line.startswith("HEAD "):
            current["head"] = line.split(" ", 1)[1]
        elif line.startswith("branch "):
            current["branch"] = line.split(" ", 1)[1].removeprefix("refs/heads/")
        elif line == "bare":
            current["bare"] = True
        elif line.startswith("prunable"):
            current["prunable"] = True
    flush()
    return entries


def _no_discovery_env(path: Path) -> dict[str, str]:
    # Stop git from walking up into an enclosing repository.
    return {"GIT_CEILING_DIRECTORIES": str(path.absolute().parent)}


def probe_git_dir(path: Path) -> Path | None:
    """Git directory of the repository rooted exactly at *path*, or None.

    Parent repositories are never considered, so a plain directory inside a
    project checkout reports None.
    """
    if not path.is_dir():
        return None
    result = run_git(
        "rev-parse",
        "--absolute-git-dir",
        cwd=path,
        env=_no_discovery_env(path),
        check=False,
    )
    if result.returncode != 0:
        return None
    return Path(result.stdout.strip())


class Repository:
    """A git repository (bare, standalone or linked worktree) at *path*."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def __repr__(self) -> str:
        return f"Repository({str(self.path)!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Repository):
            return NotImplemented
        return self.path.resolve() == other.path.resolve()

    def __hash__(self) -> int:
        return hash(self.path.resolve())

    @classmethod
    def open(cls, path: Path) -> Repository:
        """Open the repository rooted at *path*.

        Raises:
            OpenError: *path* is not the root of a git repository.
        """
        if probe_git_dir(path) is None:
            raise OpenError(str(path), "not a git repository")
        return cls(path)

    def git(
        self, *args: str, env: Mapping[str, str] | None = None, check: bool = True
    ) -> subprocess.CompletedProcess[str]:
        env = {**_no_discovery_env(self.path), **(env or {})}
        return run_git(*args, cwd=self.path, env=env, check=check)

    def _rev_parse_path(self, flag: str) -> Path:
        out = self.git("rev-parse", flag).stdout.strip()
        p = Path(out)
        return p if p.is_absolute() else (self.path / p).resolve()

    @property
    def git_dir(self) -> Path:
        return self._rev_parse_path("--absolute-git-dir")

    @property
    def common_dir(self) -> Path:
        """Directory shared by all worktrees (objects, refs, ``worktrees/``)."""
        return self._rev_parse_path("--git-common-dir")

    def is_bare(self) -> bool:
        return self.git("rev-parse", "--is-bare-repository").stdout.strip() == "true"

    def is_linked_worktree(self) -> bool:
        return self.git_dir.resolve() != self.common_dir.resolve()

    def worktrees(self) -> list[WorktreeEntry]:
        return parse_worktree_list(self.git("worktree", "list", "--porcelain").stdout)

    def worktree_admin_dir(self, name: str) -> Path:
        return self.common_dir / "worktrees" / name

    def branch_exists(self, branch: str) -> bool:
        result = self.git("show-ref", "--verify", "--quiet", f"refs/heads/{branch}", check=False)
        return result.returncode == 0

    def delete_branch(self, branch: str) -> None:
        self.git("branch", "-D", branch)

    def resolve_commit(self, rev: str) -> str | None:
        """Full hash of the commit *rev* points at, or None."""
        result = self.git("rev-parse", "--verify", "--quiet", f"{rev}^{{commit}}", check=False)
        if result.returncode != 0:
            return None
        return result.stdout.strip()

    def head_commit(self) -> str | None:
        return self.resolve_commit("HEAD")
