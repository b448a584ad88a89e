"""Per-dependency linked worktrees on top of the shared bare repository.

The worktree path of a dependency may hold anything left behind by earlier
runs, older versions or manual edits. :func:`ensure_worktree` inspects what is
there, picks an action with the pure policy functions below and converges on
exactly one worktree of the cache repository at that path.
"""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from pkgstrap.engine.errors import (
    CorruptLocalStateError,
    GitCommandError,
    WorktreeError,
    WorktreeNameConflictError,
)
from pkgstrap.git.repository import Repository, probe_git_dir

logger = logging.getLogger(__name__)

BRANCH_PREFIX = "pkgstrap-"


# ---------------------------------------------------------------------------
# Policy
# ---------------------------------------------------------------------------


class WorktreeAction(str, Enum):
    REUSE = "reuse"
    CREATE = "create"
    PRUNE_AND_CREATE = "prune-and-create"
    DELETE_AND_CREATE = "delete-and-create"


@dataclass(frozen=True)
class ObservedWorktree:
    """What is found at a worktree path.

    Attributes:
        exists: Something (directory, file or symlink) occupies the path.
        registered: The path is in the cache repository's worktree list.
        is_git: The path is the root of a git working tree (of any repository).
    """

    exists: bool
    registered: bool = False
    is_git: bool = False


def decide_worktree_action(observed: ObservedWorktree) -> WorktreeAction:
    if not observed.exists:
        return WorktreeAction.CREATE
    if observed.registered and observed.is_git:
        return WorktreeAction.REUSE
    if observed.is_git:
        return WorktreeAction.PRUNE_AND_CREATE
    return WorktreeAction.DELETE_AND_CREATE


@dataclass(frozen=True)
class ObservedName:
    """State of a worktree name inside the cache repository.

    Attributes:
        metadata_exists: ``worktrees/<name>`` exists in the repository.
        metadata_target_exists: The working tree that metadata points at exists.
        branch_exists: The worktree's derived branch exists.
    """

    metadata_exists: bool
    metadata_target_exists: bool = False
    branch_exists: bool = False


@dataclass(frozen=True)
class NamePreparation:
    conflict: bool = False
    remove_stale_metadata: bool = False
    delete_branch: bool = False


def prepare_name(observed: ObservedName) -> NamePreparation:
    """Steps needed before a worktree can be created under a name."""
    if observed.metadata_exists and observed.metadata_target_exists:
        return NamePreparation(conflict=True)
    return NamePreparation(
        remove_stale_metadata=observed.metadata_exists,
        delete_branch=observed.branch_exists,
    )


def worktree_branch(local_path: Path) -> str:
    """Branch created for the worktree at *local_path*."""
    return f"{BRANCH_PREFIX}{local_path.name}"


# ---------------------------------------------------------------------------
# Execution
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Worktree:
    """A linked worktree of a cache repository.

    ``created`` is True when this call made the worktree; its HEAD then says
    nothing about what was previously checked out.
    """

    repository: Repository
    name: str
    branch: str
    created: bool = False

    @property
    def path(self) -> Path:
        return self.repository.path


def _canonical(path: Path) -> Path:
    return path.resolve()


def observe_worktree(repo: Repository, local_path: Path) -> ObservedWorktree:
    if not (local_path.exists() or local_path.is_symlink()):
        return ObservedWorktree(exists=False)
    if local_path.is_symlink() or not local_path.is_dir():
        return ObservedWorktree(exists=True)
    canonical = _canonical(local_path)
    registered = any(
        _canonical(e.path) == canonical for e in repo.worktrees() if not e.bare
    )
    return ObservedWorktree(
        exists=True,
        registered=registered,
        is_git=probe_git_dir(local_path) is not None,
    )


def _metadata_target(admin_dir: Path) -> Path | None:
    """Working tree recorded in a ``worktrees/<name>/gitdir`` file."""
    try:
        gitdir = (admin_dir / "gitdir").read_text(encoding="utf-8").strip()
    except OSError:
        return None
    if not gitdir:
        return None
    # gitdir records "<worktree>/.git"
    return Path(gitdir).parent


def observe_name(repo: Repository, name: str, branch: str) -> tuple[ObservedName, Path | None]:
    admin_dir = repo.worktree_admin_dir(name)
    target = _metadata_target(admin_dir) if admin_dir.is_dir() else None
    observed = ObservedName(
        metadata_exists=admin_dir.is_dir(),
        metadata_target_exists=target is not None and (target / ".git").exists(),
        branch_exists=repo.branch_exists(branch),
    )
    return observed, target


def remove_path(path: Path) -> None:
    """Delete whatever is at *path*: file, symlink or directory tree."""
    try:
        if path.is_symlink() or not path.is_dir():
            path.unlink()
        else:
            shutil.rmtree(path)
    except OSError as exc:
        raise CorruptLocalStateError(path, exc.strerror or str(exc)) from exc


def _prune_foreign(local_path: Path) -> None:
    """Remove a working tree that does not belong to the cache repository."""
    admin_dir = probe_git_dir(local_path)
    logger.info("Removing foreign git working tree at %s", local_path)
    if admin_dir is not None and not admin_dir.resolve().is_relative_to(local_path.resolve()):
        # Linked worktree of another repository: drop its record there too.
        remove_path(admin_dir)
    remove_path(local_path)


def _create(repo: Repository, local_path: Path, start_point: str) -> Worktree:
    # git names the admin entry after the path's basename; only the branch is prefixed.
    name = local_path.name
    branch = worktree_branch(local_path)
    observed, target = observe_name(repo, name, branch)
    prep = prepare_name(observed)

    if prep.conflict:
        raise WorktreeNameConflictError(name, target or repo.worktree_admin_dir(name))
    if prep.remove_stale_metadata:
        logger.info("Removing stale worktree metadata '%s'", name)
        remove_path(repo.worktree_admin_dir(name))
    try:
        if prep.delete_branch:
            logger.debug("Deleting leftover branch %s", branch)
            repo.delete_branch(branch)
        local_path.parent.mkdir(parents=True, exist_ok=True)
        repo.git("worktree", "add", "--no-checkout", "-b", branch, str(local_path), start_point)
    except GitCommandError as exc:
        raise WorktreeError(str(local_path), exc.stderr) from exc

    logger.info("Created worktree %s at %s", name, local_path)
    return Worktree(Repository(local_path), name=name, branch=branch, created=True)


def ensure_worktree(repo: Repository, local_path: Path, start_point: str = "HEAD") -> Worktree:
    """Ensure *local_path* is a linked worktree of *repo* and return it.

    A new worktree is created from *start_point* with nothing checked out.

    Raises:
        WorktreeNameConflictError: The worktree name is held by another live worktree.
        CorruptLocalStateError: Leftover state at *local_path* could not be removed.
        WorktreeError: git refused to create the worktree.
    """
    local_path = local_path.absolute()
    observed = observe_worktree(repo, local_path)
    action = decide_worktree_action(observed)
    logger.debug("Worktree %s: %s -> %s", local_path, observed, action.value)

    if action is WorktreeAction.REUSE:
        return Worktree(
            Repository(local_path),
            name=local_path.name,
            branch=worktree_branch(local_path),
        )
    if action is WorktreeAction.PRUNE_AND_CREATE:
        _prune_foreign(local_path)
    elif action is WorktreeAction.DELETE_AND_CREATE:
        logger.info("Removing leftover files at %s", local_path)
        remove_path(local_path)
    return _create(repo, local_path, start_point)
