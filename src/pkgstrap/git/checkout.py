"""Fetch a ref into the cache and check it out in a dependency's worktree."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from pkgstrap.engine.errors import (
    AuthenticationError,
    CheckoutError,
    FetchError,
    GitCommandError,
    InvalidRefError,
)
from pkgstrap.engine.types import CommitTransition
from pkgstrap.git.cache import credentials_env
from pkgstrap.git.runner import is_auth_failure
from pkgstrap.git.worktree import Worktree, ensure_worktree

if TYPE_CHECKING:
    from pathlib import Path

    from pkgstrap.config.settings import SshCredentials
    from pkgstrap.core.resolver import ResolvedGitRepository
    from pkgstrap.git.cache import RepositoryCache
    from pkgstrap.git.repository import Repository

logger = logging.getLogger(__name__)


def fetch(repo: Repository, url: str, refspec: str, credentials: SshCredentials) -> None:
    """Fetch *refspec* straight from *url*, without a configured remote.

    Going through the URL each time means a changed manifest URL takes effect
    with no remote reconfiguration.
    """
    logger.debug("Fetching %s from %s", refspec, url)
    try:
        repo.git(
            "fetch",
            "--quiet",
            "--no-tags",
            url,
            refspec,
            env=credentials_env(credentials, url),
        )
    except GitCommandError as exc:
        if is_auth_failure(exc):
            raise AuthenticationError(url, exc.stderr) from exc
        raise FetchError(url, exc.stderr) from exc


def checkout(worktree: Worktree, checkout_ref: str) -> CommitTransition:
    """Force-check out *checkout_ref* in *worktree*, discarding local changes."""
    repo = worktree.repository
    before = None if worktree.created else repo.head_commit()

    target = repo.resolve_commit(checkout_ref)
    if target is None:
        raise InvalidRefError(checkout_ref, f"no such commit in {worktree.path}")
    try:
        repo.git("checkout", "--quiet", "--force", "--detach", checkout_ref)
    except GitCommandError as exc:
        raise CheckoutError(str(worktree.path), exc.stderr) from exc

    after = repo.head_commit()
    if after is None:
        raise CheckoutError(str(worktree.path), "HEAD does not resolve after checkout")
    return CommitTransition(before=before, after=after)


def checkout_repository(
    cache: RepositoryCache, resolved: ResolvedGitRepository, worktree_path: Path
) -> tuple[Worktree, CommitTransition]:
    """Bring the worktree at *worktree_path* to the resolved ref.

    Clone/open, fetch, worktree creation and checkout all happen while holding
    the cache entry's lock.
    """
    with cache.lock(resolved.url):
        repo = cache.get_or_create_bare(resolved.url)
        fetch(repo, resolved.url, resolved.refspec, cache.credentials)
        if repo.resolve_commit(resolved.checkout_ref) is None:
            raise InvalidRefError(resolved.checkout_ref, f"not found after fetching {resolved.url}")
        worktree = ensure_worktree(repo, worktree_path, start_point=resolved.checkout_ref)
        transition = checkout(worktree, resolved.checkout_ref)
    logger.debug("%s: %s -> %s", worktree_path, transition.before, transition.after)
    return worktree, transition
