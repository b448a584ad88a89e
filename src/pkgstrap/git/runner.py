"""Thin wrapper around the ``git`` executable.

Every function takes an explicit *cwd*; nothing here changes the process
working directory.
"""

from __future__ import annotations

import logging
import os
import subprocess
from typing import TYPE_CHECKING

from pkgstrap.engine.errors import GitCommandError, GitNotFoundError

if TYPE_CHECKING:
    from collections.abc import Mapping
    from pathlib import Path

logger = logging.getLogger(__name__)

# Never prompt for credentials; SSH keys are the only supported auth.
_BASE_ENV = {"GIT_TERMINAL_PROMPT": "0", "GIT_ASKPASS": "", "SSH_ASKPASS": ""}

_AUTH_MARKERS = (
    "authentication failed",
    "could not read username",
    "could not read password",
    "permission denied (publickey",
    "terminal prompts disabled",
    "host key verification failed",
)


def run_git(
    *args: str,
    cwd: Path | None = None,
    env: Mapping[str, str] | None = None,
    check: bool = True,
) -> subprocess.CompletedProcess[str]:
    """Run ``git *args`` and return the completed process.

    Raises:
        GitNotFoundError: git is not installed.
        GitCommandError: The command exited non-zero and *check* is set.
    """
    child_env = {**os.environ, **_BASE_ENV, **(env or {})}
    logger.debug("git %s (cwd=%s)", " ".join(args), cwd)
    try:
        completed = subprocess.run(
            ["git", *args],
            capture_output=True,
            text=True,
            cwd=cwd,
            env=child_env,
            check=False,
        )
    except FileNotFoundError as exc:
        raise GitNotFoundError from exc
    if check and completed.returncode != 0:
        raise GitCommandError(list(args), completed.returncode, completed.stderr)
    return completed


def is_auth_failure(exc: GitCommandError) -> bool:
    """Whether a failed clone/fetch was rejected for lack of credentials."""
    stderr = exc.stderr.lower()
    return any(marker in stderr for marker in _AUTH_MARKERS)
