"""Error types raised while resolving and acquiring dependencies."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from pathlib import Path


class PkgstrapError(Exception):
    """Base exception for resolution and acquisition errors."""


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------


class UnknownOverrideError(PkgstrapError):
    """Raised when overrides name dependencies that the manifest does not declare."""

    def __init__(self, names: list[str]) -> None:
        super().__init__(
            f"Override for unknown dependenc{'y' if len(names) == 1 else 'ies'}: "
            f"{', '.join(names)}"
        )
        self.names = names


class MissingRepositoryUrlError(PkgstrapError):
    """Raised when a git override has no URL and the manifest entry has none either."""

    def __init__(self, name: str) -> None:
        super().__init__(
            f"Override for '{name}' specifies a git ref without a repository URL, "
            "and the manifest entry does not provide one either"
        )
        self.name = name


class InvalidPathError(PkgstrapError):
    """Raised when a local path does not exist or cannot be canonicalized."""

    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"Path {path} is invalid or not supported: {reason}")
        self.path = path


# ---------------------------------------------------------------------------
# URLs and refs
# ---------------------------------------------------------------------------


class UnparsableUrlError(PkgstrapError):
    """Raised when a repository URL cannot be parsed."""

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"Could not parse repository URL {url!r}: {reason}")
        self.url = url


class MissingDomainError(PkgstrapError):
    """Raised when a repository URL has no domain component."""

    def __init__(self, url: str) -> None:
        super().__init__(f"Repository URL {url!r} has no domain")
        self.url = url


class InvalidRefNameError(ValueError):
    """A branch or tag produced a malformed git reference name.

    Not a :class:`PkgstrapError`: the manifest schema rejects such names at
    load time, so reaching this means a ref was constructed in code.
    """

    def __init__(self, refname: str) -> None:
        super().__init__(f"Invalid git reference name: {refname!r}")
        self.refname = refname


class InvalidDependencyNameError(ValueError):
    """A dependency name that is not a single path component.

    Names become directory names under the state directory, so anything that
    could point outside it (``..``, separators) is rejected.
    """

    def __init__(self, name: str) -> None:
        super().__init__(
            f"Invalid dependency name {name!r}: must be a single path component "
            "without '/' or '\\'"
        )
        self.name = name


# ---------------------------------------------------------------------------
# Git
# ---------------------------------------------------------------------------


class GitCommandError(PkgstrapError):
    """Raised when a ``git`` invocation exits non-zero."""

    def __init__(self, args: list[str], returncode: int, stderr: str = "") -> None:
        self.args_list = args
        self.returncode = returncode
        self.stderr = stderr.strip()
        msg = f"git {' '.join(args)} failed with exit code {returncode}"
        if self.stderr:
            msg += f": {self.stderr}"
        super().__init__(msg)


class GitNotFoundError(PkgstrapError):
    """Raised when the ``git`` executable is not on PATH."""

    def __init__(self) -> None:
        super().__init__("git is not installed or not on PATH")


class GitOperationError(PkgstrapError):
    """Base for a failed git step, with the underlying command error chained."""

    action = "git operation"

    def __init__(self, target: str, detail: str = "") -> None:
        msg = f"{self.action} failed for {target}"
        if detail:
            msg += f": {detail}"
        super().__init__(msg)
        self.target = target


class CloneError(GitOperationError):
    action = "Clone"


class OpenError(GitOperationError):
    action = "Opening repository"


class FetchError(GitOperationError):
    action = "Fetch"


class AuthenticationError(FetchError):
    action = "Authentication"


class InvalidRefError(GitOperationError):
    action = "Resolving ref"


class CheckoutError(GitOperationError):
    action = "Checkout"


class WorktreeError(GitOperationError):
    action = "Worktree operation"


class WrongRepoKindError(PkgstrapError):
    """Raised when a cache entry is not a plain bare repository."""

    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(
            f"Cached repository at {path} {reason}; remove it manually if it is not needed"
        )
        self.path = path


class WorktreeNameConflictError(PkgstrapError):
    """Raised when a worktree name is already used by another live worktree."""

    def __init__(self, name: str, existing: Path) -> None:
        super().__init__(
            f"Worktree name '{name}' is already used by the worktree at {existing}"
        )
        self.name = name
        self.existing = existing


class CorruptLocalStateError(PkgstrapError):
    """Raised when leftover state at a worktree path cannot be cleaned up."""

    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"Could not clean up leftover state at {path}: {reason}")
        self.path = path


class CacheLockError(PkgstrapError):
    """Raised when a repository cache lock cannot be acquired or released."""


# ---------------------------------------------------------------------------
# Materialization
# ---------------------------------------------------------------------------


class PathConflictError(PkgstrapError):
    """Raised when a target path is occupied by something other than a symlink."""

    def __init__(self, path: Path) -> None:
        super().__init__(f"{path} already exists but is not a symlink")
        self.path = path


class CanonicalizeError(PkgstrapError):
    """Raised when a symlink source cannot be canonicalized."""

    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"Path {path} invalid or unsupported: {reason}")
        self.path = path


# ---------------------------------------------------------------------------
# Sync
# ---------------------------------------------------------------------------


class AcquireError(PkgstrapError):
    """Raised when a sync fails on one dependency.

    Carries the results of the dependencies acquired before the failure so
    callers can report progress. The original exception is chained via
    ``__cause__``.
    """

    def __init__(self, *, acquired: list[Any], name: str, message: str) -> None:
        from pkgstrap.engine.types import SyncResult

        self.result = SyncResult(acquired=acquired)
        self.name = name
        super().__init__(f"Acquiring {name} failed: {message}")


class SyncCanceled(PkgstrapError):
    """Raised when a sync is interrupted (e.g., Ctrl-C)."""
