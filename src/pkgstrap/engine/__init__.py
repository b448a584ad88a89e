"""Acquisition engine.

Only the error types are re-exported here; import the engine itself from
:mod:`pkgstrap.engine.engine`.
"""

from pkgstrap.engine.errors import (
    AcquireError,
    AuthenticationError,
    CacheLockError,
    CanonicalizeError,
    CheckoutError,
    CloneError,
    CorruptLocalStateError,
    FetchError,
    GitCommandError,
    GitNotFoundError,
    GitOperationError,
    InvalidDependencyNameError,
    InvalidPathError,
    InvalidRefError,
    InvalidRefNameError,
    MissingDomainError,
    MissingRepositoryUrlError,
    OpenError,
    PathConflictError,
    PkgstrapError,
    SyncCanceled,
    UnknownOverrideError,
    UnparsableUrlError,
    WorktreeError,
    WorktreeNameConflictError,
    WrongRepoKindError,
)

__all__ = [
    "AcquireError",
    "AuthenticationError",
    "CacheLockError",
    "CanonicalizeError",
    "CheckoutError",
    "CloneError",
    "CorruptLocalStateError",
    "FetchError",
    "GitCommandError",
    "GitNotFoundError",
    "GitOperationError",
    "InvalidDependencyNameError",
    "InvalidPathError",
    "InvalidRefError",
    "InvalidRefNameError",
    "MissingDomainError",
    "MissingRepositoryUrlError",
    "OpenError",
    "PathConflictError",
    "PkgstrapError",
    "SyncCanceled",
    "UnknownOverrideError",
    "UnparsableUrlError",
    "WorktreeError",
    "WorktreeNameConflictError",
    "WrongRepoKindError",
]
