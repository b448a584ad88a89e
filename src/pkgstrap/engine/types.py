"""Engine types (acquisition parameters and results)."""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from pkgstrap.config.settings import Directories  # noqa: TC001 — Pydantic needs this at runtime


class SourceKind(str, Enum):
    GIT = "git"
    LOCAL = "local"


class DependencyDirs(BaseModel):
    """Where one dependency is materialized.

    ``target`` is the primary location; every path in ``links`` mirrors it.
    ``worktree`` is the dependency's own linked worktree path.
    """

    model_config = ConfigDict(frozen=True)

    directories: Directories
    target: Path
    links: list[Path] = Field(default_factory=list)
    worktree: Path

    @classmethod
    def for_dependency(
        cls,
        directories: Directories,
        name: str,
        *,
        target: Path | None = None,
        links: list[Path] | None = None,
    ) -> DependencyDirs:
        return cls(
            directories=directories,
            target=target if target is not None else directories.default_target(name),
            links=list(links or []),
            worktree=directories.worktree_path(name),
        )

    @property
    def all_targets(self) -> list[Path]:
        return [self.target, *self.links]


class CommitTransition(BaseModel):
    """HEAD of a worktree before and after a checkout.

    ``before`` is None for a freshly created worktree.
    """

    model_config = ConfigDict(frozen=True)

    before: str | None
    after: str

    @property
    def changed(self) -> bool:
        return self.before != self.after


class DependencyResult(BaseModel):
    name: str
    kind: SourceKind
    source: Path
    targets: list[Path]
    transition: CommitTransition | None = None


class SyncResult(BaseModel):
    acquired: list[DependencyResult] = Field(default_factory=list)

    def summary(self) -> dict[str, int]:
        counts = {"updated": 0, "unchanged": 0, "linked": 0}
        for r in self.acquired:
            if r.transition is None:
                counts["linked"] += 1
            elif r.transition.changed:
                counts["updated"] += 1
            else:
                counts["unchanged"] += 1
        return counts


class CleanResult(BaseModel):
    removed: list[Path] = Field(default_factory=list)
    failed: dict[Path, str] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed
