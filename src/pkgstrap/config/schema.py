"""Manifest and override models.

Manifest files use untagged shapes (``{git_repo, branch}``, ``{local_path}``,
...). The ``BeforeValidator`` hooks below turn each shape into an explicit
``kind``-tagged variant once, so code past this module never sniffs structure.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Any, Literal

from pydantic import (
    AfterValidator,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Discriminator,
    Field,
)

from pkgstrap.config.settings import check_dependency_name
from pkgstrap.core.refs import REF_KEYS, GitRef  # noqa: TC001 — Pydantic needs this at runtime


def _nest_git_ref(v: dict[str, Any], kind: str) -> dict[str, Any]:
    """Move flattened ref keys (``branch``/``tag``/``commit``) into ``git_ref``."""
    ref = {k: v[k] for k in REF_KEYS if k in v}
    rest = {k: val for k, val in v.items() if k not in REF_KEYS}
    if ref and "git_ref" not in rest:
        rest["git_ref"] = ref
    rest["kind"] = kind
    return rest


def _tag_source(v: Any) -> Any:
    if not isinstance(v, dict) or "kind" in v:
        return v
    if "local_path" in v:
        return {**v, "kind": "local"}
    return _nest_git_ref(v, "git")


def _none_to_dict(v: Any) -> Any:
    return v if v is not None else {}


def _none_to_list(v: Any) -> Any:
    return v if v is not None else []


class _Model(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)


# Names are used as directory names under the state directory.
DependencyName = Annotated[str, AfterValidator(check_dependency_name)]


# ---------------------------------------------------------------------------
# Manifest
# ---------------------------------------------------------------------------


class GitRepositorySource(_Model):
    kind: Literal["git"] = "git"
    git_repo: str = Field(min_length=1)
    git_ref: GitRef


class LocalPathSource(_Model):
    kind: Literal["local"] = "local"
    local_path: Path


DependencySource = Annotated[
    GitRepositorySource | LocalPathSource,
    BeforeValidator(_tag_source),
    Discriminator("kind"),
]


class Dependency(_Model):
    """One manifest entry.

    ``target`` replaces the default ``<deps_dir>/<name>`` location; ``links``
    are additional in-tree locations that mirror it.
    """

    source: DependencySource
    target: Path | None = None
    links: Annotated[list[Path], BeforeValidator(_none_to_list)] = []

    def git_repo_url(self) -> str | None:
        if isinstance(self.source, GitRepositorySource):
            return self.source.git_repo
        return None


class Config(BaseModel):
    """The dependency manifest. Entry order is the acquisition order."""

    model_config = ConfigDict(extra="forbid")

    dependencies: Annotated[
        dict[DependencyName, Dependency], BeforeValidator(_none_to_dict)
    ] = {}
    config_dir: Path = Path()


# ---------------------------------------------------------------------------
# Overrides
# ---------------------------------------------------------------------------


class LocalPathOverride(_Model):
    """Redirect a dependency to a directory on disk, bypassing git."""

    kind: Literal["local"] = "local"
    local_path: Path


class GitRepositoryOverride(_Model):
    """Replace a dependency's ref, and optionally its URL.

    The ref replaces the manifest's ref as a whole; it is never merged
    field by field.
    """

    kind: Literal["git"] = "git"
    git_repo: str | None = None
    git_ref: GitRef


DependencyOverride = Annotated[
    LocalPathOverride | GitRepositoryOverride,
    BeforeValidator(_tag_source),
    Discriminator("kind"),
]


class ConfigOverrides(BaseModel):
    """Per-name overrides, typically from an uncommitted local file."""

    model_config = ConfigDict(extra="forbid")

    dependencies: Annotated[
        dict[DependencyName, DependencyOverride], BeforeValidator(_none_to_dict)
    ] = {}
