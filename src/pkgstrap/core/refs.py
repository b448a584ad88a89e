"""Git ref models and the fetch/checkout ref codec.

Everything here is pure: no git invocation, no filesystem access.
"""

from __future__ import annotations

import re
from typing import Annotated, Any, Literal

from pydantic import AfterValidator, BaseModel, BeforeValidator, ConfigDict, Discriminator, Field

from pkgstrap.engine.errors import InvalidRefNameError

REMOTE_PREFIX = "refs/remotes/origin/"
TAGS_PREFIX = "refs/tags/"
HEADS_PREFIX = "refs/heads/"

_FORBIDDEN_REF_CHARS = re.compile(r"[\x00-\x20\x7f~^:?*\[\\]")
_COMMIT_PATTERN = r"^[0-9a-fA-F]{4,64}$"


def is_valid_ref_name(refname: str) -> bool:
    """Check *refname* against the rules of ``git check-ref-format``.

    The name must contain at least one ``/`` (true for every full ref such as
    ``refs/tags/v1``); one-level names are not valid reference names.
    """
    if not refname or refname == "@":
        return False
    if refname.startswith("/") or refname.endswith("/") or refname.endswith("."):
        return False
    if "//" in refname or ".." in refname or "@{" in refname:
        return False
    if _FORBIDDEN_REF_CHARS.search(refname):
        return False
    components = refname.split("/")
    if len(components) < 2:
        return False
    return all(not (c.startswith(".") or c.endswith(".lock")) for c in components)


def _check_ref_component(value: str) -> str:
    """Validate a branch or tag name as it will appear under ``refs/``."""
    if not is_valid_ref_name(f"{HEADS_PREFIX}{value}"):
        raise ValueError(f"{value!r} is not a valid git branch or tag name")
    return value


RefComponent = Annotated[str, Field(min_length=1), AfterValidator(_check_ref_component)]


def _require_str_commit(value: Any) -> Any:
    # YAML reads unquoted hashes such as 1234567 or 12e4567 as numbers.
    if not isinstance(value, str):
        raise ValueError(
            f"commit hash must be a string, got {value!r}; quote the commit hash in YAML"
        )
    return value


CommitHash = Annotated[
    str, BeforeValidator(_require_str_commit), Field(pattern=_COMMIT_PATTERN)
]


class _Ref(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    def fetch_ref(self) -> str:
        """Name to request from the remote."""
        raise NotImplementedError

    def checkout_target(self) -> str:
        """Local ref or commit hash to check out after fetching."""
        raise NotImplementedError

    def fetch_refspec(self) -> str:
        """Forced refspec that lands the fetched ref where the checkout target expects it."""
        return fetch_refspec(self.fetch_ref(), self.checkout_target())


class BranchRef(_Ref):
    kind: Literal["branch"] = "branch"
    branch: RefComponent

    def fetch_ref(self) -> str:
        return self.branch

    def checkout_target(self) -> str:
        return _checked(f"{REMOTE_PREFIX}{self.branch}")


class TagRef(_Ref):
    kind: Literal["tag"] = "tag"
    tag: RefComponent

    def fetch_ref(self) -> str:
        return self.tag

    def checkout_target(self) -> str:
        return _checked(f"{TAGS_PREFIX}{self.tag}")


class CommitRef(_Ref):
    """A commit pinned by hash, fetched through the branch it is reachable from."""

    kind: Literal["commit"] = "commit"
    branch: RefComponent
    commit: CommitHash

    def fetch_ref(self) -> str:
        return self.branch

    def checkout_target(self) -> str:
        return self.commit


def _checked(refname: str) -> str:
    if not is_valid_ref_name(refname):
        raise InvalidRefNameError(refname)
    return refname


def fetch_refspec(fetch_ref: str, checkout_ref: str) -> str:
    """Build the refspec for fetching *fetch_ref* given its checkout target.

    Tags land in ``refs/tags/``; branches (including the branch of a pinned
    commit) land in ``refs/remotes/origin/``.
    """
    if checkout_ref.startswith(TAGS_PREFIX):
        return f"+{TAGS_PREFIX}{fetch_ref}:{TAGS_PREFIX}{fetch_ref}"
    return f"+{HEADS_PREFIX}{fetch_ref}:{REMOTE_PREFIX}{fetch_ref}"


def tag_ref_kind(v: Any) -> Any:
    """Tag an untagged ref mapping with its ``kind``.

    ``{branch}`` is a branch, ``{tag}`` a tag and ``{branch, commit}`` a pinned
    commit. Mappings that already carry ``kind`` pass through unchanged.
    """
    if not isinstance(v, dict) or "kind" in v:
        return v
    if "commit" in v:
        return {**v, "kind": "commit"}
    if "tag" in v:
        return {**v, "kind": "tag"}
    if "branch" in v:
        return {**v, "kind": "branch"}
    return v


GitRef = Annotated[
    BranchRef | TagRef | CommitRef,
    BeforeValidator(tag_ref_kind),
    Discriminator("kind"),
]

REF_KEYS: frozenset[str] = frozenset({"branch", "tag", "commit"})
