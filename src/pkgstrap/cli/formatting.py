"""Sync, resolve and clean output rendering."""

from __future__ import annotations

from typing import TYPE_CHECKING, NamedTuple

import typer

from pkgstrap.core.resolver import ResolvedGitRepository, ResolvedLocalPath

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from pkgstrap.core.resolver import ResolvedDependency
    from pkgstrap.engine.types import CleanResult, DependencyResult

SHORT_HASH = 7


class _OutcomeStyle(NamedTuple):
    color: str
    verb: str


_OUTCOME_STYLES: dict[str, _OutcomeStyle] = {
    "updated": _OutcomeStyle("green", "updated"),
    "unchanged": _OutcomeStyle("bright_black", "unchanged"),
    "linked": _OutcomeStyle("cyan", "linked"),
}


def styler(color: bool) -> Callable[..., str]:
    """Return ``typer.style`` when *color* is True, otherwise a passthrough."""
    if color:
        return typer.style
    return lambda text, **_kw: text


def short(commit: str) -> str:
    return commit[:SHORT_HASH]


# ---------------------------------------------------------------------------
# Sync
# ---------------------------------------------------------------------------


def outcome(result: DependencyResult) -> str:
    """``updated``, ``unchanged`` or ``linked``."""
    if result.transition is None:
        return "linked"
    return "updated" if result.transition.changed else "unchanged"


def format_result(result: DependencyResult, *, color: bool = True) -> str:
    """Render the status line of one acquired dependency."""
    style = styler(color)
    kind = outcome(result)
    fg = _OUTCOME_STYLES[kind].color
    t = result.transition

    if t is None:
        detail = f"linked to {result.source}"
    elif not t.changed:
        detail = f"at commit {short(t.after)}"
    elif t.before is None:
        detail = f"updated to {short(t.after)}"
    else:
        detail = f"updated to {short(t.after)} (from {short(t.before)})"
    return f"  {result.name}: {style(detail, fg=fg)}"


def format_sync_summary(summary: dict[str, int], *, color: bool = True) -> str:
    """Render ``Sync complete! Dependencies: 1 updated, 2 unchanged, 0 linked.``"""
    style = styler(color)
    header = style("Sync complete!", fg="green", bold=True)
    parts = [
        style(f"{summary.get(key, 0)} {s.verb}", fg=s.color)
        if summary.get(key) and color
        else f"{summary.get(key, 0)} {s.verb}"
        for key, s in _OUTCOME_STYLES.items()
    ]
    return f"{header} Dependencies: {', '.join(parts)}."


# ---------------------------------------------------------------------------
# Resolve
# ---------------------------------------------------------------------------


def format_resolved(name: str, resolved: ResolvedDependency) -> str:
    """Render one resolved descriptor as an indented block."""
    if isinstance(resolved, ResolvedGitRepository):
        lines = [
            f"{name}:",
            f"  git_repo: {resolved.url}",
            f"  fetch:    {resolved.fetch_ref}",
            f"  checkout: {resolved.checkout_ref}",
        ]
    elif isinstance(resolved, ResolvedLocalPath):
        lines = [f"{name}:", f"  local_path: {resolved.local_path}"]
    else:
        raise TypeError(f"Unsupported resolved dependency: {type(resolved).__name__}")
    return "\n".join(lines)


def format_resolution(resolved: Mapping[str, ResolvedDependency]) -> str:
    if not resolved:
        return "No dependencies declared."
    return "\n\n".join(format_resolved(name, r) for name, r in resolved.items())


# ---------------------------------------------------------------------------
# Clean
# ---------------------------------------------------------------------------


def format_clean(result: CleanResult, *, color: bool = True) -> str:
    style = styler(color)
    count = len(result.removed)
    lines = [f"Removed {count} path{'s' if count != 1 else ''}."]
    for path, reason in result.failed.items():
        lines.append(style(f"  ! {path}: {reason}", fg="red"))
    return "\n".join(lines)
