"""CLI command implementations."""

from __future__ import annotations

import os
from pathlib import Path
from typing import TYPE_CHECKING, Annotated, Literal

import typer

from pkgstrap.cli import app
from pkgstrap.cli.errors import handle_error

if TYPE_CHECKING:
    from pkgstrap.config.schema import Config, ConfigOverrides
    from pkgstrap.engine.types import DependencyResult, SyncResult

ConfigPath = Annotated[
    Path,
    typer.Option("--config", "-c", help="Path to the manifest file."),
]

OverridesPath = Annotated[
    Path | None,
    typer.Option(
        "--overrides",
        "-o",
        help="Path to an overrides file (default: pkgstrap.local.yaml next to the manifest).",
    ),
]

NoColor = Annotated[
    bool,
    typer.Option("--no-color", help="Disable colored output."),
]


def _use_color(no_color: bool) -> bool:
    """Determine whether to use color output."""
    return not (no_color or os.environ.get("NO_COLOR"))


def _sync_with_progress(
    cfg: Config, overrides: ConfigOverrides | None, *, color: bool
) -> SyncResult:
    """Sync with a Rich progress bar and per-dependency status lines."""
    from rich.console import Console
    from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn

    from pkgstrap.cli.formatting import format_result
    from pkgstrap.config import sync

    console = Console(no_color=not color, highlight=False)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        console=console,
    ) as progress:
        task = progress.add_task("Syncing", total=len(cfg.dependencies))

        def on_progress(
            name: str, event: Literal["start", "done"], result: DependencyResult | None
        ) -> None:
            if event == "start":
                progress.update(task, description=f"{name}: Acquiring...")
            elif event == "done" and result is not None:
                progress.console.print(format_result(result, color=False), markup=False)
                progress.advance(task)

        return sync(cfg, overrides, progress=on_progress)


@app.command(name="sync")
def sync_cmd(
    config: ConfigPath = Path("pkgstrap.yaml"),
    overrides: OverridesPath = None,
    no_color: NoColor = False,
) -> None:
    """Fetch every dependency and link it into place."""
    from pkgstrap.cli.formatting import format_sync_summary
    from pkgstrap.config import load

    color = _use_color(no_color)
    try:
        cfg, ovr = load(config, overrides)
        result = _sync_with_progress(cfg, ovr, color=color)
    except Exception as exc:
        raise typer.Exit(handle_error(exc, color=color)) from exc

    typer.echo()
    typer.echo(format_sync_summary(result.summary(), color=color))


@app.command(name="resolve")
def resolve_cmd(
    config: ConfigPath = Path("pkgstrap.yaml"),
    overrides: OverridesPath = None,
    no_color: NoColor = False,
) -> None:
    """Show where each dependency will come from, without fetching anything."""
    from pkgstrap.cli.formatting import format_resolution
    from pkgstrap.config import load, resolve

    color = _use_color(no_color)
    try:
        cfg, ovr = load(config, overrides)
        resolved = resolve(cfg, ovr)
    except Exception as exc:
        raise typer.Exit(handle_error(exc, color=color)) from exc

    typer.echo(format_resolution(resolved))


@app.command(name="clean")
def clean_cmd(
    config: ConfigPath = Path("pkgstrap.yaml"),
    all_: Annotated[
        bool,
        typer.Option("--all", help="Also remove the whole state directory."),
    ] = False,
    no_color: NoColor = False,
) -> None:
    """Remove linked dependencies and local worktrees.

    The shared repository cache is left alone.
    """
    from pkgstrap.cli.formatting import format_clean
    from pkgstrap.config import clean, load_config

    color = _use_color(no_color)
    try:
        cfg = load_config(config)
        result = clean(cfg, everything=all_)
    except Exception as exc:
        raise typer.Exit(handle_error(exc, color=color)) from exc

    typer.echo(format_clean(result, color=color))
    if not result.ok:
        raise typer.Exit(1)
