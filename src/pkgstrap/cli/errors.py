"""Map exceptions to clean stderr messages and exit codes."""

from __future__ import annotations

import typer


def _err(msg: str, *, fg: str | None) -> None:
    """Print a styled message to stderr."""
    typer.echo(typer.style(msg, fg=fg), err=True)


def handle_error(exc: Exception, *, color: bool = True) -> int:
    """Print a clean error message to stderr and return an exit code.

    All errors map to exit code 1.  No tracebacks are printed.
    """
    from pkgstrap.config.loader import ConfigError
    from pkgstrap.engine.errors import (
        AcquireError,
        AuthenticationError,
        SyncCanceled,
        UnknownOverrideError,
    )

    fg = typer.colors.RED if color else None

    if isinstance(exc, ConfigError):
        _err(f"Configuration error: {exc}", fg=fg)
    elif isinstance(exc, UnknownOverrideError):
        _err(f"Override error: {exc}", fg=fg)
    elif isinstance(exc, AcquireError):
        _err(f"Sync failed: {exc}", fg=fg)
        if isinstance(exc.__cause__, AuthenticationError):
            _err("  Check PKGSTRAP_SSH_KEY and PKGSTRAP_SSH_USER.", fg=fg)
        s = exc.result.summary()
        parts = [
            f"{n} {verb}"
            for n, verb in (
                (s["updated"], "updated"),
                (s["unchanged"], "unchanged"),
                (s["linked"], "linked"),
            )
            if n
        ]
        if parts:
            _err(f"  Partial result: {', '.join(parts)}.", fg=fg)
    elif isinstance(exc, SyncCanceled):
        _err("Sync canceled.", fg=fg)
    else:
        _err(f"Error: {exc}", fg=fg)

    return 1
