"""Shared fixtures for unit tests."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from pkgstrap.config import load

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

    from pkgstrap.config.schema import Config, ConfigOverrides

_PKGSTRAP_ENV_VARS = (
    "PKGSTRAP_DIR",
    "PKGSTRAP_DEPS_DIR",
    "PKGSTRAP_WORKTREES_DIR",
    "PKGSTRAP_CACHE_DIR",
    "PKGSTRAP_SSH_KEY",
    "PKGSTRAP_SSH_USER",
    "PKGSTRAP_LOG",
)


@pytest.fixture(autouse=True)
def _clean_pkgstrap_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Remove PKGSTRAP_* env vars and keep the user cache out of reach."""
    for var in _PKGSTRAP_ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "xdg-cache"))


@pytest.fixture
def make_config(tmp_path: Path) -> Callable[..., tuple[Config, ConfigOverrides | None]]:
    """Factory fixture: write manifest + optional overrides/.env, return loaded pair."""

    def _make(
        yaml_str: str, *, overrides: str | None = None, dotenv: str | None = None
    ) -> tuple[Config, ConfigOverrides | None]:
        (tmp_path / "pkgstrap.yaml").write_text(yaml_str)
        if overrides is not None:
            (tmp_path / "pkgstrap.local.yaml").write_text(overrides)
        if dotenv is not None:
            (tmp_path / ".env").write_text(dotenv)
        return load(tmp_path / "pkgstrap.yaml")

    return _make
