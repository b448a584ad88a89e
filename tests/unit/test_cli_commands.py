from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock, patch

import pytest
from typer.testing import CliRunner

from pkgstrap.cli import app
from pkgstrap.config.loader import ConfigError
from pkgstrap.core.resolver import ResolvedGitRepository, ResolvedLocalPath
from pkgstrap.engine.errors import AcquireError, AuthenticationError, UnknownOverrideError
from pkgstrap.engine.types import (
    CleanResult,
    CommitTransition,
    DependencyResult,
    SourceKind,
    SyncResult,
)

runner = CliRunner()

_OLD = "1111111" + "1" * 33
_NEW = "2222222" + "2" * 33

_RESULTS = [
    DependencyResult(
        name="foo",
        kind=SourceKind.GIT,
        source=Path("/wt/foo"),
        targets=[Path("/deps/foo")],
        transition=CommitTransition(before=_OLD, after=_NEW),
    ),
    DependencyResult(
        name="bar",
        kind=SourceKind.GIT,
        source=Path("/wt/bar"),
        targets=[Path("/deps/bar")],
        transition=CommitTransition(before=_NEW, after=_NEW),
    ),
    DependencyResult(
        name="baz",
        kind=SourceKind.LOCAL,
        source=Path("/src/baz"),
        targets=[Path("/deps/baz")],
    ),
]


def _strip_ansi(text: str) -> str:
    return re.sub(r"\x1b\[[0-9;]*m", "", text)


def _mock_config() -> MagicMock:
    cfg = MagicMock()
    cfg.dependencies = {"foo": None, "bar": None, "baz": None}
    cfg.config_dir = Path(".")
    return cfg


def _sync_reporting(results: list[DependencyResult]) -> Any:
    def _sync(_cfg: Any, _ovr: Any, *, progress: Any = None) -> SyncResult:
        for r in results:
            progress(r.name, "start", None)
            progress(r.name, "done", r)
        return SyncResult(acquired=results)

    return _sync


class TestVersion:
    def test_version_flag(self) -> None:
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert "pkgstrap" in result.stdout

    def test_short_version_flag(self) -> None:
        result = runner.invoke(app, ["-V"])
        assert result.exit_code == 0
        assert "pkgstrap" in result.stdout


class TestSyncCommand:
    @patch("pkgstrap.config.sync")
    @patch("pkgstrap.config.load")
    def test_reports_each_dependency(self, mock_load: MagicMock, mock_sync: MagicMock) -> None:
        mock_load.return_value = (_mock_config(), None)
        mock_sync.side_effect = _sync_reporting(_RESULTS)

        result = runner.invoke(app, ["sync", "--no-color"])

        assert result.exit_code == 0, result.output
        out = _strip_ansi(result.stdout)
        assert "foo: updated to 2222222 (from 1111111)" in out
        assert "bar: at commit 2222222" in out
        assert "baz: linked to /src/baz" in out
        assert "Sync complete! Dependencies: 1 updated, 1 unchanged, 1 linked." in out

    @patch("pkgstrap.config.sync")
    @patch("pkgstrap.config.load")
    def test_passes_config_and_overrides(
        self, mock_load: MagicMock, mock_sync: MagicMock
    ) -> None:
        mock_load.return_value = (_mock_config(), None)
        mock_sync.side_effect = _sync_reporting([])
        runner.invoke(app, ["sync", "-c", "deps.yaml", "-o", "mine.yaml", "--no-color"])
        mock_load.assert_called_once_with(Path("deps.yaml"), Path("mine.yaml"))

    @patch("pkgstrap.config.load")
    def test_config_error_exits_1(self, mock_load: MagicMock) -> None:
        mock_load.side_effect = ConfigError("bad yaml")
        result = runner.invoke(app, ["sync", "--no-color"])
        assert result.exit_code == 1
        assert "Configuration error: bad yaml" in result.output

    @patch("pkgstrap.config.sync")
    @patch("pkgstrap.config.load")
    def test_acquire_error_reports_partial(
        self, mock_load: MagicMock, mock_sync: MagicMock
    ) -> None:
        mock_load.return_value = (_mock_config(), None)
        err = AcquireError(acquired=_RESULTS[:1], name="bar", message="Fetch failed")
        mock_sync.side_effect = err

        result = runner.invoke(app, ["sync", "--no-color"])

        assert result.exit_code == 1
        assert "Sync failed: Acquiring bar failed: Fetch failed" in result.output
        assert "Partial result: 1 updated." in result.output

    @patch("pkgstrap.config.sync")
    @patch("pkgstrap.config.load")
    def test_auth_error_hint(self, mock_load: MagicMock, mock_sync: MagicMock) -> None:
        mock_load.return_value = (_mock_config(), None)
        err = AcquireError(acquired=[], name="foo", message="denied")
        err.__cause__ = AuthenticationError("git@host:foo", "denied")
        mock_sync.side_effect = err

        result = runner.invoke(app, ["sync", "--no-color"])

        assert result.exit_code == 1
        assert "PKGSTRAP_SSH_KEY" in result.output


class TestResolveCommand:
    @patch("pkgstrap.config.resolve")
    @patch("pkgstrap.config.load")
    def test_prints_descriptors(self, mock_load: MagicMock, mock_resolve: MagicMock) -> None:
        mock_load.return_value = (_mock_config(), None)
        mock_resolve.return_value = {
            "foo": ResolvedGitRepository(
                url="https://x.org/foo", fetch_ref="v1", checkout_ref="refs/tags/v1"
            ),
            "bar": ResolvedLocalPath(local_path=Path("/src/bar")),
        }

        result = runner.invoke(app, ["resolve"])

        assert result.exit_code == 0
        assert "git_repo: https://x.org/foo" in result.stdout
        assert "checkout: refs/tags/v1" in result.stdout
        assert "local_path: /src/bar" in result.stdout
        assert result.stdout.index("foo:") < result.stdout.index("bar:")

    @patch("pkgstrap.config.resolve")
    @patch("pkgstrap.config.load")
    def test_unknown_override(self, mock_load: MagicMock, mock_resolve: MagicMock) -> None:
        mock_load.return_value = (_mock_config(), MagicMock())
        mock_resolve.side_effect = UnknownOverrideError(["typo"])
        result = runner.invoke(app, ["resolve", "--no-color"])
        assert result.exit_code == 1
        assert "Override error" in result.output
        assert "typo" in result.output


class TestCleanCommand:
    @patch("pkgstrap.config.clean")
    @patch("pkgstrap.config.load_config")
    def test_success(self, mock_load: MagicMock, mock_clean: MagicMock) -> None:
        mock_load.return_value = _mock_config()
        mock_clean.return_value = CleanResult(removed=[Path("/a"), Path("/b")])
        result = runner.invoke(app, ["clean", "--all"])
        assert result.exit_code == 0
        assert "Removed 2 paths." in result.stdout
        assert mock_clean.call_args.kwargs["everything"] is True

    @patch("pkgstrap.config.clean")
    @patch("pkgstrap.config.load_config")
    def test_failures_exit_1(self, mock_load: MagicMock, mock_clean: MagicMock) -> None:
        mock_load.return_value = _mock_config()
        mock_clean.return_value = CleanResult(
            removed=[Path("/a")], failed={Path("/deps/foo"): "not a symlink, left in place"}
        )
        result = runner.invoke(app, ["clean", "--no-color"])
        assert result.exit_code == 1
        assert "Removed 1 path." in result.stdout
        assert "/deps/foo: not a symlink" in result.stdout


class TestLogging:
    @pytest.fixture(autouse=True)
    def _reset_logger(self) -> Any:
        logger = logging.getLogger("pkgstrap")
        level = logger.level
        yield
        logger.setLevel(level)

    @patch("pkgstrap.config.resolve", return_value={})
    @patch("pkgstrap.config.load")
    def test_verbose_flag(self, mock_load: MagicMock, _mock_resolve: MagicMock) -> None:
        mock_load.return_value = (_mock_config(), None)
        runner.invoke(app, ["-vv", "resolve"])
        assert logging.getLogger("pkgstrap").level == logging.DEBUG

    @patch("pkgstrap.config.resolve", return_value={})
    @patch("pkgstrap.config.load")
    def test_env_level(
        self, mock_load: MagicMock, _mock_resolve: MagicMock, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        mock_load.return_value = (_mock_config(), None)
        monkeypatch.setenv("PKGSTRAP_LOG", "warning")
        runner.invoke(app, ["resolve"])
        assert logging.getLogger("pkgstrap").level == logging.WARNING
