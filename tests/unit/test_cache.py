"""Tests for the repository cache layout and locking."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from pkgstrap.config.settings import SshCredentials
from pkgstrap.engine.errors import (
    AuthenticationError,
    CacheLockError,
    CloneError,
    GitCommandError,
    WrongRepoKindError,
)
from pkgstrap.engine.lock import RepositoryLock
from pkgstrap.git.cache import RepositoryCache, credentials_env

_CREDS = SshCredentials(key=Path("/keys/id"), user="deploy")


class TestLayout:
    def test_entry_path(self, tmp_path: Path) -> None:
        cache = RepositoryCache(tmp_path, _CREDS)
        assert cache.entry_path("https://github.com/org/foo.git") == (
            tmp_path / "github.com" / "org" / "foo"
        )

    def test_equivalent_urls_share_entry(self, tmp_path: Path) -> None:
        cache = RepositoryCache(tmp_path, _CREDS)
        assert cache.entry_path("https://github.com/org/foo") == cache.entry_path(
            "https://github.com/org/foo.git"
        )

    def test_lock_file_next_to_entry(self, tmp_path: Path) -> None:
        cache = RepositoryCache(tmp_path, _CREDS)
        assert cache.lock("https://github.com/org/foo").path == (
            tmp_path / "github.com" / "org" / "foo.lock"
        )


class TestCredentialsEnv:
    def test_https_url_gets_configured_user(self) -> None:
        env = credentials_env(_CREDS, "https://github.com/org/foo")
        assert env["GIT_SSH_COMMAND"].endswith("-l deploy")

    def test_url_user_kept(self) -> None:
        env = credentials_env(_CREDS, "git@github.com:org/foo.git")
        assert "-l" not in env["GIT_SSH_COMMAND"].split()


class TestGetOrCreateBare:
    @patch("pkgstrap.git.cache.Repository")
    @patch("pkgstrap.git.cache.run_git")
    def test_clones_when_missing(
        self, mock_run_git: MagicMock, mock_repo_cls: MagicMock, tmp_path: Path
    ) -> None:
        repo = mock_repo_cls.return_value
        repo.is_bare.return_value = True
        repo.is_linked_worktree.return_value = False
        cache = RepositoryCache(tmp_path, _CREDS)

        assert cache.get_or_create_bare("https://github.com/org/foo.git") is repo

        args = mock_run_git.call_args.args
        assert args[:3] == ("clone", "--bare", "--quiet")
        assert args[-1] == str(tmp_path / "github.com" / "org" / "foo")
        assert (tmp_path / "github.com" / "org").is_dir()

    @patch("pkgstrap.git.cache.Repository")
    @patch("pkgstrap.git.cache.run_git")
    def test_opens_existing(
        self, mock_run_git: MagicMock, mock_repo_cls: MagicMock, tmp_path: Path
    ) -> None:
        (tmp_path / "github.com" / "org" / "foo").mkdir(parents=True)
        repo = mock_repo_cls.open.return_value
        repo.is_bare.return_value = True
        repo.is_linked_worktree.return_value = False

        cache = RepositoryCache(tmp_path, _CREDS)
        assert cache.get_or_create_bare("https://github.com/org/foo") is repo
        mock_run_git.assert_not_called()

    @patch("pkgstrap.git.cache.Repository")
    def test_non_bare_entry_rejected(self, mock_repo_cls: MagicMock, tmp_path: Path) -> None:
        (tmp_path / "github.com" / "org" / "foo").mkdir(parents=True)
        mock_repo_cls.open.return_value.is_bare.return_value = False
        with pytest.raises(WrongRepoKindError, match="not a bare repository"):
            RepositoryCache(tmp_path, _CREDS).get_or_create_bare("https://github.com/org/foo")

    @patch("pkgstrap.git.cache.Repository")
    def test_linked_worktree_entry_rejected(
        self, mock_repo_cls: MagicMock, tmp_path: Path
    ) -> None:
        (tmp_path / "github.com" / "org" / "foo").mkdir(parents=True)
        repo = mock_repo_cls.open.return_value
        repo.is_bare.return_value = True
        repo.is_linked_worktree.return_value = True
        with pytest.raises(WrongRepoKindError, match="linked worktree"):
            RepositoryCache(tmp_path, _CREDS).get_or_create_bare("https://github.com/org/foo")

    @patch("pkgstrap.git.cache.run_git")
    def test_clone_auth_failure(self, mock_run_git: MagicMock, tmp_path: Path) -> None:
        mock_run_git.side_effect = GitCommandError(["clone"], 128, "Permission denied (publickey).")
        with pytest.raises(AuthenticationError):
            RepositoryCache(tmp_path, _CREDS).get_or_create_bare("git@github.com:org/foo.git")

    @patch("pkgstrap.git.cache.run_git")
    def test_clone_failure(self, mock_run_git: MagicMock, tmp_path: Path) -> None:
        mock_run_git.side_effect = GitCommandError(["clone"], 128, "repository not found")
        with pytest.raises(CloneError):
            RepositoryCache(tmp_path, _CREDS).get_or_create_bare("https://github.com/org/foo")


class TestRepositoryLock:
    def test_lock_and_release(self, tmp_path: Path) -> None:
        lock = RepositoryLock(tmp_path / "nested" / "entry")
        with lock:
            assert lock.path.exists()
        # Re-acquirable after release.
        with RepositoryLock(tmp_path / "nested" / "entry"):
            pass

    def test_acquire_failure_wrapped(self, tmp_path: Path) -> None:
        lock = RepositoryLock(tmp_path / "entry")
        with (
            patch.object(RepositoryLock, "_acquire", side_effect=OSError("busy")),
            pytest.raises(CacheLockError, match="busy"),
        ):
            lock.__enter__()

    def test_busy_lock_waits(self, tmp_path: Path) -> None:
        calls: list[int] = []

        def _flock(_fd: int, op: int) -> None:
            calls.append(op)
            if len(calls) == 1:
                raise BlockingIOError

        with patch("pkgstrap.engine.lock.fcntl.flock", side_effect=_flock):
            with RepositoryLock(tmp_path / "entry"):
                pass

        import fcntl

        assert calls[:2] == [fcntl.LOCK_EX | fcntl.LOCK_NB, fcntl.LOCK_EX]
        assert calls[2] == fcntl.LOCK_UN
