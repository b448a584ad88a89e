"""Advisory locking of shared repository cache entries."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from pkgstrap.engine.errors import CacheLockError

if TYPE_CHECKING:
    from types import TracebackType

try:
    import fcntl  # type: ignore[attr-defined]
except ImportError:  # pragma: no cover
    fcntl = None  # type: ignore[assignment]

logger = logging.getLogger(__name__)


class RepositoryLock:
    """Exclusive lock on one cache entry, shared by every process using the cache.

    The lock file sits next to the entry (``<entry>.lock``) so it can be taken
    before the entry itself exists.
    """

    def __init__(self, entry_path: Path) -> None:
        self._lock_path = Path(str(entry_path) + ".lock")
        self._file = None

    @property
    def path(self) -> Path:
        return self._lock_path

    def __enter__(self) -> RepositoryLock:
        # Keep fd open for lifetime of the lock.
        self._lock_path.parent.mkdir(parents=True, exist_ok=True)
        self._file = self._lock_path.open("a+", encoding="utf-8")
        try:
            self._acquire()
        except Exception as e:
            try:
                self._file.close()
            finally:
                self._file = None
            raise CacheLockError(f"Could not lock {self._lock_path}: {e}") from e
        logger.debug("Locked %s", self._lock_path)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if self._file is None:
            return
        try:
            self._release()
        finally:
            self._file.close()
            self._file = None
            logger.debug("Unlocked %s", self._lock_path)

    def _acquire(self) -> None:
        if self._file is None:
            raise CacheLockError("Lock file is not open")

        fd = self._file.fileno()
        if fcntl is not None:
            try:
                fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
            except BlockingIOError:
                # Another process (possibly another project) holds the entry.
                logger.info("Waiting for lock on %s", self._lock_path)
                fcntl.flock(fd, fcntl.LOCK_EX)
            return

        if sys.platform == "win32":  # pragma: no cover
            import msvcrt

            msvcrt.locking(fd, msvcrt.LK_LOCK, 1)
            return

        raise CacheLockError("Cache locking is not supported on this platform")

    def _release(self) -> None:
        if self._file is None:
            return

        if fcntl is not None:
            fcntl.flock(self._file.fileno(), fcntl.LOCK_UN)
            return

        if sys.platform == "win32":  # pragma: no cover
            import msvcrt

            msvcrt.locking(self._file.fileno(), msvcrt.LK_UNLCK, 1)
            return
