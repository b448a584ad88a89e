"""Point target paths at a dependency's source directory."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from pkgstrap.engine.errors import CanonicalizeError, PathConflictError

if TYPE_CHECKING:
    from collections.abc import Iterable
    from pathlib import Path

logger = logging.getLogger(__name__)


def ensure_symlink(link_path: Path, source_dir: Path) -> Path:
    """Make *link_path* a symlink to the canonical *source_dir*.

    An existing symlink at *link_path* is replaced: it is taken to be an
    earlier materialization. Anything else at *link_path* is left untouched.

    Returns:
        The canonical source the link points at.

    Raises:
        CanonicalizeError: *source_dir* does not exist or cannot be resolved.
        PathConflictError: *link_path* exists and is not a symlink.
    """
    try:
        source = source_dir.resolve(strict=True)
    except OSError as exc:
        raise CanonicalizeError(source_dir, exc.strerror or str(exc)) from exc

    if link_path.is_symlink():
        logger.debug("Replacing symlink %s", link_path)
        link_path.unlink()
    elif link_path.exists():
        raise PathConflictError(link_path)

    link_path.parent.mkdir(parents=True, exist_ok=True)
    link_path.symlink_to(source, target_is_directory=True)
    logger.debug("Linked %s -> %s", link_path, source)
    return source


def ensure_symlinks(link_paths: Iterable[Path], source_dir: Path) -> Path:
    """Apply :func:`ensure_symlink` to every path in *link_paths*."""
    source = source_dir
    for link_path in link_paths:
        source = ensure_symlink(link_path, source_dir)
    return source
