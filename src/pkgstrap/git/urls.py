"""Repository URL handling: cache keys and URL usernames."""

from __future__ import annotations

import ipaddress
import re
from pathlib import PurePosixPath
from urllib.parse import SplitResult, urlsplit

from pkgstrap.engine.errors import MissingDomainError, UnparsableUrlError

# git@github.com:owner/repo.git
_SCP_LIKE = re.compile(r"^(?:(?P<user>[^@/:]+)@)?(?P<host>[^@/:]+):(?P<path>(?!//).+)$")


def _split(url: str) -> SplitResult:
    if "://" not in url:
        m = _SCP_LIKE.match(url)
        if m is None:
            raise UnparsableUrlError(url, "not a URL or scp-style address")
        user = f"{m['user']}@" if m["user"] else ""
        url = f"ssh://{user}{m['host']}/{m['path'].lstrip('/')}"
    try:
        parts = urlsplit(url)
        parts.port  # noqa: B018 (raises ValueError on an invalid port)
    except ValueError as exc:
        raise UnparsableUrlError(url, str(exc)) from exc
    if not parts.scheme:
        raise UnparsableUrlError(url, "missing scheme")
    return parts


def _is_ip(host: str) -> bool:
    try:
        ipaddress.ip_address(host)
    except ValueError:
        return False
    return True


def url_username(url: str) -> str | None:
    """User named in *url* (``git`` in ``git@host:repo``), if any."""
    try:
        return _split(url).username
    except UnparsableUrlError:
        return None


def normalize_url(url: str) -> PurePosixPath:
    """Map a repository URL to its relative path in the repository cache.

    The path is the domain followed by every path segment, with the extension
    of the last segment stripped, so ``https://github.com/org/repo.git`` and
    ``https://github.com/org/repo`` share ``github.com/org/repo``.

    Raises:
        UnparsableUrlError: The URL cannot be parsed or has ``.``/``..`` segments.
        MissingDomainError: The URL has no host, or the host is an IP address.
    """
    parts = _split(url)
    host = parts.hostname
    if not host or _is_ip(host):
        raise MissingDomainError(url)

    segments = [s for s in parts.path.split("/") if s]
    if any(s in (".", "..") for s in segments):
        raise UnparsableUrlError(url, "relative path segments are not allowed")

    path = PurePosixPath(host, *segments)
    if segments and path.suffix:
        path = path.with_suffix("")
    return path
