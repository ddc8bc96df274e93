"""Remote URL normalization and catalog matching.

Remote URLs come in two shapes: absolute URIs (``https://host/owner/repo.git``,
``ssh://git@host/owner/repo``) and SCP-style shorthand (``git@host:owner/repo``).
Both are reduced to a bare ``owner/repo`` path fragment that is only ever used
as a comparison key.
"""

from __future__ import annotations

__all__ = ["normalize_remote_url", "remote_urls_match"]

import re
from urllib.parse import urlsplit

_SCP_PATTERN = re.compile(
    r"^(?P<user>[A-Za-z0-9._-]+)@(?P<host>[A-Za-z0-9._-]+):(?P<path>.+)$"
)
_GIT_SUFFIX = ".git"


def _trim_path(path: str, *, strip_git_suffix: bool) -> str | None:
    """Drop one leading slash and, optionally, a trailing ``.git``."""
    path = path.removeprefix("/")
    if strip_git_suffix and path.lower().endswith(_GIT_SUFFIX):
        path = path[: -len(_GIT_SUFFIX)]
    return path or None


def _absolute_uri_path(url: str) -> str | None:
    """Return the path of *url* if it parses as an absolute URI."""
    try:
        parts = urlsplit(url)
    except ValueError:
        return None
    # A one-letter scheme is a drive letter (``C:\\src``), not a URI.
    if len(parts.scheme) < 2:
        return None
    return parts.path


def normalize_remote_url(url: str | None, strip_git_suffix: bool = True) -> str | None:
    """Reduce a remote URL to its ``owner/repo`` path fragment.

    Args:
        url: HTTPS/SSH URI or SCP-style ``user@host:path`` remote.
        strip_git_suffix: Remove a trailing ``.git`` (any case).

    Returns:
        The path fragment, or ``None`` for blank input, unrecognized forms,
        or URLs whose path is empty.
    """
    if url is None or not url.strip():
        return None

    path = _absolute_uri_path(url)
    if path is not None:
        return _trim_path(path, strip_git_suffix=strip_git_suffix)

    match = _SCP_PATTERN.match(url)
    if match:
        return _trim_path(match.group("path"), strip_git_suffix=strip_git_suffix)

    return None


def remote_urls_match(catalog_url: str | None, remote_url: str | None) -> bool:
    """Return whether two remote URLs point at the same ``owner/repo``.

    Scheme, host form and a trailing ``.git`` are ignored; the comparison is
    case-insensitive. URLs that fail to normalize never match.
    """
    left = normalize_remote_url(catalog_url)
    right = normalize_remote_url(remote_url)
    if left is None or right is None:
        return False
    return left.casefold() == right.casefold()
