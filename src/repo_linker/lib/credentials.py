"""Authentication material for outbound git fetches (clone)."""

from __future__ import annotations

__all__ = [
    "DEFAULT_CREDENTIALS",
    "CredentialProvider",
    "GitCredentials",
    "TokenCredentialProvider",
]

import base64
import logging
from collections.abc import Callable
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GitCredentials:
    """Username/password pair, or a marker deferring to git's own helpers."""

    username: str = ""
    password: str = ""
    use_default: bool = False

    def __repr__(self) -> str:
        if self.use_default:
            return "GitCredentials(use_default=True)"
        return "GitCredentials(username='***', password='***')"

    def git_config_args(self, url: str) -> list[str]:
        """Return ``-c`` options that authenticate a single git command.

        Explicit credentials become a Basic ``http.extraHeader``, which is
        scoped to the invocation and never lands in the clone's config.
        Nothing is added for default credentials or non-HTTP(S) URLs.
        """
        if self.use_default or not url.lower().startswith(("https://", "http://")):
            return []
        raw = f"{self.username}:{self.password}".encode()
        encoded = base64.b64encode(raw).decode("ascii")
        return ["-c", f"http.extraHeader=Authorization: Basic {encoded}"]


DEFAULT_CREDENTIALS = GitCredentials(use_default=True)

CredentialProvider = Callable[[], GitCredentials]


class TokenCredentialProvider:
    """Resolve clone credentials from a configured access token.

    The token source is read on every call; nothing is cached.
    """

    def __init__(self, token_source: Callable[[], str | None]) -> None:
        self._token_source = token_source

    @classmethod
    def from_token(cls, token: str | None) -> TokenCredentialProvider:
        """Build a provider around a fixed token value."""
        return cls(lambda: token)

    def __call__(self) -> GitCredentials:
        token = (self._token_source() or "").strip()
        if token:
            logger.debug("Using access token for git authentication")
            return GitCredentials(username=token, password="")
        logger.warning("No access token configured, using default git credentials")
        return DEFAULT_CREDENTIALS
