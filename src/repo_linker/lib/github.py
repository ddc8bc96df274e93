"""GitHub integration: populate the repository catalog from an owner's repos.

Wraps PyGithub for the API. Local git work lives in ``lib.git``.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from github import Auth, Github, GithubException
from github.Repository import Repository

from repo_linker.lib.catalog import CatalogStore
from repo_linker.lib.models import CatalogRepository

logger = logging.getLogger(__name__)


def _github_error_message(action: str, exc: GithubException) -> str:
    """Build a clear error message from a PyGithub exception.

    Args:
        action: Human-readable description of what was attempted.
        exc: The caught GithubException.

    Returns:
        An actionable error string including the HTTP status and detail.
    """
    status = getattr(exc, "status", None)
    detail = getattr(exc, "data", {})
    message = ""
    if isinstance(detail, dict):
        message = detail.get("message", "")
    hints: dict[int, str] = {
        401: "check GITHUB_TOKEN is valid and not expired",
        403: "check token permissions or GitHub rate limits",
        404: "owner not found, verify the user or organization name",
    }
    hint = hints.get(status, "") if status else ""
    parts = [f"GitHub API error: failed to {action}"]
    if status:
        parts.append(f"(HTTP {status})")
    if message:
        parts.append(f"- {message}")
    if hint:
        parts.append(f"[hint: {hint}]")
    return " ".join(parts)


def _to_catalog_repository(repo: Repository) -> CatalogRepository:
    return CatalogRepository(
        id=int(repo.id),
        full_name=repo.full_name,
        html_url=repo.html_url,
        clone_url=repo.clone_url or "",
        owner=repo.owner.login if repo.owner else "",
        name=repo.name,
        description=repo.description,
    )


@dataclass
class GitHubClient:
    """Authenticated GitHub client for listing an owner's repositories.

    The token is read from the ``token`` field, or falls back to the
    ``GITHUB_TOKEN`` / ``GH_TOKEN`` environment variable.
    """

    token: str = field(default="", repr=False)
    _gh: Github = field(init=False, repr=False)

    def __post_init__(self) -> None:
        resolved = self.token or os.environ.get(
            "GITHUB_TOKEN", os.environ.get("GH_TOKEN", "")
        )
        if not resolved:
            msg = (
                "No GitHub token provided. Set GITHUB_TOKEN or GH_TOKEN, "
                "or pass token= explicitly."
            )
            raise ValueError(msg)
        self.token = resolved
        self._gh = Github(auth=Auth.Token(self.token))

    # ------------------------------------------------------------------
    # Repositories
    # ------------------------------------------------------------------

    def _owner_repos(self, owner: str) -> Iterable[Repository]:
        try:
            return list(self._gh.get_organization(owner).get_repos())
        except GithubException as exc:
            if getattr(exc, "status", None) != 404:
                raise
        logger.debug("%s is not an organization, listing user repositories", owner)
        me = self._gh.get_user()
        if me.login.casefold() == owner.casefold():
            return list(me.get_repos(affiliation="owner"))
        return list(self._gh.get_user(owner).get_repos())

    def list_owner_repositories(self, owner: str) -> list[CatalogRepository]:
        """Return every repository of *owner* as a catalog entry.

        *owner* may be an organization or a user; organizations are tried
        first. For the authenticated user, private repositories are included.
        """
        try:
            repos = self._owner_repos(owner)
        except GithubException as exc:
            msg = _github_error_message(f"list repositories of '{owner}'", exc)
            logger.error(msg)
            raise RuntimeError(msg) from exc
        entries = [_to_catalog_repository(repo) for repo in repos]
        logger.info("Fetched %d repositories for %s", len(entries), owner)
        return entries

    # ------------------------------------------------------------------
    # Cleanup
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Close the underlying GitHub connection."""
        self._gh.close()

    def __enter__(self) -> GitHubClient:
        """Enter the context manager and return self."""
        return self

    def __exit__(self, *_: Any) -> None:
        """Exit the context manager and close the connection."""
        self.close()


def sync_catalog(client: GitHubClient, store: CatalogStore, owner: str) -> int:
    """Refresh *store* with *owner*'s repositories; existing links survive.

    Returns:
        Number of catalog entries inserted or updated.
    """
    repos = client.list_owner_repositories(owner)
    count = store.upsert_repositories(repos)
    logger.info("Synced %d repositories for %s into the catalog", count, owner)
    return count
