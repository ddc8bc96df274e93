"""Link local git working copies to catalog repositories.

:class:`RepositoryLinker` owns the three operations that write
``CatalogRepository.local_path``:

- ``scan_and_link`` walks a work folder, reads each working copy's
  ``origin`` and links it to the first catalog entry with a matching URL.
- ``cleanup_invalid_links`` clears links whose directory vanished, stopped
  being a working copy, or now points at a different remote.
- ``clone`` provisions a missing repository into the work folder.

Soft conditions (missing folder, unreadable origin, not a working copy) are
logged and skipped. Catalog failures and traversal errors are logged and
re-raised; writes made before the failure stay in place.
"""

from __future__ import annotations

__all__ = ["GIT_METADATA_DIR", "RepositoryLinker", "find_working_copies"]

import logging
import os
from collections.abc import Iterator
from pathlib import Path

from repo_linker.lib.catalog import CatalogStore, JsonCatalogStore
from repo_linker.lib.config import Config
from repo_linker.lib.credentials import CredentialProvider, TokenCredentialProvider
from repo_linker.lib.git import GitCli, OriginStatus
from repo_linker.lib.git_utils import redact_sensitive
from repo_linker.lib.models import CatalogRepository, LocalGitCopy, ScanReport
from repo_linker.lib.urls import remote_urls_match

logger = logging.getLogger(__name__)

GIT_METADATA_DIR = ".git"


def _raise_walk_error(exc: OSError) -> None:
    raise exc


def find_working_copies(root_folder: Path | str) -> Iterator[LocalGitCopy]:
    """Yield every ``.git`` directory below *root_folder*, at any depth.

    Siblings are visited in name order and ``.git`` directories are not
    descended into. ``OSError`` raised while walking propagates.
    """
    for dirpath, dirnames, _ in os.walk(root_folder, onerror=_raise_walk_error):
        dirnames.sort()
        if GIT_METADATA_DIR in dirnames:
            dirnames.remove(GIT_METADATA_DIR)
            yield LocalGitCopy(metadata_dir=Path(dirpath) / GIT_METADATA_DIR)


class RepositoryLinker:
    """Discover, validate, and provision local clones of catalog repositories."""

    def __init__(
        self,
        catalog: CatalogStore,
        *,
        git: GitCli | None = None,
        credentials: CredentialProvider | None = None,
    ) -> None:
        self.catalog = catalog
        self.git = git or GitCli()
        self.credentials = credentials or TokenCredentialProvider.from_token(None)

    @classmethod
    def from_config(cls, config: Config) -> RepositoryLinker:
        """Build a linker over the configured JSON catalog and access token."""
        return cls(
            JsonCatalogStore(config.catalog_path),
            credentials=TokenCredentialProvider.from_token(config.github_token),
        )

    # ------------------------------------------------------------------
    # Scan
    # ------------------------------------------------------------------

    def scan_and_link(self, root_folder: Path | str, owner: str) -> ScanReport:
        """Link every working copy under *root_folder* to *owner*'s catalog.

        Stale links are cleared first. Each working copy is linked to the
        first catalog entry (in catalog order) whose ``html_url`` matches its
        ``origin``. An entry keeps the first directory it was linked to;
        later matches for the same entry are skipped.

        Returns:
            A :class:`ScanReport`. A missing *root_folder* yields an empty
            report rather than an error.
        """
        root = Path(root_folder).absolute()
        report = ScanReport(root_folder=str(root), owner=owner)
        logger.info("Starting repository scan in folder: %s for owner: %s", root, owner)

        if not root.is_dir():
            logger.warning("Work folder path does not exist: %s", root)
            return report

        try:
            report.cleaned = self.cleanup_invalid_links(owner)
            logger.info("Cleanup completed: %d invalid links removed", report.cleaned)

            repositories = self.catalog.list_repositories(owner)
            logger.info(
                "Found %d repositories in catalog for owner: %s",
                len(repositories),
                owner,
            )

            claimed: set[int] = set()
            for copy in find_working_copies(root):
                report.scanned += 1
                linked = self._link_working_copy(copy, repositories, claimed)
                if linked is None:
                    report.skipped += 1
                    continue
                report.links[linked.id] = str(copy.root)
                report.linked += 1
        except Exception:
            logger.exception("Error scanning repositories in folder: %s", root)
            raise

        logger.info("Repository scan completed. Linked %d repositories", report.linked)
        return report

    def _link_working_copy(
        self,
        copy: LocalGitCopy,
        repositories: list[CatalogRepository],
        claimed: set[int],
    ) -> CatalogRepository | None:
        """Link *copy* to its catalog entry; return the entry or ``None``."""
        root = copy.root
        logger.debug("Checking git repository at: %s", copy.metadata_dir)

        copy.remote_url = self.git.read_origin_url(root)
        if not copy.remote_url:
            logger.debug("No remote URL found for repository at: %s", root)
            return None
        logger.debug(
            "Found remote URL: %s for directory: %s",
            redact_sensitive(copy.remote_url),
            root,
        )

        match = next(
            (r for r in repositories if remote_urls_match(r.html_url, copy.remote_url)),
            None,
        )
        if match is None:
            logger.debug("No catalog repository matches %s", root)
            return None

        local_path = str(root)
        if match.id in claimed:
            logger.info(
                "Repository %s already linked during this scan; skipping %s",
                match.full_name,
                local_path,
            )
            return None
        if match.local_path and match.local_path != local_path:
            logger.info(
                "Repository %s is already linked to %s; skipping %s",
                match.full_name,
                match.local_path,
                local_path,
            )
            return None

        claimed.add(match.id)
        if match.local_path == local_path:
            logger.debug("Repository %s already linked to %s", match.full_name, root)
            return match

        logger.info("Matched repository %s to local path: %s", match.full_name, root)
        self.catalog.set_local_path(match.id, local_path)
        match.local_path = local_path
        return match

    # ------------------------------------------------------------------
    # Cleanup
    # ------------------------------------------------------------------

    def cleanup_invalid_links(self, owner: str) -> int:
        """Clear every link of *owner* that no longer verifies.

        A link is cleared when its directory is gone, is not a git working
        copy, has no readable ``origin``, or its ``origin`` does not match
        the repository's ``html_url``.

        Returns:
            Number of links cleared.
        """
        logger.info(
            "Starting cleanup of invalid linked repositories for owner: %s", owner
        )
        try:
            repositories = self.catalog.list_repositories(owner)
            logger.debug(
                "Found %d repositories in catalog for owner: %s",
                len(repositories),
                owner,
            )

            cleaned = 0
            for repo in repositories:
                if not repo.is_linked:
                    continue
                reason = self._invalid_link_reason(repo)
                if reason is None:
                    continue
                logger.info(
                    "%s for repository %s: %s. Clearing link.",
                    reason,
                    repo.full_name,
                    repo.local_path,
                )
                self.catalog.set_local_path(repo.id, None)
                repo.local_path = None
                cleaned += 1
        except Exception:
            logger.exception(
                "Error during cleanup of invalid linked repositories for owner: %s",
                owner,
            )
            raise

        logger.info("Cleanup completed. Cleared %d invalid repository links", cleaned)
        return cleaned

    def _invalid_link_reason(self, repo: CatalogRepository) -> str | None:
        """Return why *repo*'s link is invalid, or ``None`` if it verifies."""
        local_path = Path(repo.local_path or "")
        logger.debug(
            "Checking local path for repository %s: %s", repo.full_name, local_path
        )

        if not local_path.is_dir():
            return "Local path no longer exists"

        lookup = self.git.lookup_origin(local_path)
        if lookup.status is OriginStatus.NOT_A_REPOSITORY:
            return "Local path is no longer a valid git repository"
        if not lookup.found:
            logger.warning(
                "Could not get remote URL for repository %s at %s (%s)",
                repo.full_name,
                local_path,
                lookup.status.value,
            )
            return "Remote URL could not be read"
        if not remote_urls_match(repo.html_url, lookup.url):
            logger.warning(
                "Remote URL mismatch for repository %s. Expected: %s, Found: %s",
                repo.full_name,
                repo.html_url,
                redact_sensitive(lookup.url or ""),
            )
            return "Remote URL mismatch"
        return None

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get_local_path(self, repo_id: int) -> str | None:
        """Return the linked local path of *repo_id*, if any."""
        return self.catalog.get_local_path(repo_id)

    # ------------------------------------------------------------------
    # Clone
    # ------------------------------------------------------------------

    def clone(
        self,
        clone_url: str,
        root_folder: Path | str,
        repo_name: str,
        repo_id: int,
    ) -> str | None:
        """Clone *clone_url* into ``root_folder/repo_name`` and link it.

        An existing valid working copy at the target is linked without
        touching the network. An existing directory that is not a working
        copy is left alone.

        Returns:
            The linked local path, or ``None`` on any failure.
        """
        root = Path(root_folder).absolute()
        target = root / repo_name
        logger.info(
            "Cloning repository %s from %s to %s",
            repo_name,
            redact_sensitive(clone_url),
            root,
        )

        if not root.is_dir():
            logger.warning("Work folder path does not exist: %s", root)
            return None

        try:
            if target.exists():
                logger.warning("Directory already exists at: %s", target)
                if not self.git.is_valid_working_copy(target):
                    logger.error(
                        "Directory exists but is not a valid git repository: %s", target
                    )
                    return None
                logger.info("Directory is already a valid git repository, linking it")
            else:
                outcome = self.git.clone(clone_url, target, self.credentials)
                if not outcome.success:
                    logger.error(
                        "Error cloning repository %s from %s: %s",
                        repo_name,
                        redact_sensitive(clone_url),
                        outcome.error,
                    )
                    return None
                logger.info("Successfully cloned repository to: %s", target)

            self.catalog.set_local_path(repo_id, str(target))
        except Exception:
            logger.exception(
                "Error cloning repository %s from %s",
                repo_name,
                redact_sensitive(clone_url),
            )
            return None
        return str(target)

    def clone_catalog_repository(
        self, repo_id: int, root_folder: Path | str
    ) -> str | None:
        """Clone the catalog repository *repo_id* under *root_folder*."""
        repo = self.catalog.get_repository(repo_id)
        if repo is None:
            logger.warning("Repository %d is not in the catalog", repo_id)
            return None
        clone_url = repo.clone_url or repo.html_url
        return self.clone(clone_url, root_folder, repo.name, repo.id)
