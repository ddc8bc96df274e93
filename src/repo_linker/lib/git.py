"""Git working-copy access: validity checks, origin lookup, and clone.

Every call here fails soft. Lookups return an :class:`OriginLookup` and
clones a :class:`CloneOutcome` so callers decide between "skip this item"
and "abort" from the returned status instead of catching exceptions.
"""

from __future__ import annotations

__all__ = ["CloneOutcome", "GitCli", "OriginLookup", "OriginStatus"]

import logging
import subprocess
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from repo_linker.lib.credentials import CredentialProvider, GitCredentials
from repo_linker.lib.git_utils import GitCommandError, redact_sensitive, run_git

logger = logging.getLogger(__name__)

ORIGIN_REMOTE = "origin"


class OriginStatus(str, Enum):
    """Result of looking up a working copy's ``origin`` remote."""

    FOUND = "found"
    NOT_A_REPOSITORY = "not_a_repository"
    NO_ORIGIN = "no_origin"
    ERROR = "error"


@dataclass(frozen=True)
class OriginLookup:
    """Outcome of :meth:`GitCli.lookup_origin`."""

    path: Path
    status: OriginStatus
    url: str | None = None
    detail: str = ""

    @property
    def found(self) -> bool:
        """Return whether an origin URL was read."""
        return self.status is OriginStatus.FOUND and bool(self.url)


@dataclass(frozen=True)
class CloneOutcome:
    """Outcome of :meth:`GitCli.clone`."""

    url: str
    destination: Path
    success: bool
    error: str = ""


class GitCli:
    """Working-copy operations backed by the ``git`` executable."""

    def __init__(self, *, timeout: int = 30, clone_timeout: int | None = None) -> None:
        self.timeout = timeout
        self.clone_timeout = clone_timeout

    # ------------------------------------------------------------------
    # Validity
    # ------------------------------------------------------------------

    def is_valid_working_copy(self, path: Path | str) -> bool:
        """Return whether *path* is the top level of a git working copy.

        A plain directory nested inside some other repository is not a
        working copy of its own. A missing ``git`` executable raises
        ``FileNotFoundError`` instead of reading as "not a working copy".
        """
        path = Path(path)
        if not path.is_dir():
            return False
        try:
            return self._is_toplevel(path)
        except FileNotFoundError:
            if not path.is_dir():
                return False
            raise
        except (OSError, subprocess.TimeoutExpired) as exc:
            logger.debug("Could not inspect %s as a git repository: %s", path, exc)
            return False

    def _is_toplevel(self, path: Path) -> bool:
        try:
            result = run_git(
                ["rev-parse", "--show-toplevel"], cwd=path, timeout=self.timeout
            )
        except GitCommandError:
            return False
        toplevel = result.stdout.strip()
        if not toplevel:
            return False
        return Path(toplevel).resolve() == path.resolve()

    # ------------------------------------------------------------------
    # Origin remote
    # ------------------------------------------------------------------

    def lookup_origin(self, path: Path | str) -> OriginLookup:
        """Read the ``origin`` remote URL of the working copy at *path*.

        A timeout or other failure to run git reports ``ERROR``, never
        ``NOT_A_REPOSITORY``. A missing ``git`` executable raises
        ``FileNotFoundError``.
        """
        path = Path(path)
        not_a_repository = OriginLookup(
            path=path, status=OriginStatus.NOT_A_REPOSITORY
        )
        if not path.is_dir():
            logger.debug("Path is not a valid git repository: %s", path)
            return not_a_repository

        try:
            if not self._is_toplevel(path):
                logger.debug("Path is not a valid git repository: %s", path)
                return not_a_repository
            result = run_git(
                ["config", "--get", f"remote.{ORIGIN_REMOTE}.url"],
                cwd=path,
                timeout=self.timeout,
            )
        except GitCommandError as exc:
            # ``git config --get`` exits 1 when the key is unset.
            if exc.returncode == 1:
                logger.debug(
                    "No '%s' remote found for repository: %s", ORIGIN_REMOTE, path
                )
                return OriginLookup(path=path, status=OriginStatus.NO_ORIGIN)
            logger.error("Error getting git remote URL for %s: %s", path, exc)
            return OriginLookup(path=path, status=OriginStatus.ERROR, detail=str(exc))
        except FileNotFoundError:
            if not path.is_dir():
                return not_a_repository
            raise
        except (OSError, subprocess.TimeoutExpired) as exc:
            logger.error("Error getting git remote URL for %s: %s", path, exc)
            return OriginLookup(path=path, status=OriginStatus.ERROR, detail=str(exc))

        url = result.stdout.strip()
        if not url:
            return OriginLookup(path=path, status=OriginStatus.NO_ORIGIN)
        logger.debug("Found origin remote URL %s for %s", redact_sensitive(url), path)
        return OriginLookup(path=path, status=OriginStatus.FOUND, url=url)

    def read_origin_url(self, path: Path | str) -> str | None:
        """Return the ``origin`` URL of *path*, or ``None`` if unavailable."""
        return self.lookup_origin(path).url

    # ------------------------------------------------------------------
    # Clone
    # ------------------------------------------------------------------

    def clone(
        self,
        url: str,
        destination: Path | str,
        credentials: CredentialProvider | GitCredentials | None = None,
    ) -> CloneOutcome:
        """Clone *url* into *destination*.

        Args:
            url: Remote to clone from.
            destination: Directory to create; must not already exist.
            credentials: Fixed credentials, or a provider that is called
                once here to resolve them.
        """
        destination = Path(destination)
        if callable(credentials):
            credentials = credentials()
        auth_args = credentials.git_config_args(url) if credentials is not None else []

        logger.debug("Starting clone of %s to %s", redact_sensitive(url), destination)
        try:
            run_git(
                [*auth_args, "clone", url, str(destination)],
                timeout=self.clone_timeout,
            )
        except GitCommandError as exc:
            error = str(exc)
        except subprocess.TimeoutExpired:
            error = f"git clone timed out after {self.clone_timeout}s"
        except OSError as exc:
            error = f"git clone could not run: {exc}"
        else:
            logger.info("Cloned %s → %s", redact_sensitive(url), destination)
            return CloneOutcome(url=url, destination=destination, success=True)
        return CloneOutcome(
            url=url, destination=destination, success=False, error=error
        )

