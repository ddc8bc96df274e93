"""Catalog store interface and a JSON-file implementation.

The linker only needs to list repositories for an owner and read or write
a single ``local_path``. :class:`JsonCatalogStore` keeps the whole catalog
in one JSON document. Every change re-reads it and rewrites it atomically
while holding a ``FileLock`` on ``<catalog>.lock``, so separate processes
and store instances sharing one file never lose each other's writes.
"""

from __future__ import annotations

__all__ = [
    "CatalogStore",
    "CatalogUnavailableError",
    "JsonCatalogStore",
    "default_catalog_path",
]

import json
import logging
import os
import tempfile
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Protocol

from filelock import FileLock, Timeout

from repo_linker.lib.models import CatalogRepository

logger = logging.getLogger(__name__)

CATALOG_VERSION = 1
LOCK_TIMEOUT_S = 30.0


def default_catalog_path() -> Path:
    """Return the catalog file used when none is configured."""
    return Path.home() / ".repo-linker" / "catalog.json"


class CatalogUnavailableError(RuntimeError):
    """The catalog could not be read or written."""


class CatalogStore(Protocol):
    """Read/write access to the repository catalog."""

    def list_repositories(self, owner: str) -> list[CatalogRepository]: ...

    def get_repository(self, repo_id: int) -> CatalogRepository | None: ...

    def get_local_path(self, repo_id: int) -> str | None: ...

    def set_local_path(self, repo_id: int, path: str | None) -> None: ...

    def upsert_repositories(self, repos: Iterable[CatalogRepository]) -> int: ...


class JsonCatalogStore:
    """Catalog persisted as ``{"version": 1, "repositories": [...]}``.

    Repositories keep their insertion order, which is the order
    :meth:`list_repositories` returns them in.
    """

    def __init__(
        self, path: Path | str, *, lock_timeout: float = LOCK_TIMEOUT_S
    ) -> None:
        self.path = Path(path).expanduser()
        self.lock_path = self.path.with_suffix(self.path.suffix + ".lock")
        self.lock_timeout = lock_timeout

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    @contextmanager
    def _locked(self) -> Iterator[None]:
        """Hold the cross-process catalog lock for one read-modify-write."""
        lock = FileLock(str(self.lock_path), timeout=self.lock_timeout)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            lock.acquire()
        except Timeout as exc:
            msg = (
                f"Catalog at {self.path} is locked by another process "
                f"(waited {self.lock_timeout}s)"
            )
            raise CatalogUnavailableError(msg) from exc
        except OSError as exc:
            msg = f"Catalog lock {self.lock_path} could not be acquired: {exc}"
            raise CatalogUnavailableError(msg) from exc
        try:
            yield
        finally:
            lock.release()

    def _read(self) -> list[CatalogRepository]:
        if not self.path.exists():
            return []
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
            entries = raw.get("repositories", []) if isinstance(raw, dict) else None
            if not isinstance(entries, list):
                msg = "expected a 'repositories' list"
                raise ValueError(msg)
            return [CatalogRepository.from_dict(entry) for entry in entries]
        except (OSError, ValueError, KeyError, TypeError) as exc:
            msg = f"Catalog at {self.path} is unreadable: {exc}"
            raise CatalogUnavailableError(msg) from exc

    def _write(self, repos: list[CatalogRepository]) -> None:
        payload: dict[str, Any] = {
            "version": CATALOG_VERSION,
            "repositories": [repo.to_dict() for repo in repos],
        }
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", dir=self.path.parent
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    json.dump(payload, handle, indent=2)
                os.replace(tmp_name, self.path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            msg = f"Catalog at {self.path} could not be written: {exc}"
            raise CatalogUnavailableError(msg) from exc
        logger.debug("Saved catalog to %s", self.path)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_repositories(self, owner: str) -> list[CatalogRepository]:
        """Return every repository whose owner matches *owner* (any case)."""
        wanted = owner.casefold()
        return [r for r in self._read() if r.owner.casefold() == wanted]

    def get_repository(self, repo_id: int) -> CatalogRepository | None:
        """Return the repository with *repo_id*, if cataloged."""
        return next((r for r in self._read() if r.id == repo_id), None)

    def get_local_path(self, repo_id: int) -> str | None:
        """Return the linked local path of *repo_id*, if any."""
        repo = self.get_repository(repo_id)
        return repo.local_path if repo else None

    # ------------------------------------------------------------------
    # Updates
    # ------------------------------------------------------------------

    def set_local_path(self, repo_id: int, path: str | None) -> None:
        """Set or clear the linked local path of *repo_id*.

        Raises:
            KeyError: If *repo_id* is not in the catalog.
        """
        with self._locked():
            repos = self._read()
            for repo in repos:
                if repo.id == repo_id:
                    repo.local_path = path or None
                    break
            else:
                raise KeyError(repo_id)
            self._write(repos)

    def upsert_repositories(self, repos: Iterable[CatalogRepository]) -> int:
        """Insert new repositories and refresh metadata of known ones.

        An existing ``local_path`` is kept when the incoming entry has none.

        Returns:
            Number of repositories inserted or updated.
        """
        with self._locked():
            current = self._read()
            index = {repo.id: pos for pos, repo in enumerate(current)}
            count = 0
            for repo in repos:
                pos = index.get(repo.id)
                if pos is None:
                    index[repo.id] = len(current)
                    current.append(repo)
                else:
                    if repo.local_path is None:
                        repo.local_path = current[pos].local_path
                    current[pos] = repo
                count += 1
            self._write(current)
            return count
