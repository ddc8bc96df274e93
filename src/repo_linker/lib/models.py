"""Catalog and working-copy data types."""

from __future__ import annotations

__all__ = ["CatalogRepository", "LocalGitCopy", "ScanReport"]

from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any


@dataclass
class CatalogRepository:
    """A remotely known repository tracked by the catalog.

    ``local_path`` is the only field the linker writes; everything else is
    owned by whoever populates the catalog (e.g. a GitHub sync).
    """

    id: int
    full_name: str
    html_url: str
    clone_url: str = ""
    local_path: str | None = None
    owner: str = ""
    name: str = ""
    description: str | None = None

    def __post_init__(self) -> None:
        owner, _, name = self.full_name.partition("/")
        if not self.owner:
            self.owner = owner
        if not self.name:
            self.name = name or owner

    @property
    def is_linked(self) -> bool:
        """Return whether a local working copy is recorded."""
        return bool(self.local_path)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable dict."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CatalogRepository:
        """Build from a dict produced by :meth:`to_dict`."""
        return cls(
            id=int(data["id"]),
            full_name=str(data["full_name"]),
            html_url=str(data["html_url"]),
            clone_url=str(data.get("clone_url") or ""),
            local_path=data.get("local_path") or None,
            owner=str(data.get("owner") or ""),
            name=str(data.get("name") or ""),
            description=data.get("description"),
        )


@dataclass
class LocalGitCopy:
    """A working copy discovered during a scan."""

    metadata_dir: Path
    remote_url: str | None = None

    @property
    def root(self) -> Path:
        """Working-copy root: the parent of the ``.git`` directory."""
        return self.metadata_dir.parent


@dataclass
class ScanReport:
    """Outcome of a scan-and-link pass."""

    root_folder: str
    owner: str
    scanned: int = 0
    linked: int = 0
    skipped: int = 0
    cleaned: int = 0
    links: dict[int, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable dict (ids become string keys)."""
        data = asdict(self)
        data["links"] = {str(k): v for k, v in self.links.items()}
        return data
