"""Configuration loading: CLI flags → env vars → .env files → defaults."""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path

from repo_linker.lib.catalog import default_catalog_path

logger = logging.getLogger(__name__)

_OWNER_PATTERN = re.compile(r"^[A-Za-z0-9._-]+$")
_TRUTHY = ("1", "true", "yes")

try:
    from dotenv import load_dotenv
except ImportError:  # pragma: no cover - optional dependency safety
    load_dotenv = None  # type: ignore[assignment]

ConfigValue = str | bool | None


def _validate_owner(owner: str) -> None:
    """Validate owner format: empty, or a bare GitHub login/org name."""
    if not owner or _OWNER_PATTERN.match(owner):
        return
    msg = (
        f"Invalid owner '{owner}': must be a GitHub user or organization name. "
        "Example: acme"
    )
    raise ValueError(msg)


def _validate_work_folder(work_folder: str) -> None:
    """Warn if the configured work folder is missing; scans skip it anyway."""
    if work_folder and not Path(work_folder).expanduser().is_dir():
        logger.warning("Work folder '%s' does not exist", work_folder)


def _load_env_files(work_folder: str | None = None) -> None:
    """Load dotenv files from cwd and the work folder (if available)."""
    if load_dotenv is None:
        return

    load_dotenv(Path.cwd() / ".env", override=False)
    if work_folder:
        folder = Path(work_folder).expanduser()
        if folder.is_dir():
            load_dotenv(folder / ".env", override=False)


def _env_token() -> str:
    return os.environ.get("GITHUB_TOKEN", os.environ.get("GH_TOKEN", "")).strip()


@dataclass(frozen=True)
class Config:
    """Immutable application configuration."""

    work_folder: str = ""
    owner: str = ""
    catalog_path: Path = field(default_factory=default_catalog_path)
    github_token: str = field(default="", repr=False)
    verbose: bool = False

    def __post_init__(self) -> None:
        """Validate config fields on creation.

        ``owner`` must be empty or a bare GitHub login; a missing
        ``work_folder`` only logs a warning.
        """
        _validate_owner(self.owner)
        _validate_work_folder(self.work_folder)

    @property
    def has_token(self) -> bool:
        """Return whether an access token is configured."""
        return bool(self.github_token)

    @classmethod
    def from_env(cls, overrides: dict[str, ConfigValue] | None = None) -> Config:
        """Build config from environment variables, then apply overrides.

        Priority: overrides (CLI flags) > env vars > defaults.
        """
        folder_override = overrides.get("work_folder") if overrides else None
        _load_env_files(folder_override if isinstance(folder_override, str) else None)

        env_values: dict[str, ConfigValue] = {
            "work_folder": os.environ.get("REPO_LINKER_WORK_FOLDER"),
            "owner": os.environ.get("REPO_LINKER_OWNER"),
            "catalog_path": os.environ.get("REPO_LINKER_CATALOG"),
            "github_token": _env_token(),
            "verbose": os.environ.get("REPO_LINKER_VERBOSE", "").lower() in _TRUTHY,
        }

        merged = {k: v for k, v in env_values.items() if v}
        if overrides:
            merged.update({k: v for k, v in overrides.items() if v is not None})

        raw_catalog = merged.get("catalog_path")
        catalog_path = (
            Path(str(raw_catalog)).expanduser()
            if raw_catalog
            else default_catalog_path()
        )
        return cls(
            work_folder=str(merged.get("work_folder", cls.work_folder)),
            owner=str(merged.get("owner", cls.owner)),
            catalog_path=catalog_path,
            github_token=str(merged.get("github_token", "")),
            verbose=bool(merged.get("verbose", cls.verbose)),
        )
