"""Celery application and task definitions.

Scans, cleanups, clones, and catalog syncs can run for a long time (deep
directory walks, network clones), so the HTTP API enqueues them here.
"""

from __future__ import annotations

import logging
import os
from typing import Any

from celery import Celery

from repo_linker.lib.config import Config
from repo_linker.lib.github import GitHubClient, sync_catalog
from repo_linker.lib.linker import RepositoryLinker

logger = logging.getLogger(__name__)


def _resolve_celery_urls() -> tuple[str, str]:
    """Resolve broker/result backend URLs with sensible env fallbacks.

    Priority order:
    1. `CELERY_BROKER_URL` / `CELERY_RESULT_BACKEND`
    2. shared `REDIS_URL`
    3. local default (`redis://localhost:6379/0`)
    """
    redis_url = os.environ.get("REDIS_URL")
    broker_url = (
        os.environ.get("CELERY_BROKER_URL") or redis_url or "redis://localhost:6379/0"
    )
    # Fall back to broker URL so polling still works when only broker is set.
    backend_url = os.environ.get("CELERY_RESULT_BACKEND") or redis_url or broker_url
    return broker_url, backend_url


_BROKER_URL, _RESULT_BACKEND_URL = _resolve_celery_urls()

celery_app = Celery(
    "repo_linker",
    broker=_BROKER_URL,
    backend=_RESULT_BACKEND_URL,
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
)


def _build_config(
    *, owner: str | None = None, work_folder: str | None = None
) -> Config:
    return Config.from_env(overrides={"owner": owner, "work_folder": work_folder})


def _require(value: str, name: str) -> str:
    if not value:
        msg = f"{name} is required"
        raise ValueError(msg)
    return value


@celery_app.task(name="repo_linker.scan_and_link")
def scan_and_link(
    owner: str | None = None, work_folder: str | None = None
) -> dict[str, Any]:
    """Scan the work folder and link working copies for *owner*."""
    config = _build_config(owner=owner, work_folder=work_folder)
    linker = RepositoryLinker.from_config(config)
    report = linker.scan_and_link(
        _require(config.work_folder, "work_folder"), _require(config.owner, "owner")
    )
    return report.to_dict()


@celery_app.task(name="repo_linker.cleanup_links")
def cleanup_links(owner: str | None = None) -> dict[str, Any]:
    """Clear invalid links for *owner*."""
    config = _build_config(owner=owner)
    owner = _require(config.owner, "owner")
    cleaned = RepositoryLinker.from_config(config).cleanup_invalid_links(owner)
    return {"owner": owner, "cleaned": cleaned}


@celery_app.task(name="repo_linker.clone_repository")
def clone_repository(repo_id: int, work_folder: str | None = None) -> dict[str, Any]:
    """Clone catalog repository *repo_id* into the work folder."""
    config = _build_config(work_folder=work_folder)
    folder = _require(config.work_folder, "work_folder")
    local_path = RepositoryLinker.from_config(config).clone_catalog_repository(
        repo_id, folder
    )
    return {"repo_id": repo_id, "local_path": local_path, "cloned": bool(local_path)}


@celery_app.task(name="repo_linker.sync_catalog")
def sync_catalog_task(owner: str | None = None) -> dict[str, Any]:
    """Refresh the catalog from GitHub for *owner*."""
    config = _build_config(owner=owner)
    owner = _require(config.owner, "owner")
    linker = RepositoryLinker.from_config(config)
    with GitHubClient(token=config.github_token) as client:
        synced = sync_catalog(client, linker.catalog, owner)
    return {"owner": owner, "synced": synced}
