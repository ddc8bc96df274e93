"""FastAPI application for app mode.

Exposes the catalog and the linker over HTTP. Launches run inline; scans,
cleanups, clones, and catalog syncs are enqueued via Celery.
"""

from __future__ import annotations

from typing import Any

from fastapi import Depends, FastAPI, HTTPException
from pydantic import BaseModel, Field

from repo_linker import __version__
from repo_linker.lib.config import Config
from repo_linker.lib.launcher import (
    LaunchKind,
    Launcher,
    ProcessLauncher,
    has_solution_file,
)
from repo_linker.lib.linker import RepositoryLinker
from repo_linker.lib.models import CatalogRepository
from repo_linker.server.celery_app import (
    celery_app,
    cleanup_links,
    clone_repository,
    scan_and_link,
    sync_catalog_task,
)
from repo_linker.server.task_result import normalize_task_result

app = FastAPI(
    title="repo_linker",
    description="Link local git working copies to a repository catalog.",
    version=__version__,
)


class RepositoryResponse(BaseModel):
    """A catalog repository and its local link."""

    id: int
    full_name: str
    owner: str
    name: str
    html_url: str
    clone_url: str
    description: str | None = None
    local_path: str | None = None

    @classmethod
    def from_repository(cls, repo: CatalogRepository) -> RepositoryResponse:
        return cls(**repo.to_dict())


class LocalPathResponse(BaseModel):
    """Linked local path of a repository."""

    id: int
    local_path: str | None = None
    has_solution_file: bool = False


class OpenRequest(BaseModel):
    """Request body for the /repositories/{id}/open endpoint."""

    kind: LaunchKind = LaunchKind.EDITOR


class OpenResponse(BaseModel):
    """Result of a launch attempt."""

    id: int
    kind: LaunchKind
    local_path: str
    launched: bool


class ScanRequest(BaseModel):
    """Request body for the /scan endpoint; blanks fall back to config."""

    owner: str | None = None
    work_folder: str | None = None


class OwnerRequest(BaseModel):
    """Request body for owner-scoped jobs (/cleanup, /catalog/sync)."""

    owner: str | None = None


class CloneRequest(BaseModel):
    """Request body for the /repositories/{id}/clone endpoint."""

    work_folder: str | None = None


class TaskResponse(BaseModel):
    """Response for an enqueued job."""

    task_id: str
    status: str
    task: str


class TaskStatus(BaseModel):
    """Response for checking task status."""

    task_id: str
    status: str
    result: dict[str, Any] | None = Field(default=None)


def get_linker() -> RepositoryLinker:
    """Build a linker from the current environment."""
    return RepositoryLinker.from_config(Config.from_env())


def get_launcher() -> Launcher:
    """Return the launcher used to open working copies."""
    return ProcessLauncher()


def _require_repository(linker: RepositoryLinker, repo_id: int) -> CatalogRepository:
    repo = linker.catalog.get_repository(repo_id)
    if repo is None:
        raise HTTPException(status_code=404, detail=f"repository {repo_id} not found")
    return repo


def _enqueued(result: Any, task: str) -> TaskResponse:
    return TaskResponse(task_id=str(result.id), status="queued", task=task)


@app.get("/health")
def health() -> dict[str, str]:
    """Liveness check."""
    return {"status": "ok"}


@app.get("/repositories", response_model=list[RepositoryResponse])
def list_repositories(
    owner: str | None = None,
    linker: RepositoryLinker = Depends(get_linker),
) -> list[RepositoryResponse]:
    owner = owner or Config.from_env().owner
    if not owner:
        raise HTTPException(status_code=400, detail="owner is required")
    return [
        RepositoryResponse.from_repository(repo)
        for repo in linker.catalog.list_repositories(owner)
    ]


@app.get("/repositories/{repo_id}", response_model=RepositoryResponse)
def get_repository(
    repo_id: int, linker: RepositoryLinker = Depends(get_linker)
) -> RepositoryResponse:
    return RepositoryResponse.from_repository(_require_repository(linker, repo_id))


@app.get("/repositories/{repo_id}/local-path", response_model=LocalPathResponse)
def get_local_path(
    repo_id: int, linker: RepositoryLinker = Depends(get_linker)
) -> LocalPathResponse:
    _require_repository(linker, repo_id)
    local_path = linker.get_local_path(repo_id)
    return LocalPathResponse(
        id=repo_id,
        local_path=local_path,
        has_solution_file=bool(local_path) and has_solution_file(local_path),
    )


@app.post("/repositories/{repo_id}/open", response_model=OpenResponse)
def open_repository(
    repo_id: int,
    req: OpenRequest,
    linker: RepositoryLinker = Depends(get_linker),
    launcher: Launcher = Depends(get_launcher),
) -> OpenResponse:
    repo = _require_repository(linker, repo_id)
    if not repo.local_path:
        raise HTTPException(
            status_code=409, detail=f"repository {repo.full_name} is not linked"
        )
    launched = launcher.launch(req.kind, repo.local_path)
    return OpenResponse(
        id=repo_id, kind=req.kind, local_path=repo.local_path, launched=launched
    )


@app.post("/repositories/{repo_id}/clone", response_model=TaskResponse)
def enqueue_clone(
    repo_id: int,
    req: CloneRequest,
    linker: RepositoryLinker = Depends(get_linker),
) -> TaskResponse:
    _require_repository(linker, repo_id)
    result = clone_repository.delay(repo_id=repo_id, work_folder=req.work_folder)
    return _enqueued(result, "clone_repository")


@app.post("/scan", response_model=TaskResponse)
def enqueue_scan(req: ScanRequest) -> TaskResponse:
    result = scan_and_link.delay(owner=req.owner, work_folder=req.work_folder)
    return _enqueued(result, "scan_and_link")


@app.post("/cleanup", response_model=TaskResponse)
def enqueue_cleanup(req: OwnerRequest) -> TaskResponse:
    result = cleanup_links.delay(owner=req.owner)
    return _enqueued(result, "cleanup_links")


@app.post("/catalog/sync", response_model=TaskResponse)
def enqueue_sync(req: OwnerRequest) -> TaskResponse:
    result = sync_catalog_task.delay(owner=req.owner)
    return _enqueued(result, "sync_catalog")


@app.get("/tasks/{task_id}", response_model=TaskStatus)
def get_task(task_id: str) -> TaskStatus:
    result = celery_app.AsyncResult(task_id)
    status = str(result.status)
    return TaskStatus(
        task_id=task_id,
        status=status,
        result=normalize_task_result(status, result.result),
    )
