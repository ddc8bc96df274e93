"""Tests for the FastAPI app."""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

pytest.importorskip("fastapi")
pytest.importorskip("celery")
from fastapi.testclient import TestClient

import repo_linker.lib.config as config_module
from repo_linker.lib.catalog import JsonCatalogStore
from repo_linker.lib.launcher import LaunchKind
from repo_linker.lib.linker import RepositoryLinker
from repo_linker.lib.models import CatalogRepository
from repo_linker.server.app import app, get_launcher, get_linker


@pytest.fixture()
def store(tmp_path: Path) -> JsonCatalogStore:
    store = JsonCatalogStore(tmp_path / "catalog.json")
    store.upsert_repositories(
        [
            CatalogRepository(
                id=1,
                full_name="acme/widgets",
                html_url="https://github.com/acme/widgets",
                clone_url="https://github.com/acme/widgets.git",
                local_path=str(tmp_path),
            ),
            CatalogRepository(
                id=2,
                full_name="acme/gadgets",
                html_url="https://github.com/acme/gadgets",
                clone_url="https://github.com/acme/gadgets.git",
            ),
        ]
    )
    return store


@pytest.fixture()
def launcher() -> MagicMock:
    launcher = MagicMock()
    launcher.launch.return_value = True
    return launcher


@pytest.fixture()
def client(
    store: JsonCatalogStore,
    launcher: MagicMock,
    monkeypatch: pytest.MonkeyPatch,
) -> Iterator[TestClient]:
    monkeypatch.delenv("REPO_LINKER_OWNER", raising=False)
    monkeypatch.setattr(config_module, "load_dotenv", None)
    app.dependency_overrides[get_linker] = lambda: RepositoryLinker(
        store, git=MagicMock()
    )
    app.dependency_overrides[get_launcher] = lambda: launcher
    yield TestClient(app)
    app.dependency_overrides.clear()


def _fake_delay(captured: dict[str, object], task_id: str):
    def fake_delay(**kwargs: object) -> SimpleNamespace:
        captured.update(kwargs)
        return SimpleNamespace(id=task_id)

    return fake_delay


class TestCatalogEndpoints:
    def test_health(self, client: TestClient) -> None:
        assert client.get("/health").json() == {"status": "ok"}

    def test_list_repositories(self, client: TestClient, tmp_path: Path) -> None:
        response = client.get("/repositories", params={"owner": "acme"})

        assert response.status_code == 200
        body = response.json()
        assert [r["full_name"] for r in body] == ["acme/widgets", "acme/gadgets"]
        assert body[0]["local_path"] == str(tmp_path)
        assert body[1]["local_path"] is None

    def test_list_owner_from_env(
        self, client: TestClient, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("REPO_LINKER_OWNER", "acme")
        assert len(client.get("/repositories").json()) == 2

    def test_list_without_owner(self, client: TestClient) -> None:
        assert client.get("/repositories").status_code == 400

    def test_get_repository(self, client: TestClient) -> None:
        response = client.get("/repositories/2")
        assert response.status_code == 200
        assert response.json()["name"] == "gadgets"

    def test_unknown_repository(self, client: TestClient) -> None:
        assert client.get("/repositories/99").status_code == 404
        assert client.get("/repositories/99/local-path").status_code == 404

    def test_local_path(self, client: TestClient, tmp_path: Path) -> None:
        assert client.get("/repositories/1/local-path").json() == {
            "id": 1,
            "local_path": str(tmp_path),
            "has_solution_file": False,
        }
        assert client.get("/repositories/2/local-path").json() == {
            "id": 2,
            "local_path": None,
            "has_solution_file": False,
        }

    def test_local_path_reports_solution_file(
        self, client: TestClient, tmp_path: Path
    ) -> None:
        (tmp_path / "src").mkdir()
        (tmp_path / "src" / "Widgets.sln").write_text("")

        body = client.get("/repositories/1/local-path").json()

        assert body["has_solution_file"] is True


class TestOpenEndpoint:
    def test_open_launches(
        self, client: TestClient, launcher: MagicMock, tmp_path: Path
    ) -> None:
        response = client.post("/repositories/1/open", json={"kind": "terminal"})

        assert response.status_code == 200
        assert response.json() == {
            "id": 1,
            "kind": "terminal",
            "local_path": str(tmp_path),
            "launched": True,
        }
        launcher.launch.assert_called_once_with(LaunchKind.TERMINAL, str(tmp_path))

    def test_open_defaults_to_editor(
        self, client: TestClient, launcher: MagicMock
    ) -> None:
        client.post("/repositories/1/open", json={})
        assert launcher.launch.call_args.args[0] is LaunchKind.EDITOR

    def test_open_reports_failed_launch(
        self, client: TestClient, launcher: MagicMock
    ) -> None:
        launcher.launch.return_value = False
        response = client.post("/repositories/1/open", json={"kind": "ide"})
        assert response.json()["launched"] is False

    def test_open_unlinked_conflicts(
        self, client: TestClient, launcher: MagicMock
    ) -> None:
        response = client.post("/repositories/2/open", json={})
        assert response.status_code == 409
        launcher.launch.assert_not_called()

    def test_open_rejects_unknown_kind(self, client: TestClient) -> None:
        response = client.post("/repositories/1/open", json={"kind": "browser"})
        assert response.status_code == 422


class TestJobEndpoints:
    def test_scan_enqueues(
        self, client: TestClient, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        captured: dict[str, object] = {}
        monkeypatch.setattr(
            "repo_linker.server.app.scan_and_link.delay",
            _fake_delay(captured, "task-scan"),
        )

        response = client.post("/scan", json={"owner": "acme", "work_folder": "/w"})

        assert response.json() == {
            "task_id": "task-scan",
            "status": "queued",
            "task": "scan_and_link",
        }
        assert captured == {"owner": "acme", "work_folder": "/w"}

    def test_cleanup_enqueues(
        self, client: TestClient, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        captured: dict[str, object] = {}
        monkeypatch.setattr(
            "repo_linker.server.app.cleanup_links.delay",
            _fake_delay(captured, "task-cleanup"),
        )

        response = client.post("/cleanup", json={})

        assert response.json()["task"] == "cleanup_links"
        assert captured == {"owner": None}

    def test_sync_enqueues(
        self, client: TestClient, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        captured: dict[str, object] = {}
        monkeypatch.setattr(
            "repo_linker.server.app.sync_catalog_task.delay",
            _fake_delay(captured, "task-sync"),
        )

        response = client.post("/catalog/sync", json={"owner": "acme"})

        assert response.json()["task_id"] == "task-sync"
        assert captured == {"owner": "acme"}

    def test_clone_enqueues_known_repository(
        self, client: TestClient, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        captured: dict[str, object] = {}
        monkeypatch.setattr(
            "repo_linker.server.app.clone_repository.delay",
            _fake_delay(captured, "task-clone"),
        )

        response = client.post("/repositories/2/clone", json={"work_folder": "/w"})

        assert response.json()["task"] == "clone_repository"
        assert captured == {"repo_id": 2, "work_folder": "/w"}

    def test_clone_unknown_repository(
        self, client: TestClient, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        delay = MagicMock()
        monkeypatch.setattr("repo_linker.server.app.clone_repository.delay", delay)
        assert client.post("/repositories/99/clone", json={}).status_code == 404
        delay.assert_not_called()

    def test_task_status(
        self, client: TestClient, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        fake = SimpleNamespace(status="FAILURE", result=RuntimeError("boom"))
        monkeypatch.setattr(
            "repo_linker.server.app.celery_app.AsyncResult", lambda task_id: fake
        )

        response = client.get("/tasks/task-1")

        assert response.json() == {
            "task_id": "task-1",
            "status": "FAILURE",
            "result": {
                "error": "boom",
                "error_type": "RuntimeError",
                "status": "FAILURE",
            },
        }
