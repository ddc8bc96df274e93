"""Tests for repo_linker.lib.catalog and repo_linker.lib.models."""

from __future__ import annotations

import json
import threading
from pathlib import Path

import pytest
from filelock import FileLock

from repo_linker.lib.catalog import CatalogUnavailableError, JsonCatalogStore
from repo_linker.lib.models import CatalogRepository, ScanReport


def _repo(repo_id: int, full_name: str, **kwargs: object) -> CatalogRepository:
    return CatalogRepository(
        id=repo_id,
        full_name=full_name,
        html_url=f"https://github.com/{full_name}",
        clone_url=f"https://github.com/{full_name}.git",
        **kwargs,  # type: ignore[arg-type]
    )


@pytest.fixture()
def store(tmp_path: Path) -> JsonCatalogStore:
    store = JsonCatalogStore(tmp_path / "catalog.json")
    store.upsert_repositories(
        [
            _repo(1, "acme/widgets"),
            _repo(2, "acme/gadgets", local_path="/work/gadgets"),
            _repo(3, "other/tools"),
        ]
    )
    return store


class TestCatalogRepository:
    def test_owner_and_name_derive_from_full_name(self) -> None:
        repo = _repo(1, "acme/widgets")
        assert repo.owner == "acme"
        assert repo.name == "widgets"
        assert repo.is_linked is False

    def test_dict_round_trip_keeps_link(self) -> None:
        repo = _repo(7, "acme/widgets", local_path="/work/widgets")
        assert CatalogRepository.from_dict(repo.to_dict()) == repo

    def test_blank_local_path_reads_as_unlinked(self) -> None:
        data = _repo(1, "acme/widgets").to_dict()
        data["local_path"] = ""
        assert CatalogRepository.from_dict(data).local_path is None


class TestScanReport:
    def test_to_dict_uses_string_keys_for_links(self) -> None:
        report = ScanReport(root_folder="/work", owner="acme", linked=1)
        report.links[5] = "/work/foo"
        assert report.to_dict()["links"] == {"5": "/work/foo"}


class TestJsonCatalogStore:
    def test_missing_file_is_an_empty_catalog(self, tmp_path: Path) -> None:
        store = JsonCatalogStore(tmp_path / "none.json")
        assert store.list_repositories("acme") == []
        assert store.get_repository(1) is None
        assert store.get_local_path(1) is None

    def test_lists_by_owner_in_insertion_order(self, store: JsonCatalogStore) -> None:
        names = [r.full_name for r in store.list_repositories("ACME")]
        assert names == ["acme/widgets", "acme/gadgets"]

    def test_set_and_clear_local_path(self, store: JsonCatalogStore) -> None:
        store.set_local_path(1, "/work/widgets")
        assert store.get_local_path(1) == "/work/widgets"

        store.set_local_path(1, None)
        assert store.get_local_path(1) is None

    def test_set_local_path_persists(
        self, store: JsonCatalogStore, tmp_path: Path
    ) -> None:
        store.set_local_path(3, "/work/tools")
        reopened = JsonCatalogStore(tmp_path / "catalog.json")
        assert reopened.get_local_path(3) == "/work/tools"

    def test_set_local_path_unknown_id(self, store: JsonCatalogStore) -> None:
        with pytest.raises(KeyError):
            store.set_local_path(99, "/x")

    def test_upsert_keeps_existing_link(self, store: JsonCatalogStore) -> None:
        refreshed = _repo(2, "acme/gadgets", description="new description")
        count = store.upsert_repositories([refreshed, _repo(4, "acme/new")])

        assert count == 2
        gadgets = store.get_repository(2)
        assert gadgets is not None
        assert gadgets.local_path == "/work/gadgets"
        assert gadgets.description == "new description"
        assert [r.id for r in store.list_repositories("acme")] == [1, 2, 4]

    def test_written_file_shape(self, store: JsonCatalogStore, tmp_path: Path) -> None:
        data = json.loads((tmp_path / "catalog.json").read_text())
        assert data["version"] == 1
        assert data["repositories"][0]["full_name"] == "acme/widgets"
        assert not list(tmp_path.glob(".catalog.json.*"))

    def test_corrupt_file_is_unavailable(self, tmp_path: Path) -> None:
        path = tmp_path / "catalog.json"
        path.write_text("{not json")
        with pytest.raises(CatalogUnavailableError, match="unreadable"):
            JsonCatalogStore(path).list_repositories("acme")

    def test_wrong_shape_is_unavailable(self, tmp_path: Path) -> None:
        path = tmp_path / "catalog.json"
        path.write_text(json.dumps({"repositories": {"id": 1}}))
        with pytest.raises(CatalogUnavailableError):
            JsonCatalogStore(path).list_repositories("acme")

    def test_separate_instances_do_not_lose_writes(self, tmp_path: Path) -> None:
        path = tmp_path / "catalog.json"
        JsonCatalogStore(path).upsert_repositories(
            [_repo(i, f"acme/repo-{i}") for i in range(40)]
        )
        errors: list[Exception] = []

        def link(ids: range) -> None:
            store = JsonCatalogStore(path)
            try:
                for repo_id in ids:
                    store.set_local_path(repo_id, f"/work/repo-{repo_id}")
            except Exception as exc:
                errors.append(exc)

        threads = [
            threading.Thread(target=link, args=(range(start, 40, 4),))
            for start in range(4)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        reopened = JsonCatalogStore(path)
        missing = [
            i for i in range(40) if reopened.get_local_path(i) != f"/work/repo-{i}"
        ]
        assert missing == []

    def test_held_lock_times_out_as_unavailable(
        self, store: JsonCatalogStore, tmp_path: Path
    ) -> None:
        blocked = JsonCatalogStore(tmp_path / "catalog.json", lock_timeout=0.05)
        with FileLock(str(tmp_path / "catalog.json.lock")):
            with pytest.raises(CatalogUnavailableError, match="locked by another"):
                blocked.set_local_path(1, "/work/widgets")
        assert store.get_local_path(1) is None

    def test_lock_file_sits_beside_catalog(self, store: JsonCatalogStore) -> None:
        assert store.lock_path.name == "catalog.json.lock"
