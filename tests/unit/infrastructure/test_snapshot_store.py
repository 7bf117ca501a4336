"""Snapshot store and the offline source replaying it."""

import pytest

from ghaudit.application.exceptions import PersistenceError, SnapshotNotFoundError
from ghaudit.domain.models import AuditInput
from ghaudit.infrastructure.github.snapshot_source import SnapshotDirectorySource
from ghaudit.infrastructure.persistence.snapshot_store import SnapshotStore
from fakes import make_branch, make_repo


def _snapshot(name, owner="acme", **extra):
    return AuditInput(
        repo=make_repo(name, owner=owner, **extra),
        branches=[
            make_branch("main", protected=True, protection={"required_signatures": {"enabled": True}}),
            make_branch("dev"),
        ],
        collaborators=[{"login": "octocat", "permissions": {"admin": False}}],
        hooks=[{"id": 1, "active": True}],
        teams=[],
        timestamp=1700000000,
    )


def test_saved_snapshot_loads_back_equal(tmp_path):
    store = SnapshotStore(tmp_path)
    original = _snapshot("alpha", stargazers_count=12, topics=["a", "b"])

    path = store.save(original)
    loaded = store.load_all()

    assert path == tmp_path / "alpha.json"
    assert loaded == {"acme/alpha": original}
    assert loaded["acme/alpha"].model_dump(mode="json") == original.model_dump(mode="json")


def test_load_all_reads_nested_directories(tmp_path):
    SnapshotStore(tmp_path / "one").prepare()
    SnapshotStore(tmp_path / "one").save(_snapshot("alpha"))
    SnapshotStore(tmp_path / "two").prepare()
    SnapshotStore(tmp_path / "two").save(_snapshot("bravo", owner="other"))

    loaded = SnapshotStore(tmp_path).load_all()

    assert sorted(loaded) == ["acme/alpha", "other/bravo"]


def test_missing_directory_raises(tmp_path):
    with pytest.raises(PersistenceError):
        SnapshotStore(tmp_path / "missing").load_all()


def test_corrupt_snapshot_raises(tmp_path):
    (tmp_path / "broken.json").write_text("{not json")
    with pytest.raises(PersistenceError) as exc_info:
        SnapshotStore(tmp_path).load_all()
    assert exc_info.value.context["path"].endswith("broken.json")


async def test_offline_source_serves_persisted_snapshot(tmp_path):
    store = SnapshotStore(tmp_path)
    for name in ("charlie", "alpha", "bravo"):
        store.save(_snapshot(name))
    source = SnapshotDirectorySource.from_store(store)

    repos = await source.list_repositories("ignored")
    branches = await source.list_branches("acme", "alpha")

    assert [r.full_name for r in repos] == ["acme/alpha", "acme/bravo", "acme/charlie"]
    assert [b.name for b in branches] == ["main", "dev"]
    assert await source.get_branch_protection("acme", "alpha", "main") == {
        "required_signatures": {"enabled": True}
    }
    assert await source.list_collaborators("acme", "alpha") == [
        {"login": "octocat", "permissions": {"admin": False}}
    ]
    assert await source.list_hooks("acme", "alpha") == [{"id": 1, "active": True}]
    assert await source.list_teams("acme", "alpha") == []


async def test_offline_source_unknown_repository(tmp_path):
    source = SnapshotDirectorySource({"acme/alpha": _snapshot("alpha")})

    with pytest.raises(SnapshotNotFoundError) as exc_info:
        await source.list_hooks("acme", "zulu")
    assert exc_info.value.context["repo"] == "acme/zulu"

    with pytest.raises(SnapshotNotFoundError):
        await source.get_branch_protection("acme", "alpha", "dev")
