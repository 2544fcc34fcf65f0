from __future__ import annotations

from pathlib import Path

import pytest

from transportjf._constants import MIGRATION_MARKER_KEY
from transportjf.storage.cache import SyncCache
from transportjf.storage.migration import MigrationManager
from transportjf.storage.persistent import PersistentStore


def _legacy_cache() -> SyncCache:
    cache = SyncCache()
    cache.set_collection("users", [{"id": "1", "name": "Admin", "cedula": "12345678", "role": "admin"}])
    cache.set_collection(
        "passengers",
        [
            {"id": "p1", "name": "Ana", "cedula": "111", "gerencia": "A", "qrCode": ""},
            {"id": "p2", "name": "Luis", "cedula": "222", "gerencia": "B", "qrCode": ""},
        ],
    )
    cache.set_collection("trips", [{"id": "t1", "passengerId": "p1", "status": "finalizado"}])
    cache.set_collection("signatures", [])
    return cache


async def _id_sets(store: PersistentStore) -> dict[str, set[str]]:
    return {c: {r["id"] for r in await store.get_all(c)} for c in store.collections}


@pytest.mark.asyncio
async def test_migration_copies_legacy_collections_and_sets_marker(tmp_path: Path) -> None:
    cache = _legacy_cache()
    async with PersistentStore(str(tmp_path / "db.sqlite3")) as store:
        manager = MigrationManager(store, cache)

        assert await manager.migrate() is True
        assert manager.completed
        assert cache.get(MIGRATION_MARKER_KEY) == "true"
        ids = await _id_sets(store)
        assert ids["users"] == {"1"}
        assert ids["passengers"] == {"p1", "p2"}
        assert ids["trips"] == {"t1"}
        assert ids["signatures"] == set()


@pytest.mark.asyncio
async def test_migration_twice_equals_once(tmp_path: Path) -> None:
    cache = _legacy_cache()
    async with PersistentStore(str(tmp_path / "db.sqlite3")) as store:
        manager = MigrationManager(store, cache)
        await manager.migrate()
        after_first = await _id_sets(store)

        assert await manager.migrate() is False
        assert await _id_sets(store) == after_first


@pytest.mark.asyncio
async def test_rerun_without_marker_is_idempotent(tmp_path: Path) -> None:
    cache = _legacy_cache()
    async with PersistentStore(str(tmp_path / "db.sqlite3")) as store:
        await MigrationManager(store, cache).migrate()
        after_first = await _id_sets(store)

        cache.remove(MIGRATION_MARKER_KEY)
        assert await MigrationManager(store, cache).migrate() is True
        assert await _id_sets(store) == after_first


@pytest.mark.asyncio
async def test_failure_is_swallowed_and_retried_on_next_start(tmp_path: Path) -> None:
    cache = _legacy_cache()
    cache.set_collection(
        "conductors",
        [
            {"id": "c1", "name": "Pedro", "cedula": "900"},
            {"id": "c2", "name": "Pablo", "cedula": "900"},
        ],
    )
    async with PersistentStore(str(tmp_path / "db.sqlite3")) as store:
        manager = MigrationManager(store, cache)

        assert await manager.migrate() is False
        assert not manager.completed

        cache.set_collection(
            "conductors",
            [
                {"id": "c1", "name": "Pedro", "cedula": "900"},
                {"id": "c2", "name": "Pablo", "cedula": "901"},
            ],
        )
        assert await manager.migrate() is True
        ids = await _id_sets(store)
        assert ids["conductors"] == {"c1", "c2"}
        assert ids["passengers"] == {"p1", "p2"}


@pytest.mark.asyncio
async def test_records_without_id_are_skipped(tmp_path: Path) -> None:
    cache = SyncCache()
    cache.set_collection("signatures", [{"name": "no id"}, {"id": "s1", "type": "contratista", "name": "X", "ci": "1"}])
    async with PersistentStore(str(tmp_path / "db.sqlite3")) as store:
        assert await MigrationManager(store, cache).migrate() is True
        assert [r["id"] for r in await store.get_all("signatures")] == ["s1"]


@pytest.mark.asyncio
async def test_closed_store_does_not_raise(tmp_path: Path) -> None:
    store = PersistentStore(str(tmp_path / "db.sqlite3"))
    cache = _legacy_cache()

    assert await MigrationManager(store, cache).migrate() is False
    assert not cache.contains(MIGRATION_MARKER_KEY)
