"""Tests for the record cache repositories."""
import orjson
import pytest

from coverage_sync.fetch.endpoints import OrderKind
from coverage_sync.store.cache import JsonCacheRepository, SqliteCacheRepository, build_cache_repository


@pytest.mark.asyncio
async def test_json_missing_file_starts_empty_and_creates_it(tmp_path):
    path = tmp_path / "compras_cache.json"
    repo = JsonCacheRepository(path)
    assert await repo.load() == {}
    assert path.read_bytes().strip() == b"{}"


@pytest.mark.asyncio
async def test_json_keys_are_stringified_on_disk(tmp_path):
    path = tmp_path / "vendas_cache.json"
    repo = JsonCacheRepository(path)
    await repo.save({42: {"id": 42, "data": "2024-01-01"}})

    assert orjson.loads(path.read_bytes()) == {"42": {"id": 42, "data": "2024-01-01"}}
    assert await repo.load() == {42: {"id": 42, "data": "2024-01-01"}}


@pytest.mark.asyncio
async def test_json_corrupt_file_falls_back_to_empty(tmp_path):
    path = tmp_path / "vendas_cache.json"
    path.write_text("[1, 2")
    assert await JsonCacheRepository(path).load() == {}


@pytest.mark.asyncio
async def test_json_save_overwrites_snapshot(tmp_path):
    repo = JsonCacheRepository(tmp_path / "c.json")
    await repo.save({1: {"id": 1}, 2: {"id": 2}})
    await repo.save({3: {"id": 3}})
    assert await repo.load() == {3: {"id": 3}}


@pytest.mark.asyncio
async def test_sqlite_kinds_are_isolated(tmp_path):
    db = tmp_path / "cache.db"
    purchases = SqliteCacheRepository(OrderKind.PURCHASES, db)
    sales = SqliteCacheRepository(OrderKind.SALES, db)

    await purchases.save({1: {"id": 1, "categoria": {"id": 12269489770}}})
    await sales.save({1: {"id": 1, "dataSaida": "2024-01-02"}, 2: {"id": 2}})

    assert await purchases.load() == {1: {"id": 1, "categoria": {"id": 12269489770}}}
    assert sorted(await sales.load()) == [1, 2]


@pytest.mark.asyncio
async def test_sqlite_save_replaces_snapshot(tmp_path):
    repo = SqliteCacheRepository(OrderKind.SALES, tmp_path / "cache.db")
    await repo.save({1: {"id": 1}})
    await repo.save({2: {"id": 2}})
    assert await repo.load() == {2: {"id": 2}}


def test_build_cache_repository_rejects_unknown_backend():
    with pytest.raises(ValueError):
        build_cache_repository(OrderKind.SALES, "redis")
