"""Record cache repositories: id -> full order payload, saved as whole snapshots."""
import logging
from pathlib import Path
from typing import Any, Protocol

import aiofiles
import aiosqlite
import orjson

from coverage_sync.config import CACHE_DB, PURCHASE_CACHE_PATH, SALE_CACHE_PATH
from coverage_sync.fetch.endpoints import OrderKind

logger = logging.getLogger(__name__)

RecordCache = dict[int, dict[str, Any]]


class CacheRepository(Protocol):
    async def load(self) -> RecordCache: ...

    async def save(self, cache: RecordCache) -> None: ...


class JsonCacheRepository:
    """One JSON object per record kind, keyed by the stringified id."""

    def __init__(self, path: Path):
        self.path = Path(path)

    async def load(self) -> RecordCache:
        if not self.path.exists():
            logger.info(f"No cache at {self.path}, starting empty")
            await self.save({})
            return {}
        try:
            async with aiofiles.open(self.path, "rb") as f:
                raw = orjson.loads(await f.read())
            if not isinstance(raw, dict):
                raise ValueError(f"expected an object, got {type(raw).__name__}")
            cache = {int(key): value for key, value in raw.items()}
        except ValueError as e:
            logger.warning(f"Corrupt cache {self.path} ({e}), starting empty")
            return {}
        logger.info(f"Loaded {len(cache)} cached records from {self.path}")
        return cache

    async def save(self, cache: RecordCache) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        data = orjson.dumps(
            {str(key): value for key, value in cache.items()},
            option=orjson.OPT_INDENT_2,
        )
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        async with aiofiles.open(tmp_path, "wb") as f:
            await f.write(data)
        tmp_path.replace(self.path)
        logger.info(f"Saved {len(cache)} records to {self.path}")


class SqliteCacheRepository:
    """SQLite-backed cache; one table shared by both record kinds."""

    def __init__(self, kind: OrderKind, db_path: Path = CACHE_DB):
        self.kind = kind
        self.db_path = Path(db_path)

    async def _initialize(self, db: aiosqlite.Connection) -> None:
        await db.execute(
            """
            CREATE TABLE IF NOT EXISTS record_cache (
                kind TEXT NOT NULL,
                id INTEGER NOT NULL,
                payload TEXT NOT NULL,
                PRIMARY KEY (kind, id)
            )
            """
        )

    async def load(self) -> RecordCache:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        cache: RecordCache = {}
        async with aiosqlite.connect(self.db_path) as db:
            await self._initialize(db)
            cursor = await db.execute(
                "SELECT id, payload FROM record_cache WHERE kind = ?",
                (self.kind.value,),
            )
            for record_id, payload in await cursor.fetchall():
                try:
                    cache[record_id] = orjson.loads(payload)
                except orjson.JSONDecodeError:
                    logger.warning(f"Skipping corrupt cached {self.kind.value} record {record_id}")
            await db.commit()
        logger.info(f"Loaded {len(cache)} cached {self.kind.value} records from {self.db_path}")
        return cache

    async def save(self, cache: RecordCache) -> None:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(self.db_path) as db:
            await self._initialize(db)
            await db.execute("DELETE FROM record_cache WHERE kind = ?", (self.kind.value,))
            await db.executemany(
                "INSERT INTO record_cache (kind, id, payload) VALUES (?, ?, ?)",
                [
                    (self.kind.value, record_id, orjson.dumps(payload).decode())
                    for record_id, payload in cache.items()
                ],
            )
            await db.commit()
        logger.info(f"Saved {len(cache)} {self.kind.value} records to {self.db_path}")


def build_cache_repository(kind: OrderKind, backend: str = "json") -> CacheRepository:
    if backend == "sqlite":
        return SqliteCacheRepository(kind)
    if backend == "json":
        path = PURCHASE_CACHE_PATH if kind is OrderKind.PURCHASES else SALE_CACHE_PATH
        return JsonCacheRepository(path)
    raise ValueError(f"Unknown cache backend: {backend}")
