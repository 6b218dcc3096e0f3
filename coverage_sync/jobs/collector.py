"""Paginated collectors for purchase and sale orders."""
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Callable, Optional

from coverage_sync.config import config
from coverage_sync.fetch.client import OrderApiClient
from coverage_sync.fetch.endpoints import OrderKind
from coverage_sync.fetch.rate_limit import utc_today
from coverage_sync.parse.models import OrderRecord
from coverage_sync.store.cache import CacheRepository, RecordCache

logger = logging.getLogger(__name__)

AcceptancePredicate = Callable[[OrderRecord], bool]


def accept_category(category_id: int) -> AcceptancePredicate:
    """Purchases are kept only when ``categoria.id`` matches."""

    def predicate(record: OrderRecord) -> bool:
        return record.category_id == category_id

    return predicate


def accept_all(record: OrderRecord) -> bool:
    return True


@dataclass
class CollectorStats:
    pages: int = 0
    listed: int = 0
    cache_hits: int = 0
    details_fetched: int = 0
    added: int = 0
    rejected: int = 0
    failed: int = 0
    page_failures: int = 0

    def as_dict(self) -> dict[str, int]:
        return dict(self.__dict__)


@dataclass
class PaginatedCollector:
    """Walks listing pages and fetches details only for uncached ids."""

    kind: OrderKind
    client: OrderApiClient
    repository: CacheRepository
    accept: AcceptancePredicate = accept_all
    today: Callable[[], date] = utc_today
    stats: CollectorStats = field(default_factory=CollectorStats)

    async def collect(self, window_start: date, existing_cache: Optional[RecordCache] = None) -> RecordCache:
        """Merge new records from ``[window_start, today]`` into the cache and persist it."""
        cache = existing_cache if existing_cache is not None else await self.repository.load()
        # Frozen once so every page shares the same upper bound
        window_end = self.today()
        logger.info(
            f"Collecting {self.kind.value} from {window_start.isoformat()} to {window_end.isoformat()} "
            f"({len(cache)} cached)"
        )

        page = 1
        while True:
            result = await self.client.list_page(self.kind, page, window_start, window_end)
            if not result.ok:
                self.stats.page_failures += 1
                logger.warning(f"{self.kind.value} p.{page} unavailable ({result.error}), stopping pagination")
                break
            listing = result.value
            if not listing:
                break
            self.stats.pages += 1

            for entry in listing:
                await self._process_entry(entry, cache)
            page += 1

        await self.repository.save(cache)
        logger.info(f"Finished {self.kind.value}: {self.stats.as_dict()}")
        return cache

    async def _process_entry(self, entry: Any, cache: RecordCache) -> None:
        self.stats.listed += 1
        try:
            record_id = int(entry["id"])
        except (KeyError, TypeError, ValueError):
            logger.warning(f"Listing entry without a usable id: {entry!r}")
            return

        if record_id in cache:
            self.stats.cache_hits += 1
            return

        self.stats.details_fetched += 1
        result = await self.client.get_detail(self.kind, record_id)
        detail = result.value
        if not result.ok or not isinstance(detail, dict):
            self.stats.failed += 1
            return
        try:
            record = OrderRecord.from_payload(self.kind, detail, record_id)
        except ValueError as e:
            self.stats.failed += 1
            logger.warning(f"   unreadable {self.kind.value} {record_id}: {e}")
            return
        if not self.accept(record):
            self.stats.rejected += 1
            logger.debug(f"   rejected {self.kind.value} {record_id}")
            return

        cache[record_id] = detail
        self.stats.added += 1
        logger.info(f"   added {self.kind.value} {record_id}")


def purchase_collector(
    client: OrderApiClient,
    repository: CacheRepository,
    category_id: int = config.ACCEPTED_CATEGORY_ID,
    **kwargs,
) -> PaginatedCollector:
    return PaginatedCollector(
        kind=OrderKind.PURCHASES,
        client=client,
        repository=repository,
        accept=accept_category(category_id),
        **kwargs,
    )


def sale_collector(client: OrderApiClient, repository: CacheRepository, **kwargs) -> PaginatedCollector:
    return PaginatedCollector(kind=OrderKind.SALES, client=client, repository=repository, **kwargs)
