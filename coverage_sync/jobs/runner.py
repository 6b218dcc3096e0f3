"""Main job runner orchestrating one incremental sync cycle."""
import logging
import uuid
from datetime import date
from enum import Enum
from typing import Callable, Optional

import httpx

from coverage_sync.auth.secrets import SecretStore, build_secret_store, load_credentials
from coverage_sync.config import config
from coverage_sync.fetch.client import OrderApiClient
from coverage_sync.fetch.endpoints import OrderKind
from coverage_sync.fetch.rate_limit import RateGovernor, utc_today
from coverage_sync.fetch.retry import ResilientCaller
from coverage_sync.jobs.collector import purchase_collector, sale_collector
from coverage_sync.jobs.metrics import Metrics
from coverage_sync.jobs.metrics_exporter import MetricsExporter
from coverage_sync.jobs.reconcile import BalanceLookup, reconcile
from coverage_sync.store.blob import SupabaseBlobStore
from coverage_sync.store.cache import CacheRepository, build_cache_repository
from coverage_sync.store.checkpoint import CheckpointStore
from coverage_sync.store.sheets import GoogleSheetsStore, LocalSheetStore, TabularStore

logger = logging.getLogger(__name__)


class RunState(str, Enum):
    IDLE = "idle"
    CHECKPOINT_LOADED = "checkpoint_loaded"
    COLLECTING_PURCHASES = "collecting_purchases"
    COLLECTING_SALES = "collecting_sales"
    RECONCILING = "reconciling"
    WRITING = "writing"
    CHECKPOINT_ADVANCED = "checkpoint_advanced"
    FAILED = "failed"


class SyncRunner:
    """Checkpoint -> collect purchases -> collect sales -> reconcile -> write -> advance.

    Any exception moves the run to FAILED and is re-raised; the checkpoint
    only advances after the rows were written.
    """

    def __init__(
        self,
        secret_store: SecretStore,
        tabular_store: TabularStore,
        checkpoint_store: CheckpointStore,
        purchase_repository: CacheRepository,
        sale_repository: CacheRepository,
        sheet_id: str = config.SHEET_ID,
        sheet_range: str = config.SHEET_RANGE,
        dry_run: bool = False,
        since: Optional[date] = None,
        governor: Optional[RateGovernor] = None,
        caller: Optional[ResilientCaller] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        today: Callable[[], date] = utc_today,
        metrics_exporter: Optional[MetricsExporter] = None,
    ):
        self.secret_store = secret_store
        self.tabular_store = tabular_store
        self.checkpoint_store = checkpoint_store
        self.purchase_repository = purchase_repository
        self.sale_repository = sale_repository
        self.sheet_id = sheet_id
        self.sheet_range = sheet_range
        self.dry_run = dry_run
        self.since = since
        self.governor = governor or RateGovernor(config.min_interval_ms(), config.DAILY_LIMIT)
        self.caller = caller or ResilientCaller(config.MAX_RETRIES, config.RETRY_BACKOFF)
        self.transport = transport
        self.today = today

        self.run_id = str(uuid.uuid4())
        logger.info(f"Run ID: {self.run_id}")
        self.metrics = Metrics()
        self.metrics_exporter = metrics_exporter or MetricsExporter(self.run_id)
        self.state = RunState.IDLE
        self.history: list[RunState] = [RunState.IDLE]

    def _enter(self, state: RunState) -> None:
        logger.debug(f"State: {self.state.value} -> {state.value}")
        self.state = state
        self.history.append(state)

    async def run(self) -> RunState:
        client: Optional[OrderApiClient] = None
        try:
            checkpoint = await self.checkpoint_store.load()
            self._enter(RunState.CHECKPOINT_LOADED)
            window_start = self.since or checkpoint
            logger.info(f"Starting collection since {window_start.isoformat()}")

            credentials = await load_credentials(self.secret_store)
            rows = await self.tabular_store.get_range(self.sheet_id, self.sheet_range)
            logger.info(f"Tracking {max(len(rows) - 1, 0)} SKUs")

            client = OrderApiClient(credentials, self.governor, self.caller, transport=self.transport)

            self._enter(RunState.COLLECTING_PURCHASES)
            purchases = purchase_collector(client, self.purchase_repository, today=self.today)
            purchase_cache = await purchases.collect(window_start, await self.purchase_repository.load())
            self.metrics.merge(OrderKind.PURCHASES.value, purchases.stats.as_dict())

            self._enter(RunState.COLLECTING_SALES)
            sales = sale_collector(client, self.sale_repository, today=self.today)
            sale_cache = await sales.collect(window_start, await self.sale_repository.load())
            self.metrics.merge(OrderKind.SALES.value, sales.stats.as_dict())

            self._enter(RunState.RECONCILING)
            balances = BalanceLookup(client)
            updated = await reconcile(rows, purchase_cache, sale_cache, window_start, balances.balance_of)
            self.metrics.increment("skus_reconciled", updated)

            self._enter(RunState.WRITING)
            if self.dry_run:
                logger.info("DRY-RUN: skipping sheet write and checkpoint advance")
            else:
                await self.tabular_store.update_range(self.sheet_id, self.sheet_range, rows)
                await self.checkpoint_store.advance(self.today())
                self._enter(RunState.CHECKPOINT_ADVANCED)

            self._enter(RunState.IDLE)
            return self.state
        except Exception as e:
            self._enter(RunState.FAILED)
            logger.error(f"Run failed: {e}")
            raise
        finally:
            if client is not None:
                self.metrics.increment("api_calls", client.request_count)
                await client.aclose()
            close = getattr(self.tabular_store, "aclose", None)
            if close is not None:
                await close()
            self.metrics.increment("failed_calls", self.caller.failed_calls)
            await self._final_report()

    async def _final_report(self) -> None:
        """Log and export the run summary."""
        logger.info("=" * 60)
        logger.info("FINAL REPORT")
        logger.info(f"Run ID: {self.run_id}")
        logger.info(f"State: {self.state.value}")
        logger.info(f"Elapsed: {self.metrics.elapsed():.1f}s")
        self.metrics.report()
        if self.state is not RunState.FAILED and not self.dry_run:
            logger.info(f"Next lastRun = {self.checkpoint_store.metadata.get('lastRun')}")
        logger.info("=" * 60)
        await self.metrics_exporter.export_metrics(self.state.value, self.metrics.get_summary())


def build_runner(
    dev_mode: bool = False,
    dry_run: bool = False,
    since: Optional[date] = None,
    cache_backend: Optional[str] = None,
) -> SyncRunner:
    """Wire a runner from configuration."""
    backend = cache_backend or config.CACHE_BACKEND
    tabular_store: TabularStore = LocalSheetStore() if dev_mode else GoogleSheetsStore()
    blob_store = SupabaseBlobStore() if config.has_supabase() and not dev_mode else None
    if blob_store is None:
        logger.info("No remote checkpoint store configured, using local metadata only")

    return SyncRunner(
        secret_store=build_secret_store(),
        tabular_store=tabular_store,
        checkpoint_store=CheckpointStore(blob_store=blob_store),
        purchase_repository=build_cache_repository(OrderKind.PURCHASES, backend),
        sale_repository=build_cache_repository(OrderKind.SALES, backend),
        dry_run=dry_run,
        since=since,
    )
