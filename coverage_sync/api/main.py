"""FastAPI main application: trigger and inspect sync runs."""
import asyncio
import logging
from datetime import date, datetime, timezone
from typing import Optional

from fastapi import FastAPI, HTTPException, BackgroundTasks, Depends
from fastapi.security import APIKeyHeader
from pydantic import BaseModel

from coverage_sync.config import config
from coverage_sync.fetch.endpoints import OrderKind
from coverage_sync.jobs.metrics_exporter import read_recent
from coverage_sync.jobs.runner import build_runner
from coverage_sync.store.cache import build_cache_repository
from coverage_sync.store.checkpoint import CheckpointStore

logger = logging.getLogger(__name__)

app = FastAPI(title="Coverage Sync API", version="0.1.0")

# API Key security (if configured)
API_KEY_HEADER = APIKeyHeader(name="X-API-KEY", auto_error=False)

_run_lock = asyncio.Lock()


def verify_api_key(api_key: Optional[str] = Depends(API_KEY_HEADER)) -> bool:
    """Verify API key if configured."""
    if config.API_KEY:
        if not api_key or api_key != config.API_KEY:
            raise HTTPException(status_code=403, detail="Invalid API key")
    return True


class RunRequest(BaseModel):
    """Request model for triggering a run."""
    dry_run: bool = False
    since: Optional[date] = None


class RunResponse(BaseModel):
    status: str
    message: str


class StatusResponse(BaseModel):
    last_run: str
    running: bool
    cached_purchases: int
    cached_sales: int


@app.get("/health")
async def health():
    """Health check endpoint (no auth required)."""
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "running": _run_lock.locked(),
    }


@app.get("/status", response_model=StatusResponse)
async def status(_: bool = Depends(verify_api_key)):
    """Local checkpoint and cache sizes."""
    last_run = await CheckpointStore().load()
    purchases = await build_cache_repository(OrderKind.PURCHASES, config.CACHE_BACKEND).load()
    sales = await build_cache_repository(OrderKind.SALES, config.CACHE_BACKEND).load()
    return StatusResponse(
        last_run=last_run.isoformat(),
        running=_run_lock.locked(),
        cached_purchases=len(purchases),
        cached_sales=len(sales),
    )


@app.get("/metrics")
async def get_metrics(_: bool = Depends(verify_api_key)):
    """Last 100 exported run summaries."""
    return {"metrics": read_recent()}


async def _run_in_background(dry_run: bool, since: Optional[date]) -> None:
    async with _run_lock:
        try:
            runner = build_runner(dry_run=dry_run, since=since)
            await runner.run()
        except Exception as e:
            logger.error(f"Background run failed: {e}", exc_info=True)


@app.post("/run", response_model=RunResponse, status_code=202)
async def trigger_run(
    request: RunRequest,
    background_tasks: BackgroundTasks,
    _: bool = Depends(verify_api_key),
):
    """Schedule one sync cycle; only one may run at a time."""
    if _run_lock.locked():
        raise HTTPException(status_code=409, detail="A run is already in progress")
    background_tasks.add_task(_run_in_background, request.dry_run, request.since)
    return RunResponse(status="scheduled", message="Sync run scheduled")
