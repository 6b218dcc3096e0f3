"""Bling API client gated by the rate governor and the retry wrapper."""
import logging
from datetime import date
from typing import Any, Optional

import httpx

from coverage_sync.auth.secrets import ApiCredentials
from coverage_sync.config import config
from coverage_sync.fetch import endpoints
from coverage_sync.fetch.endpoints import OrderKind
from coverage_sync.fetch.rate_limit import RateGovernor
from coverage_sync.fetch.retry import CallResult, ResilientCaller

logger = logging.getLogger(__name__)


class OrderApiClient:
    """HTTP client for the order list, order detail and stock balance endpoints."""

    def __init__(
        self,
        credentials: ApiCredentials,
        governor: RateGovernor,
        caller: ResilientCaller,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = config.TIMEOUT,
        deposit_id: str = config.DEPOSIT_ID,
    ):
        self.credentials = credentials
        self.deposit_id = deposit_id
        self.governor = governor
        self.caller = caller
        self.client = httpx.AsyncClient(
            base_url=credentials.api_base_url,
            headers={
                "Authorization": f"Bearer {credentials.access_token}",
                "Accept": "application/json",
            },
            timeout=timeout,
            transport=transport,
        )
        self.request_count = 0

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    async def aclose(self) -> None:
        await self.client.aclose()

    async def _get_json(self, path: str, params: Optional[list[tuple[str, str]]] = None) -> Any:
        self.request_count += 1
        response = await self.client.get(path, params=params)
        response.raise_for_status()
        return response.json()

    async def _call(self, description: str, path: str, params=None) -> CallResult[Any]:
        return await self.caller.execute(
            lambda: self.governor.request(lambda: self._get_json(path, params)),
            description,
        )

    async def list_page(self, kind: OrderKind, page: int, start: date, end: date) -> CallResult[list]:
        """One listing page. The value is the ``data`` list (possibly empty)."""
        params = endpoints.list_params(kind, page, start, end)
        logger.info(f"{kind.value} p.{page}: {endpoints.list_path(kind)} {start} -> {end}")
        result = await self._call(f"list {kind.value} p.{page}", endpoints.list_path(kind), params)
        if result.ok:
            result.value = _data(result.value) or []
        return result

    async def get_detail(self, kind: OrderKind, record_id: int) -> CallResult[dict]:
        logger.debug(f"   detail {kind.value} {record_id}")
        result = await self._call(f"detail {kind.value} {record_id}", endpoints.detail_path(kind, record_id))
        if result.ok:
            result.value = _data(result.value)
        return result

    async def get_balance(self, sku: str) -> CallResult[list]:
        logger.info(f"Balance for SKU {sku}")
        result = await self._call(
            f"balance {sku}",
            endpoints.balance_path(self.deposit_id),
            endpoints.balance_params(sku),
        )
        if result.ok:
            result.value = _data(result.value) or []
        return result


def _data(body: Any) -> Any:
    """Unwrap Bling's ``{"data": ...}`` envelope."""
    if isinstance(body, dict):
        return body.get("data")
    return None
