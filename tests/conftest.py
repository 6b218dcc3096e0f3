"""Shared fixtures: a fake clock and a scripted Bling API."""
from datetime import date
from typing import Any, Callable

import httpx
import pytest

from coverage_sync.auth.secrets import ApiCredentials
from coverage_sync.fetch.client import OrderApiClient
from coverage_sync.fetch.rate_limit import RateGovernor
from coverage_sync.fetch.retry import ResilientCaller


class FakeClock:
    """Monotonic clock whose sleep just moves time forward."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakeBling:
    """In-memory Bling API served through httpx.MockTransport."""

    def __init__(self):
        self.listings: dict[str, list[list[dict]]] = {"compras": [], "vendas": []}
        self.details: dict[str, dict[int, dict]] = {"compras": {}, "vendas": {}}
        self.balances: dict[str, Any] = {}
        self.requests: list[httpx.Request] = []
        self.fail_paths: set[str] = set()

    def detail_calls(self, kind: str) -> list[int]:
        prefix = f"/Api/v3/pedidos/{kind}/"
        return [int(r.url.path[len(prefix):]) for r in self.requests if r.url.path.startswith(prefix)]

    def list_calls(self, kind: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path == f"/Api/v3/pedidos/{kind}"]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path in self.fail_paths:
            return httpx.Response(500, json={"error": "boom"})

        for kind in ("compras", "vendas"):
            if path == f"/Api/v3/pedidos/{kind}":
                page = int(request.url.params["pagina"])
                pages = self.listings[kind]
                data = pages[page - 1] if page <= len(pages) else []
                return httpx.Response(200, json={"data": data})
            prefix = f"/Api/v3/pedidos/{kind}/"
            if path.startswith(prefix):
                record_id = int(path[len(prefix):])
                detail = self.details[kind].get(record_id)
                if detail is None:
                    return httpx.Response(404, json={"error": "not found"})
                return httpx.Response(200, json={"data": detail})

        if path.startswith("/Api/v3/estoques/saldos/"):
            sku = request.url.params.get("codigos[]")
            if sku not in self.balances:
                return httpx.Response(200, json={"data": []})
            return httpx.Response(200, json={"data": [{"produto": {"codigo": sku}, "saldoFisicoTotal": self.balances[sku]}]})

        return httpx.Response(404, json={"error": "unknown path"})

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def bling() -> FakeBling:
    return FakeBling()


@pytest.fixture
def make_client(bling: FakeBling, clock: FakeClock) -> Callable[..., OrderApiClient]:
    def factory(max_retries: int = 2, daily_limit: int = 120_000) -> OrderApiClient:
        governor = RateGovernor(0, daily_limit, clock=clock, sleep=clock.sleep)
        caller = ResilientCaller(max_retries=max_retries, backoff=2.0, sleep=clock.sleep)
        credentials = ApiCredentials(access_token="tok", api_base_url="https://api.bling.com.br/Api/v3")
        return OrderApiClient(credentials, governor, caller, transport=bling.transport())

    return factory


def purchase(record_id: int, issued: str, sku: str, qty: Any, category_id: int = 12269489770, **extra) -> dict:
    payload = {
        "id": record_id,
        "data": issued,
        "categoria": {"id": category_id},
        "itens": [{"produto": {"codigo": sku}, "quantidade": qty}],
    }
    payload.update(extra)
    return payload


def sale(record_id: int, issued: str, sku: str, qty: Any, shipped: str | None = None) -> dict:
    payload = {"id": record_id, "data": issued, "itens": [{"codigo": sku, "quantidade": qty}]}
    if shipped is not None:
        payload["dataSaida"] = shipped
    return payload


def fixed_today(value: str) -> Callable[[], date]:
    return lambda: date.fromisoformat(value)
