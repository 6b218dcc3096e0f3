"""Path and query builders for the Bling v3 endpoints we use."""
from datetime import date
from enum import Enum

from coverage_sync.config import config


class OrderKind(str, Enum):
    PURCHASES = "compras"
    SALES = "vendas"


def list_path(kind: OrderKind) -> str:
    return f"/pedidos/{kind.value}"


def detail_path(kind: OrderKind, record_id: int) -> str:
    return f"/pedidos/{kind.value}/{record_id}"


def balance_path(deposit_id: str = config.DEPOSIT_ID) -> str:
    return f"/estoques/saldos/{deposit_id}"


def list_params(
    kind: OrderKind,
    page: int,
    start: date,
    end: date,
    page_size: int = config.PAGE_SIZE,
) -> list[tuple[str, str]]:
    """Query for one listing page; the status filter depends on the kind."""
    params = [("pagina", str(page)), ("limite", str(page_size))]
    if kind is OrderKind.PURCHASES:
        params.append(("valorSituacao", config.PURCHASE_STATUS))
    else:
        params.append(("idsSituacoes[]", config.SALE_STATUS))
    params.append(("dataInicial", start.isoformat()))
    params.append(("dataFinal", end.isoformat()))
    return params


def balance_params(sku: str) -> list[tuple[str, str]]:
    return [("codigos[]", sku)]
