"""Reconciliation of cached orders against the tracked SKU rows."""
import logging
from datetime import date
from typing import Any, Awaitable, Callable, Iterable, Optional

from coverage_sync.fetch.client import OrderApiClient
from coverage_sync.fetch.endpoints import OrderKind
from coverage_sync.parse.models import OrderRecord, parse_date
from coverage_sync.store.cache import RecordCache

logger = logging.getLogger(__name__)

# Column layout of the tracked range (A:G)
COL_SKU = 0
COL_LAST_PURCHASE = 1
COL_LAST_SALE = 2
COL_DUE_DATE = 3
COL_PURCHASE_QTY = 4
COL_BALANCE = 5
COL_SOLD_QTY = 6
ROW_WIDTH = 7

BalanceFn = Callable[[str], Awaitable[Any]]


class BalanceLookup:
    """Live stock balance per SKU; never cached."""

    def __init__(self, client: OrderApiClient):
        self.client = client

    async def balance_of(self, sku: str) -> Any:
        result = await self.client.get_balance(sku)
        if not result.ok or not result.value:
            return 0
        first = result.value[0]
        if not isinstance(first, dict):
            return 0
        return first.get("saldoFisicoTotal") or 0


def to_records(kind: OrderKind, cache: RecordCache) -> list[OrderRecord]:
    records = []
    for record_id, payload in cache.items():
        if not isinstance(payload, dict):
            continue
        try:
            records.append(OrderRecord.from_payload(kind, payload, record_id=record_id))
        except (ValueError, TypeError) as e:
            logger.warning(f"Skipping malformed cached {kind.value} {record_id}: {e}")
    return records


def last_purchase(purchases: Iterable[OrderRecord], sku: str) -> Optional[OrderRecord]:
    candidates = [p for p in purchases if p.issued is not None and p.item_for(sku) is not None]
    return max(candidates, key=lambda p: p.issued, default=None)


def sales_since(sales: Iterable[OrderRecord], sku: str, since: date) -> list[OrderRecord]:
    return [
        s for s in sales
        if s.item_for(sku) is not None
        and s.effective_date is not None
        and s.effective_date >= since
    ]


def pad_row(row: list[Any]) -> list[Any]:
    if len(row) < ROW_WIDTH:
        row.extend([""] * (ROW_WIDTH - len(row)))
    return row


async def reconcile_row(
    row: list[Any],
    purchases: list[OrderRecord],
    sales: list[OrderRecord],
    checkpoint: date,
    balance_of: BalanceFn,
) -> None:
    """Update one tracked row in place; cells without new evidence keep their value."""
    pad_row(row)
    sku = str(row[COL_SKU]).strip()

    purchase = last_purchase(purchases, sku)
    if purchase is not None:
        row[COL_LAST_PURCHASE] = purchase.issued.isoformat()
        if purchase.last_due_date:
            row[COL_DUE_DATE] = purchase.last_due_date
        quantity = purchase.item_for(sku).quantity
        if quantity is not None:
            row[COL_PURCHASE_QTY] = quantity

    since = parse_date(row[COL_LAST_PURCHASE]) or checkpoint
    matching = sales_since(sales, sku, since)
    if matching:
        latest = max(matching, key=lambda s: s.effective_date)
        if latest.shipped is not None:
            row[COL_LAST_SALE] = latest.shipped.isoformat()
        row[COL_SOLD_QTY] = sum(s.item_for(sku).quantity or 0 for s in matching)

    row[COL_BALANCE] = await balance_of(sku)


async def reconcile(
    rows: list[list[Any]],
    purchase_cache: RecordCache,
    sale_cache: RecordCache,
    checkpoint: date,
    balance_of: BalanceFn,
) -> int:
    """Reconcile every tracked row (``rows[0]`` is the header). Returns rows updated."""
    purchases = to_records(OrderKind.PURCHASES, purchase_cache)
    sales = to_records(OrderKind.SALES, sale_cache)
    logger.info(
        f"Reconciling {max(len(rows) - 1, 0)} SKUs against "
        f"{len(purchases)} purchases and {len(sales)} sales since {checkpoint.isoformat()}"
    )

    updated = 0
    for row in rows[1:]:
        if not row or not str(row[COL_SKU]).strip():
            logger.debug("Skipping row without SKU")
            continue
        await reconcile_row(row, purchases, sales, checkpoint, balance_of)
        updated += 1
    return updated
