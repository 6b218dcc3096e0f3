"""Typed views over cached Bling order payloads."""
from datetime import date, datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, Field

from coverage_sync.fetch.endpoints import OrderKind


def parse_date(value: Any) -> Optional[date]:
    """Date part of a Bling date/datetime string; None when absent or malformed."""
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        try:
            return date.fromisoformat(text[:10])
        except ValueError:
            return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc)
    return parsed.date()


class LineItem(BaseModel):
    sku: str
    quantity: Optional[int | float] = None


class OrderRecord(BaseModel):
    """The fields reconciliation needs from a purchase or sale payload."""

    id: int
    kind: OrderKind
    issued: Optional[date] = Field(default=None, description="data")
    shipped: Optional[date] = Field(default=None, description="dataSaida (sales)")
    due_dates: list[Optional[str]] = Field(default_factory=list, description="parcelas[].dataVencimento (purchases)")
    category_id: Optional[int] = Field(default=None, description="categoria.id (purchases)")
    items: list[LineItem] = Field(default_factory=list)

    @property
    def effective_date(self) -> Optional[date]:
        """Physical exit date when known, otherwise the issue date."""
        return self.shipped or self.issued

    @property
    def last_due_date(self) -> Optional[str]:
        return self.due_dates[-1] if self.due_dates else None

    def item_for(self, sku: str) -> Optional[LineItem]:
        for item in self.items:
            if item.sku == sku:
                return item
        return None

    @classmethod
    def from_payload(
        cls, kind: OrderKind, payload: dict[str, Any], record_id: Optional[int] = None
    ) -> "OrderRecord":
        items = []
        raw_items = payload.get("itens")
        if isinstance(raw_items, list):
            for raw in raw_items:
                if not isinstance(raw, dict):
                    continue
                sku = _item_sku(kind, raw)
                if sku is None:
                    continue
                items.append(LineItem(sku=sku, quantity=_number(raw.get("quantidade"))))

        due_dates = []
        parcelas = payload.get("parcelas")
        if isinstance(parcelas, list):
            due_dates = [
                p.get("dataVencimento") or None for p in parcelas
                if isinstance(p, dict)
            ]

        categoria = payload.get("categoria")
        category_id = categoria.get("id") if isinstance(categoria, dict) else None

        return cls(
            id=record_id if record_id is not None else int(payload["id"]),
            kind=kind,
            issued=parse_date(payload.get("data")),
            shipped=parse_date(payload.get("dataSaida")),
            due_dates=due_dates,
            category_id=category_id if isinstance(category_id, int) else None,
            items=items,
        )


def _item_sku(kind: OrderKind, raw: dict[str, Any]) -> Optional[str]:
    # Purchases nest the code under "produto"; sales carry it on the item
    if kind is OrderKind.PURCHASES:
        produto = raw.get("produto")
        code = produto.get("codigo") if isinstance(produto, dict) else None
    else:
        code = raw.get("codigo")
    if code is None or code == "":
        return None
    return str(code)


def _number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return value
    try:
        return float(value)
    except (TypeError, ValueError):
        return None
