"""Tests for the reconciliation pass."""
from datetime import date

import pytest

from coverage_sync.fetch.endpoints import OrderKind
from coverage_sync.jobs.reconcile import (
    BalanceLookup,
    last_purchase,
    reconcile,
    reconcile_row,
    to_records,
)

from conftest import purchase, sale

HEADER = ["SKU", "Ult. compra", "Ult. venda", "Vencimento", "Qtd compra", "Saldo", "Vendido"]


def balances(values=None):
    values = values or {}

    async def balance_of(sku):
        return values.get(sku, 0)

    return balance_of


@pytest.mark.asyncio
async def test_example_purchase_and_sale():
    rows = [HEADER, ["X"]]
    purchases = {1: purchase(1, "2024-01-10", "X", 5)}
    sales = {2: sale(2, "2024-01-30", "X", 2, shipped="2024-02-01")}

    updated = await reconcile(rows, purchases, sales, date(2024, 1, 1), balances({"X": 7}))

    assert updated == 1
    row = rows[1]
    assert row[1] == "2024-01-10"
    assert row[4] == 5
    assert row[2] == "2024-02-01"
    assert row[6] == 2
    assert row[5] == 7


@pytest.mark.asyncio
async def test_latest_purchase_wins_and_due_date_from_last_installment():
    rows = [HEADER, ["X", "", "", "", "", "", ""]]
    purchases = {
        1: purchase(1, "2024-01-10 00:00:00", "X", 5),
        2: purchase(
            2,
            "2024-03-02",
            "X",
            8,
            parcelas=[{"dataVencimento": "2024-04-01"}, {"dataVencimento": "2024-05-01"}],
        ),
    }
    await reconcile(rows, purchases, {}, date(2024, 1, 1), balances())
    assert rows[1][1] == "2024-03-02"
    assert rows[1][3] == "2024-05-01"
    assert rows[1][4] == 8


@pytest.mark.asyncio
async def test_missing_due_dates_keep_prior_value():
    rows = [HEADER, ["X", "2023-01-01", "", "2023-02-01", 3, 0, ""]]
    await reconcile(rows, {1: purchase(1, "2024-01-10", "X", 5)}, {}, date(2024, 1, 1), balances())
    assert rows[1][3] == "2023-02-01"


@pytest.mark.asyncio
async def test_no_matching_sale_preserves_prior_values():
    rows = [HEADER, ["X", "", "2023-11-20", "", "", "", 4]]
    sales = {
        1: sale(1, "2023-12-01", "X", 3, shipped="2023-12-02"),
        2: sale(2, "2024-01-20", "OTHER", 9, shipped="2024-01-21"),
    }
    await reconcile(rows, {}, sales, date(2024, 1, 1), balances())
    assert rows[1][2] == "2023-11-20"
    assert rows[1][6] == 4


@pytest.mark.asyncio
async def test_sales_window_starts_at_last_purchase():
    rows = [HEADER, ["X"]]
    purchases = {1: purchase(1, "2024-02-01", "X", 10)}
    sales = {
        1: sale(1, "2024-01-15", "X", 4, shipped="2024-01-16"),
        2: sale(2, "2024-02-03", "X", 1, shipped="2024-02-05"),
        3: sale(3, "2024-02-10", "X", 2, shipped="2024-02-12"),
    }
    await reconcile(rows, purchases, sales, date(2024, 1, 1), balances())
    assert rows[1][2] == "2024-02-12"
    assert rows[1][6] == 3


@pytest.mark.asyncio
async def test_existing_last_purchase_cell_bounds_window():
    rows = [HEADER, ["X", "2024-02-01", "", "", "", "", ""]]
    sales = {
        1: sale(1, "2024-01-15", "X", 4, shipped="2024-01-16"),
        2: sale(2, "2024-02-03", "X", 1, shipped="2024-02-05"),
    }
    await reconcile(rows, {}, sales, date(2024, 1, 1), balances())
    assert rows[1][6] == 1


@pytest.mark.asyncio
async def test_issue_date_used_when_no_exit_date():
    rows = [HEADER, ["X", "", "2023-12-31", "", "", "", ""]]
    sales = {1: sale(1, "2024-01-05", "X", 2)}
    await reconcile(rows, {}, sales, date(2024, 1, 1), balances())
    # Matched through its issue date, but only an exit date fills the cell
    assert rows[1][2] == "2023-12-31"
    assert rows[1][6] == 2


@pytest.mark.asyncio
async def test_balance_always_refreshed():
    rows = [HEADER, ["X", "", "", "", "", 99, ""], ["Y", "", "", "", "", 5, ""]]
    await reconcile(rows, {}, {}, date(2024, 1, 1), balances({"X": 12}))
    assert rows[1][5] == 12
    assert rows[2][5] == 0


@pytest.mark.asyncio
async def test_rows_without_sku_are_skipped():
    calls = []

    async def balance_of(sku):
        calls.append(sku)
        return 1

    rows = [HEADER, [], [""], ["X"]]
    updated = await reconcile(rows, {}, {}, date(2024, 1, 1), balance_of)
    assert updated == 1
    assert calls == ["X"]


@pytest.mark.asyncio
async def test_short_rows_are_padded():
    row = ["X"]
    await reconcile_row(row, [], [], date(2024, 1, 1), balances({"X": 3}))
    assert row == ["X", "", "", "", "", 3, ""]


def test_last_purchase_ignores_other_skus():
    records = to_records(
        OrderKind.PURCHASES,
        {1: purchase(1, "2024-05-01", "Y", 1), 2: purchase(2, "2024-01-01", "X", 1)},
    )
    assert last_purchase(records, "X").id == 2
    assert last_purchase(records, "Z") is None


@pytest.mark.asyncio
async def test_balance_lookup(bling, make_client):
    bling.balances["X"] = 17.5
    lookup = BalanceLookup(make_client())
    assert await lookup.balance_of("X") == 17.5
    assert await lookup.balance_of("missing") == 0


@pytest.mark.asyncio
async def test_balance_lookup_failure_returns_zero(bling, make_client):
    bling.fail_paths.add("/Api/v3/estoques/saldos/14088231094")
    lookup = BalanceLookup(make_client())
    assert await lookup.balance_of("X") == 0
