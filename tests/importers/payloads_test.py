from __future__ import annotations

import logging
from decimal import Decimal

import pytest

from importers.payloads import parse_capital, parse_catalog, parse_holdings, parse_transactions, unwrap_collection


def test_unwrap_collection_accepts_bare_and_wrapped_arrays() -> None:
    assert unwrap_collection([1, 2], "data") == [1, 2]
    assert unwrap_collection({"data": [3]}, "transactions", "data") == [3]
    assert unwrap_collection({"data": "nope"}, "data") == []
    assert unwrap_collection(None, "data") == []


def test_parse_transactions_skips_malformed_entries(caplog: pytest.LogCaptureFixture) -> None:
    payload = {
        "transactions": [
            {"id": 1, "type": "income", "amount": "Rp 5.000", "date": "2025-01-01"},
            {"type": "income", "amount": 1},
            "garbage",
            {"id": 2, "type": "expense", "amount": 10},
        ]
    }

    with caplog.at_level(logging.INFO, logger="importers.payloads"):
        parsed = parse_transactions(payload)

    assert [tx.id for tx in parsed] == ["1", "2"]
    assert parsed[0].amount == Decimal(5000)
    assert "Parsed 2 of 4 transaction entries" in caplog.text


def test_parse_holdings_and_catalog() -> None:
    holdings = parse_holdings([{"symbol": "BTC", "amount": "0.1", "buys": []}])
    catalog = parse_catalog({"products": [{"id": "P1", "name": "Widget"}, {"id": "P2"}]})

    assert holdings[0].quantity == Decimal("0.1")
    assert [entry.product_id for entry in catalog] == ["P1"]


def test_parse_holdings_keeps_lots_with_extreme_numbers() -> None:
    holdings = parse_holdings(
        [
            {
                "symbol": "BTC",
                "buys": [
                    {"id": "b1", "amount": "1e-10", "invested_idr": "1e999999"},
                    {"id": "b2", "amount": "0", "invested_idr": "1e300"},
                    {"id": "b3", "amount": "0.5", "invested_idr": "1.000.000"},
                ],
            }
        ]
    )

    buys = holdings[0].buys
    assert [buy.id for buy in buys] == ["b1", "b2", "b3"]
    assert (buys[0].invested, buys[0].unit_price) == (Decimal(0), Decimal(0))
    assert (buys[1].invested, buys[1].unit_price) == (Decimal("1e300"), Decimal(0))
    assert buys[2].unit_price == Decimal(2_000_000)


def test_parse_capital_items_only() -> None:
    capital = parse_capital({"items": [{"name": "Laptop", "amount": 12_000_000, "depreciable": True}]})

    assert len(capital.items) == 1
    assert capital.legacy is None


def test_parse_capital_legacy_triple() -> None:
    capital = parse_capital({"initialModal": "25.000.000", "periode": 12, "residu": 1_000_000})

    assert capital.items == []
    assert capital.legacy is not None
    assert capital.legacy.initial_capital == Decimal(25_000_000)
    assert capital.legacy.period_months == 12


def test_parse_capital_bare_list() -> None:
    capital = parse_capital([{"name": "Desk", "amount": 100}])
    assert capital.items[0].name == "Desk"
    assert capital.legacy is None
