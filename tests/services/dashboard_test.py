from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from unittest.mock import Mock

import pytest

from config import AppSettings
from domain.records import TransactionKind
from services.dashboard import DashboardService, DashboardSnapshot, build_view
from services.event_bus import EventBus, Topic
from services.ledger_api_client import LedgerApiError
from tests.helpers.factories import make_buy, make_holding, make_tx
from tests.helpers.fixed_price_provider import FixedPriceProvider

TRANSACTIONS = [
    {"id": 1, "type": "income", "date": "2025-03-01", "amount": "40.000.000", "product_id": "P1", "stream": "Shop"},
    {"id": 2, "type": "expense", "date": "2025-03-02", "amount": 10_000_000, "label": "Rent"},
    {"id": 3, "type": "investment", "date": "2025-01-10", "amount": 1_000_000, "note": "January DCA"},
]
HOLDINGS = [
    {
        "symbol": "BTC",
        "name": "Bitcoin",
        "amount": 0.01,
        "buys": [{"id": "b1", "date": "2025-01-10", "invested_idr": 1_000_000, "amount": 0.01}],
    },
    {"symbol": "ETH", "name": "Ethereum", "amount": 1, "total_invested": 50_000_000},
]
CATALOG = [{"product_id": "P1", "name": "Widget"}]
CAPITAL = {"items": [{"name": "Laptop", "amount": 25_000_000, "depreciable": True, "period_months": 25}]}


def _client() -> Mock:
    client = Mock()
    client.get_transactions.return_value = TRANSACTIONS
    client.get_holdings.return_value = HOLDINGS
    client.get_catalog.return_value = CATALOG
    client.get_capital.return_value = CAPITAL
    return client


def test_build_view_combines_all_collections(
    settings: AppSettings,
    price_provider: FixedPriceProvider,
    fixed_now: datetime,
) -> None:
    service = DashboardService(settings=settings, price_provider=price_provider, bus=EventBus(), client=_client())
    service.refresh_all()

    view = service.view(fixed_now)

    assert view.lifetime.income == Decimal(40_000_000)
    assert view.metrics.total_depreciation == Decimal(1_000_000)
    assert view.metrics.net_profit == Decimal(29_000_000)
    assert view.metrics.roi_percent == Decimal(116)
    assert view.roi_progress == Decimal("0.58")
    assert view.product_revenue["widget"] == Decimal(40_000_000)
    assert [bucket.period_key for bucket in view.months] == ["2025-03", "2025-01"]
    assert view.streams == [("Shop", Decimal(40_000_000))]
    assert view.stream_months.streams == ["Shop"]
    assert view.stream_months.months[2].amounts == {"Shop": Decimal(40_000_000)}
    assert view.stream_change is not None and view.stream_change.percent == Decimal(100)
    assert len(view.weekly_revenue) == 12
    assert len(view.daily_revenue) == 30

    assert [row.description for row in view.holdings.rows] == ["January DCA"]
    assert view.holdings.price == Decimal(1_500_000_000)
    assert price_provider.calls == [("BTC", "IDR", fixed_now)]

    march = view.year_report.rows[2]
    assert march.depreciation == Decimal(1_000_000)
    assert view.year_report.rows[0].depreciation == Decimal(0)
    assert view.shared_matches == {}


def test_build_view_falls_back_to_default_initial_capital(
    settings: AppSettings,
    price_provider: FixedPriceProvider,
    fixed_now: datetime,
) -> None:
    snapshot = DashboardSnapshot(
        transactions=(make_tx(TransactionKind.INCOME, 5_000_000, date(2025, 3, 1)),),
    )

    view = build_view(snapshot, settings=settings, price_provider=price_provider, now=fixed_now)

    assert view.metrics.initial_capital == settings.default_initial_capital
    assert view.metrics.total_depreciation == Decimal(0)
    assert view.metrics.roi_percent == Decimal(20)


def test_build_view_reports_shared_matches(
    settings: AppSettings,
    price_provider: FixedPriceProvider,
    fixed_now: datetime,
) -> None:
    day = date(2025, 1, 10)
    first = make_buy(day, "0.01", 1_000_000)
    second = make_buy(day, "0.02", 1_000_000)
    snapshot = DashboardSnapshot(
        transactions=(make_tx(TransactionKind.INVESTMENT, 1_000_000, day, id="t1"),),
        holdings=(make_holding(first, second),),
    )

    view = build_view(snapshot, settings=settings, price_provider=price_provider, now=fixed_now)

    assert list(view.shared_matches) == ["t1"]


def test_empty_snapshot_renders_zeros(
    settings: AppSettings,
    price_provider: FixedPriceProvider,
    fixed_now: datetime,
) -> None:
    view = build_view(DashboardSnapshot(), settings=settings, price_provider=price_provider, now=fixed_now)

    assert view.lifetime.net == Decimal(0)
    assert view.months == []
    assert view.holdings.rows == []
    assert view.year_report.net == Decimal(0)
    assert view.stream_months.streams == []
    assert view.stream_change is not None and view.stream_change.percent == Decimal(0)


def test_out_of_range_amounts_do_not_break_the_view(
    settings: AppSettings,
    price_provider: FixedPriceProvider,
    fixed_now: datetime,
) -> None:
    service = DashboardService(settings=settings, price_provider=price_provider, bus=EventBus())
    service.apply_payloads(
        transactions=[
            {"id": 1, "type": "income", "date": "2025-03-01", "amount": "1e1000000", "stream": "Shop"},
            {"id": 2, "type": "income", "date": "2025-03-02", "amount": "1e-400"},
            {"id": 3, "type": "investment", "date": "2025-03-03", "amount": "1e308"},
        ],
        holdings=[
            {
                "symbol": "BTC",
                "buys": [{"id": "b1", "date": "2025-03-03", "amount": "1e-10", "invested_idr": "1e999999"}],
            }
        ],
    )

    view = service.view(fixed_now)

    assert len(service.snapshot.transactions) == 3
    assert view.lifetime.income == Decimal(0)
    assert view.lifetime.investment == Decimal("1e308")
    assert [row.id for row in view.holdings.rows] == ["b1"]


def test_fetch_failure_leaves_empty_collection(
    settings: AppSettings,
    price_provider: FixedPriceProvider,
    caplog: pytest.LogCaptureFixture,
) -> None:
    client = _client()
    client.get_holdings.side_effect = LedgerApiError("boom", status_code=500)
    service = DashboardService(settings=settings, price_provider=price_provider, bus=EventBus(), client=client)

    snapshot = service.refresh_all()

    assert len(snapshot.transactions) == 3
    assert snapshot.holdings == ()
    assert "Fetching holdings failed (status=500)" in caplog.text


def test_transactions_change_reloads_transactions_and_holdings(
    settings: AppSettings,
    price_provider: FixedPriceProvider,
) -> None:
    client = _client()
    bus = EventBus()
    service = DashboardService(settings=settings, price_provider=price_provider, bus=bus, client=client)

    bus.publish(Topic.TRANSACTIONS)

    client.get_transactions.assert_called_once()
    client.get_holdings.assert_called_once()
    client.get_catalog.assert_not_called()
    assert len(service.snapshot.holdings) == 2


@pytest.mark.parametrize(
    ("topic", "method"),
    [
        (Topic.HOLDINGS, "get_holdings"),
        (Topic.CATALOG, "get_catalog"),
        (Topic.CAPITAL, "get_capital"),
    ],
)
def test_each_topic_reloads_its_collection(
    settings: AppSettings,
    price_provider: FixedPriceProvider,
    topic: Topic,
    method: str,
) -> None:
    client = _client()
    bus = EventBus()
    DashboardService(settings=settings, price_provider=price_provider, bus=bus, client=client)

    bus.publish(topic)

    getattr(client, method).assert_called_once()
    client.get_transactions.assert_not_called()


def test_close_unsubscribes(settings: AppSettings, price_provider: FixedPriceProvider) -> None:
    bus = EventBus()
    service = DashboardService(settings=settings, price_provider=price_provider, bus=bus, client=_client())

    service.close()

    assert bus.subscriber_count(Topic.TRANSACTIONS) == 0
    assert bus.publish(Topic.CAPITAL) == 0


def test_tick_announces_current_price(
    settings: AppSettings,
    price_provider: FixedPriceProvider,
    fixed_now: datetime,
) -> None:
    bus = EventBus()
    prices: list[object] = []
    bus.subscribe(Topic.PRICES, lambda event: prices.append(event.payload))
    service = DashboardService(settings=settings, price_provider=price_provider, bus=bus)

    service.tick(fixed_now)

    assert prices == [Decimal(1_500_000_000)]


def test_apply_payloads_without_client(settings: AppSettings, price_provider: FixedPriceProvider) -> None:
    service = DashboardService(settings=settings, price_provider=price_provider, bus=EventBus())

    service.apply_payloads(transactions={"data": TRANSACTIONS}, capital={"initialModal": 10})
    service.reload_catalog()

    assert len(service.snapshot.transactions) == 3
    assert service.snapshot.capital.legacy is not None
    assert service.snapshot.catalog == ()
