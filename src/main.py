from __future__ import annotations

import argparse
import json
import logging
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path
from typing import Any, Sequence

from config import AppSettings, config
from domain.aggregation import paginate
from domain.metrics import pct_change
from domain.pricing import PriceProvider
from importers.catalog_csv import load_catalog_csv
from services.dashboard import DashboardService, DashboardView
from services.event_bus import EventBus
from services.ledger_api_client import LedgerApiClient
from services.price_service import PriceService, build_default_service
from services.price_sources import CoinGeckoPriceSource, StaticPriceSource
from services.price_store import MemoryPriceStore
from utils.formatting import CurrencyFormatter, format_change, format_units
from utils.holdings_summary import render_holdings_summary
from utils.report_summary import render_year_report

logger = logging.getLogger(__name__)


def load_json(path: Path | None) -> Any:
    if path is None:
        return None
    with path.open(encoding="utf-8") as handle:
        return json.load(handle)


def build_price_provider(
    settings: AppSettings,
    *,
    client: LedgerApiClient | None,
    static_price: Decimal | None,
) -> PriceProvider:
    if static_price is not None:
        source = StaticPriceSource({(settings.tracked_asset, settings.base_currency): static_price})
        return PriceService(source=source, store=MemoryPriceStore())
    if client is not None:
        return build_default_service(client, refresh_seconds=settings.price_refresh_seconds)
    source = CoinGeckoPriceSource(
        timeout=settings.request_timeout,
        validity=timedelta(seconds=settings.price_refresh_seconds),
    )
    return PriceService(source=source, store=MemoryPriceStore())


def print_metrics(view: DashboardView, formatter: CurrencyFormatter, settings: AppSettings) -> None:
    metrics = view.metrics
    print("Metrics:")
    print(f"  Income:          {formatter.format(view.lifetime.income)}")
    print(f"  Expense:         {formatter.format(view.lifetime.expense)}")
    print(f"  Investment:      {formatter.format(view.lifetime.investment)}")
    print(f"  Depreciation/mo: {formatter.format(metrics.total_depreciation)}")
    print(f"  Initial capital: {formatter.format(metrics.initial_capital)}")
    print(f"  Net profit:      {formatter.format(metrics.net_profit)}")
    print(
        f"  ROI:             {metrics.roi_percent:.2f}% "
        f"({view.roi_progress * 100:.0f}% of {settings.roi_target}% target)"
    )


def print_products(view: DashboardView, formatter: CurrencyFormatter) -> None:
    print("Revenue by product:")
    if not view.product_revenue:
        print("  (none)")
        return
    width = max(len(name) for name in view.product_revenue)
    for name, revenue in sorted(view.product_revenue.items(), key=lambda item: item[1], reverse=True):
        print(f"  {name:<{width}} {formatter.format(revenue):>20} ({len(view.products.get(name, []))} entries)")


def print_streams(view: DashboardView, formatter: CurrencyFormatter) -> None:
    series = view.stream_months
    print(f"Income by stream this year ({format_change(view.stream_change)} vs previous month):")
    if not series.streams:
        print("  (none)")
        return
    width = max(len(stream) for stream in series.streams)
    for stream in series.streams:
        print(f"  {stream:<{width}} {formatter.format(series.yearly_total(stream)):>20}")


def print_months(view: DashboardView, formatter: CurrencyFormatter, *, page: int, page_size: int) -> None:
    current = paginate(view.months, page, page_size)
    print(f"Transactions by month (page {current.page}/{current.total_pages}, {current.showing}):")
    for bucket in current.items:
        totals = bucket.totals
        print(
            f"  {bucket.period_key}: income {formatter.format(totals.income)}, "
            f"expense {formatter.format(totals.expense)}, investment {formatter.format(totals.investment)}"
        )


def print_revenue_trend(view: DashboardView, formatter: CurrencyFormatter) -> None:
    points = view.weekly_revenue
    print("Weekly revenue:")
    for idx, point in enumerate(points):
        change = pct_change(point.revenue, points[idx - 1].revenue) if idx else None
        print(f"  {point.label:<8} {formatter.format(point.revenue):>20} {format_change(change)}")


def run(
    settings: AppSettings,
    *,
    use_api: bool,
    transactions: Path | None,
    holdings: Path | None,
    catalog: Path | None,
    catalog_csv: Path | None,
    capital: Path | None,
    static_price: Decimal | None,
    page: int,
) -> DashboardView:
    client = LedgerApiClient(base_url=settings.api_base_url, timeout=settings.request_timeout) if use_api else None
    bus = EventBus()
    service = DashboardService(
        settings=settings,
        price_provider=build_price_provider(settings, client=client, static_price=static_price),
        bus=bus,
        client=client,
    )

    try:
        if client is not None:
            service.refresh_all()
        service.apply_payloads(
            transactions=load_json(transactions),
            holdings=load_json(holdings),
            catalog=load_json(catalog),
            capital=load_json(capital),
        )
        if catalog_csv is not None:
            entries = load_catalog_csv(catalog_csv)
            if entries:
                service.apply_payloads(catalog=entries)
            else:
                logger.warning("No catalog products read from %s; keeping the current catalog", catalog_csv)

        snapshot = service.snapshot
        logger.info(
            "Loaded %d transactions, %d holdings, %d catalog products, %d capital items",
            len(snapshot.transactions),
            len(snapshot.holdings),
            len(snapshot.catalog),
            len(snapshot.capital.items),
        )

        view = service.view(datetime.now(timezone.utc))
        formatter = CurrencyFormatter(
            settings.display_currency,
            rates=settings.exchange_rates,
            base_currency=settings.base_currency,
        )

        print_metrics(view, formatter, settings)
        print()
        print_products(view, formatter)
        print()
        print_streams(view, formatter)
        print()
        print_months(view, formatter, page=page, page_size=settings.page_size)
        print()
        print_revenue_trend(view, formatter)
        print()
        render_holdings_summary(view.holdings, formatter)
        print(f"Total units held: {format_units(view.holdings.total_quantity)} {settings.tracked_asset}")
        print()
        render_year_report(view.year_report, formatter)
    finally:
        service.close()
    return view


def main(argv: Sequence[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Reconcile ledger, holdings and capital data into dashboard metrics.")
    parser.add_argument("--api", action="store_true", help="Fetch collections from the dashboard backend.")
    parser.add_argument("--transactions", type=Path, help="JSON file with ledger transactions.")
    parser.add_argument("--holdings", type=Path, help="JSON file with asset holdings.")
    parser.add_argument("--catalog", type=Path, help="JSON file with the product catalog.")
    parser.add_argument("--catalog-csv", type=Path, help="CSV export of the product catalog.")
    parser.add_argument("--capital", type=Path, help="JSON file with capital items.")
    parser.add_argument("--price", type=Decimal, help="Fixed asset price in base currency; skips price lookups.")
    parser.add_argument("--currency", help="Display currency (IDR, USD, EUR, SGD).")
    parser.add_argument("--page", type=int, default=1)
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    settings = config()
    if args.currency:
        settings = settings.model_copy(update={"display_currency": args.currency.upper()})

    run(
        settings,
        use_api=args.api,
        transactions=args.transactions,
        holdings=args.holdings,
        catalog=args.catalog,
        catalog_csv=args.catalog_csv,
        capital=args.capital,
        static_price=args.price,
        page=args.page,
    )


if __name__ == "__main__":
    main()
