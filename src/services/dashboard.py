from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Callable

from config import AppSettings
from domain.aggregation import (
    KindTotals,
    PeriodBucket,
    RevenuePoint,
    StreamSeries,
    daily_revenue,
    group_by_month,
    group_by_product,
    income_by_stream,
    monthly_stream_series,
    revenue_by_product,
    sum_by_kind,
    weekly_revenue,
)
from domain.matching import TransactionMatcher
from domain.metrics import Metrics, PercentChange, compute_metrics, stream_month_change, total_depreciation
from domain.pricing import PriceProvider
from domain.records import (
    CapitalStructure,
    Holding,
    LedgerTransaction,
    LegacyCapital,
    ProductCatalogEntry,
    PurchaseRecord,
    TransactionId,
)
from importers.payloads import parse_capital, parse_catalog, parse_holdings, parse_transactions
from utils.holdings_summary import HoldingsSummary, compute_holdings_summary
from utils.report_summary import YearReport, compute_year_report

from .event_bus import ChangeEvent, EventBus, Topic
from .ledger_api_client import LedgerApiClient, LedgerApiError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DashboardSnapshot:
    """Latest copy of each backend collection. They are fetched independently and may disagree."""

    transactions: tuple[LedgerTransaction, ...] = ()
    holdings: tuple[Holding, ...] = ()
    catalog: tuple[ProductCatalogEntry, ...] = ()
    capital: CapitalStructure = field(default_factory=CapitalStructure)


@dataclass(frozen=True)
class DashboardView:
    lifetime: KindTotals
    metrics: Metrics
    roi_progress: Decimal
    products: dict[str, list[LedgerTransaction]]
    product_revenue: dict[str, Decimal]
    months: list[PeriodBucket]
    streams: list[tuple[str, Decimal]]
    stream_months: StreamSeries
    stream_change: PercentChange | None
    weekly_revenue: list[RevenuePoint]
    daily_revenue: list[RevenuePoint]
    holdings: HoldingsSummary
    year_report: YearReport
    shared_matches: dict[TransactionId, list[PurchaseRecord]]


def _effective_capital(capital: CapitalStructure, settings: AppSettings) -> LegacyCapital | None:
    if capital.items:
        return capital.legacy
    return capital.legacy or LegacyCapital(initial_capital=settings.default_initial_capital)


def build_view(
    snapshot: DashboardSnapshot,
    *,
    settings: AppSettings,
    price_provider: PriceProvider,
    now: datetime,
    matcher: TransactionMatcher | None = None,
) -> DashboardView:
    matcher = matcher or TransactionMatcher()
    transactions = list(snapshot.transactions)
    catalog = list(snapshot.catalog)
    items = snapshot.capital.items
    legacy = _effective_capital(snapshot.capital, settings)

    lifetime = sum_by_kind(transactions)
    stream_months = monthly_stream_series(transactions, now.year)
    metrics = compute_metrics(lifetime, items, legacy=legacy)

    tracked = [holding for holding in snapshot.holdings if holding.matches_asset(settings.tracked_asset)]
    purchases = [buy for holding in tracked for buy in holding.buys]
    shared = matcher.find_shared_matches(purchases, transactions)
    if shared:
        logger.info("%d ledger entries are the best match for more than one purchase", len(shared))

    return DashboardView(
        lifetime=lifetime,
        metrics=metrics,
        roi_progress=metrics.progress(settings.roi_target),
        products=group_by_product(transactions, catalog),
        product_revenue=revenue_by_product(transactions, catalog),
        months=group_by_month(transactions),
        streams=income_by_stream(transactions),
        stream_months=stream_months,
        stream_change=stream_month_change(stream_months, now.month),
        weekly_revenue=weekly_revenue(transactions, now=now.date()),
        daily_revenue=daily_revenue(transactions, now=now.date()),
        holdings=compute_holdings_summary(
            tracked,
            transactions,
            asset_id=settings.tracked_asset,
            quote_id=settings.base_currency,
            price_provider=price_provider,
            as_of=now,
            matcher=matcher,
        ),
        year_report=compute_year_report(
            transactions,
            now.year,
            monthly_depreciation=total_depreciation(items, legacy=legacy),
        ),
        shared_matches=shared,
    )


class DashboardService:
    """Keeps the latest backend collections and recomputes the view from them.

    Each collection is re-fetched when its change topic is published on the bus;
    a failed fetch leaves an empty collection behind rather than raising.
    """

    def __init__(
        self,
        *,
        settings: AppSettings,
        price_provider: PriceProvider,
        bus: EventBus,
        client: LedgerApiClient | None = None,
        matcher: TransactionMatcher | None = None,
    ) -> None:
        self._settings = settings
        self._price_provider = price_provider
        self._bus = bus
        self._client = client
        self._matcher = matcher or TransactionMatcher()
        self._snapshot = DashboardSnapshot()
        self._unsubscribe = [
            bus.subscribe(Topic.TRANSACTIONS, self._on_transactions_changed),
            bus.subscribe(Topic.HOLDINGS, lambda _event: self.reload_holdings()),
            bus.subscribe(Topic.CATALOG, lambda _event: self.reload_catalog()),
            bus.subscribe(Topic.CAPITAL, lambda _event: self.reload_capital()),
        ]

    @property
    def snapshot(self) -> DashboardSnapshot:
        return self._snapshot

    def apply_payloads(
        self,
        *,
        transactions: Any = None,
        holdings: Any = None,
        catalog: Any = None,
        capital: Any = None,
    ) -> DashboardSnapshot:
        """Replace the given collections from raw JSON; ``None`` keeps the current one."""
        changes: dict[str, Any] = {}
        if transactions is not None:
            changes["transactions"] = tuple(parse_transactions(transactions))
        if holdings is not None:
            changes["holdings"] = tuple(parse_holdings(holdings))
        if catalog is not None:
            changes["catalog"] = tuple(parse_catalog(catalog))
        if capital is not None:
            changes["capital"] = parse_capital(capital)
        if changes:
            self._snapshot = dataclasses.replace(self._snapshot, **changes)
        return self._snapshot

    def refresh_all(self) -> DashboardSnapshot:
        self.reload_transactions()
        self.reload_holdings()
        self.reload_catalog()
        self.reload_capital()
        return self._snapshot

    def reload_transactions(self) -> None:
        self.apply_payloads(transactions=self._fetch("transactions", lambda client: client.get_transactions()))

    def reload_holdings(self) -> None:
        self.apply_payloads(holdings=self._fetch("holdings", lambda client: client.get_holdings()))

    def reload_catalog(self) -> None:
        self.apply_payloads(catalog=self._fetch("catalog", lambda client: client.get_catalog()))

    def reload_capital(self) -> None:
        self.apply_payloads(capital=self._fetch("capital", lambda client: client.get_capital()))

    def view(self, now: datetime | None = None) -> DashboardView:
        return build_view(
            self._snapshot,
            settings=self._settings,
            price_provider=self._price_provider,
            now=now or datetime.now(timezone.utc),
            matcher=self._matcher,
        )

    def tick(self, now: datetime | None = None) -> DashboardView:
        """Periodic refresh: recompute with the current price and announce it."""
        view = self.view(now)
        self._bus.publish(Topic.PRICES, view.holdings.price)
        return view

    def close(self) -> None:
        for unsubscribe in self._unsubscribe:
            unsubscribe()
        self._unsubscribe = []

    def _on_transactions_changed(self, event: ChangeEvent) -> None:
        # A new investment entry usually comes with a new buy lot.
        self.reload_transactions()
        self.reload_holdings()

    def _fetch(self, name: str, call: Callable[[LedgerApiClient], Any]) -> Any:
        if self._client is None:
            return None
        try:
            return call(self._client)
        except LedgerApiError as exc:
            logger.warning("Fetching %s failed (status=%s): %s", name, exc.status_code, exc)
            return []


__all__ = ["DashboardService", "DashboardSnapshot", "DashboardView", "build_view"]
