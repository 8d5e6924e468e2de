from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterable, Sequence

from domain.aggregation import id_sort_key
from domain.matching import TransactionMatcher
from domain.pricing import PriceProvider, pnl_percent, unrealized_pnl
from domain.records import Holding, LedgerTransaction

from .formatting import CurrencyFormatter, format_units

AGGREGATED_DESCRIPTION = "Aggregated holding"


@dataclass
class PurchaseRow:
    id: str | None
    date: dt.date | None
    quantity: Decimal
    invested: Decimal
    unit_price: Decimal
    description: str
    aggregated: bool = False


@dataclass
class HoldingsSummary:
    asset_id: str
    quote_id: str
    as_of: datetime
    price: Decimal
    rows: list[PurchaseRow] = field(default_factory=list)

    @property
    def total_quantity(self) -> Decimal:
        return sum((row.quantity for row in self.rows), start=Decimal(0))

    @property
    def total_invested(self) -> Decimal:
        return sum((row.invested for row in self.rows), start=Decimal(0))

    @property
    def current_value(self) -> Decimal:
        return self.price * self.total_quantity

    @property
    def pnl(self) -> Decimal:
        return unrealized_pnl(self.total_quantity, self.total_invested, self.price)

    @property
    def pnl_percent(self) -> Decimal:
        return pnl_percent(self.pnl, self.total_invested)

    def row_pnl(self, row: PurchaseRow) -> Decimal:
        return unrealized_pnl(row.quantity, row.invested, self.price)


def build_purchase_rows(
    holdings: Iterable[Holding],
    transactions: Sequence[LedgerTransaction],
    *,
    asset_id: str,
    matcher: TransactionMatcher | None = None,
) -> list[PurchaseRow]:
    """One display row per buy lot of ``asset_id``, newest first.

    Buy lots get their description from the ledger entry that most plausibly
    recorded them. A holding without lots becomes a single aggregated row.
    """
    matcher = matcher or TransactionMatcher()
    rows: list[PurchaseRow] = []

    for holding in holdings:
        if not holding.matches_asset(asset_id):
            continue

        if not holding.buys:
            quantity = holding.quantity
            rows.append(
                PurchaseRow(
                    id=None,
                    date=None,
                    quantity=quantity,
                    invested=holding.total_invested,
                    unit_price=holding.total_invested / quantity if quantity else Decimal(0),
                    description=holding.note or AGGREGATED_DESCRIPTION,
                    aggregated=True,
                )
            )
            continue

        for buy in holding.buys:
            rows.append(
                PurchaseRow(
                    id=buy.id,
                    date=buy.date,
                    quantity=buy.quantity,
                    invested=buy.invested,
                    unit_price=buy.unit_price,
                    description=matcher.describe(buy, transactions, holding=holding),
                )
            )

    rows.sort(key=lambda row: (row.date or dt.date.min, id_sort_key(row.id)), reverse=True)
    return rows


def compute_holdings_summary(
    holdings: Iterable[Holding],
    transactions: Sequence[LedgerTransaction],
    *,
    asset_id: str,
    quote_id: str,
    price_provider: PriceProvider,
    as_of: datetime | None = None,
    matcher: TransactionMatcher | None = None,
) -> HoldingsSummary:
    now = as_of or datetime.now(timezone.utc)
    rows = build_purchase_rows(holdings, transactions, asset_id=asset_id, matcher=matcher)
    return HoldingsSummary(
        asset_id=asset_id,
        quote_id=quote_id,
        as_of=now,
        price=price_provider.rate(asset_id, quote_id, now),
        rows=rows,
    )


def render_holdings_summary(summary: HoldingsSummary, formatter: CurrencyFormatter) -> None:
    print(f"{summary.asset_id} holdings @ {formatter.format(summary.price)}:")
    if not summary.rows:
        print("  (empty)")
        return

    rows: list[tuple[str, str, str, str, str]] = []
    for row in summary.rows:
        rows.append(
            (
                row.date.isoformat() if row.date else "-",
                format_units(row.quantity),
                formatter.format(row.invested),
                formatter.format(summary.row_pnl(row)),
                row.description,
            )
        )

    labels = ("Date", "Units", "Invested", "P&L", "Description")
    widths = [max(len(labels[idx]), max(len(row[idx]) for row in rows)) for idx in range(len(labels))]

    header = (
        f"{labels[0]:<{widths[0]}} {labels[1]:>{widths[1]}} {labels[2]:>{widths[2]}} "
        f"{labels[3]:>{widths[3]}} {labels[4]}"
    )
    lines = [header, "-" * len(header)]
    for date_text, units, invested, pnl, description in rows:
        lines.append(
            f"{date_text:<{widths[0]}} {units:>{widths[1]}} {invested:>{widths[2]}} {pnl:>{widths[3]}} {description}"
        )

    lines.append("-" * len(header))
    lines.append(f"Total units:    {format_units(summary.total_quantity)}")
    lines.append(f"Total invested: {formatter.format(summary.total_invested)}")
    lines.append(f"Current value:  {formatter.format(summary.current_value)}")
    lines.append(f"P&L:            {formatter.format(summary.pnl)} ({summary.pnl_percent:.2f}%)")
    print("\n".join(lines))
