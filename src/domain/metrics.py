from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Sequence

from .aggregation import KindTotals, StreamSeries
from .records import CapitalItem, LegacyCapital

ZERO = Decimal(0)
HUNDRED = Decimal(100)


def _straight_line(amount: Decimal, residual: Decimal, period_months: int) -> Decimal:
    if period_months <= 0:
        return ZERO
    return max(ZERO, (amount - residual) / Decimal(period_months))


def monthly_depreciation(item: CapitalItem) -> Decimal:
    if not item.depreciable:
        return ZERO
    return _straight_line(item.amount, item.residual, item.period_months)


def legacy_monthly_depreciation(legacy: LegacyCapital) -> Decimal:
    return _straight_line(legacy.initial_capital, legacy.residual, legacy.period_months)


def total_depreciation(items: Sequence[CapitalItem], *, legacy: LegacyCapital | None = None) -> Decimal:
    """Monthly straight-line depreciation across all capital items.

    Without itemized capital the legacy single-amount triple is used instead.
    """
    if items:
        return sum((monthly_depreciation(item) for item in items), start=ZERO)
    if legacy is not None:
        return legacy_monthly_depreciation(legacy)
    return ZERO


def initial_capital(items: Sequence[CapitalItem], *, legacy: LegacyCapital | None = None) -> Decimal:
    if items:
        return sum((item.amount for item in items), start=ZERO)
    if legacy is not None:
        return legacy.initial_capital
    return ZERO


def net_profit(income: Decimal, expense: Decimal, depreciation: Decimal) -> Decimal:
    # Investment outflows are capital redeployment and never reduce profit.
    return income - expense - depreciation


def roi_percent(profit: Decimal, capital: Decimal) -> Decimal:
    if capital <= 0:
        return ZERO
    return profit / capital * HUNDRED


def roi_progress(roi: Decimal, target: Decimal) -> Decimal:
    """Fraction of the ROI target reached, clamped to [0, 1]."""
    if target <= 0:
        return ZERO
    return min(Decimal(1), max(ZERO, min(roi, target) / target))


@dataclass(frozen=True)
class Metrics:
    net_profit: Decimal
    roi_percent: Decimal
    total_depreciation: Decimal
    initial_capital: Decimal

    def progress(self, target: Decimal) -> Decimal:
        return roi_progress(self.roi_percent, target)


def compute_metrics(
    totals: KindTotals,
    items: Sequence[CapitalItem],
    *,
    legacy: LegacyCapital | None = None,
) -> Metrics:
    depreciation = total_depreciation(items, legacy=legacy)
    capital = initial_capital(items, legacy=legacy)
    profit = net_profit(totals.income, totals.expense, depreciation)
    return Metrics(
        net_profit=profit,
        roi_percent=roi_percent(profit, capital),
        total_depreciation=depreciation,
        initial_capital=capital,
    )


@dataclass(frozen=True)
class PercentChange:
    percent: Decimal

    @property
    def is_positive(self) -> bool:
        return self.percent >= 0


def pct_change(current: Decimal, previous: Decimal) -> PercentChange | None:
    """Period-over-period change; None when there is no previous value to compare with."""
    if previous == 0:
        return None
    return PercentChange(percent=(current - previous) / abs(previous) * HUNDRED)


def growth_change(current: Decimal, previous: Decimal) -> PercentChange:
    """Like ``pct_change``, but growth from nothing reads as +100% and no activity as 0%."""
    if previous == 0:
        return PercentChange(percent=HUNDRED if current > 0 else ZERO)
    return PercentChange(percent=(current - previous) / previous * HUNDRED)


def stream_month_change(series: StreamSeries, month: int) -> PercentChange | None:
    """Total stream income in ``month`` against the month before it.

    January has no previous month inside a one-year series.
    """
    current = series.month(month)
    previous = series.month(month - 1)
    if current is None or previous is None:
        return None
    return growth_change(current.total, previous.total)


def cumulative(values: Iterable[Decimal]) -> list[Decimal]:
    running = ZERO
    out: list[Decimal] = []
    for value in values:
        running += value
        out.append(running)
    return out


__all__ = [
    "Metrics",
    "PercentChange",
    "compute_metrics",
    "cumulative",
    "growth_change",
    "initial_capital",
    "legacy_monthly_depreciation",
    "monthly_depreciation",
    "net_profit",
    "pct_change",
    "roi_percent",
    "roi_progress",
    "stream_month_change",
    "total_depreciation",
]
