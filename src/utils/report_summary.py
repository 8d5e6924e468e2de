from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from domain.aggregation import KindTotals, MonthSummary, monthly_series
from domain.metrics import PercentChange, cumulative, pct_change
from domain.records import LedgerTransaction

from .formatting import CurrencyFormatter, format_change


@dataclass
class MonthlyReportRow:
    month: int
    label: str
    totals: KindTotals
    depreciation: Decimal

    @property
    def net(self) -> Decimal:
        return self.totals.net - self.depreciation


@dataclass
class YearReport:
    year: int
    monthly_depreciation: Decimal
    rows: list[MonthlyReportRow]

    @property
    def totals(self) -> KindTotals:
        total = KindTotals()
        for row in self.rows:
            total = total + row.totals
        return total

    @property
    def active_months(self) -> int:
        return sum(1 for row in self.rows if row.totals.has_activity)

    @property
    def total_depreciation(self) -> Decimal:
        return self.monthly_depreciation * self.active_months

    @property
    def net(self) -> Decimal:
        return self.totals.net - self.total_depreciation

    def running_balance(self) -> list[Decimal]:
        return cumulative(row.net for row in self.rows)

    def month_over_month(self, month: int) -> PercentChange | None:
        """Net change of ``month`` against the month before it (None for January)."""
        if month <= 1:
            return None
        return pct_change(self.rows[month - 1].net, self.rows[month - 2].net)


def compute_year_report(
    transactions: Iterable[LedgerTransaction],
    year: int,
    *,
    monthly_depreciation: Decimal,
) -> YearReport:
    """Monthly income/expense/investment with depreciation charged only in active months.

    A month is active when it has any income or expense.
    """
    months: list[MonthSummary] = monthly_series(transactions, year)
    rows = [
        MonthlyReportRow(
            month=summary.month,
            label=summary.label,
            totals=summary.totals,
            depreciation=monthly_depreciation if summary.totals.has_activity else Decimal(0),
        )
        for summary in months
    ]
    return YearReport(year=year, monthly_depreciation=monthly_depreciation, rows=rows)


def render_year_report(report: YearReport, formatter: CurrencyFormatter) -> None:
    print(f"Report {report.year}:")

    labels = ("Month", "Income", "Expense", "Investment", "Net", "Balance", "Change")
    balances = report.running_balance()
    rows: list[tuple[str, ...]] = []
    for row, balance in zip(report.rows, balances):
        rows.append(
            (
                row.label,
                formatter.format(row.totals.income),
                formatter.format(row.totals.expense),
                formatter.format(row.totals.investment),
                formatter.format(row.net),
                formatter.format(balance),
                format_change(report.month_over_month(row.month)),
            )
        )
    totals = report.totals
    rows.append(
        (
            "Total",
            formatter.format(totals.income),
            formatter.format(totals.expense),
            formatter.format(totals.investment),
            formatter.format(report.net),
            "",
            "",
        )
    )

    widths = [max(len(labels[idx]), max(len(row[idx]) for row in rows)) for idx in range(len(labels))]
    header = _align(labels, widths)
    lines = [header, "-" * len(header)]
    for idx, row in enumerate(rows):
        if idx == len(rows) - 1:
            lines.append("-" * len(header))
        lines.append(_align(row, widths))

    lines.append(
        f"Depreciation: {formatter.format(report.monthly_depreciation)} x {report.active_months} active months "
        f"= {formatter.format(report.total_depreciation)}"
    )
    print("\n".join(lines))


def _align(cells: tuple[str, ...], widths: list[int]) -> str:
    # First column left-aligned, amounts right-aligned.
    return " ".join(f"{cell:<{widths[i]}}" if i == 0 else f"{cell:>{widths[i]}}" for i, cell in enumerate(cells))
