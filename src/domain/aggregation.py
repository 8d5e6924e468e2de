from __future__ import annotations

import datetime as dt
import math
import re
from collections import defaultdict
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Generic, Iterable, Iterator, Sequence, TypeVar

from .records import LedgerTransaction, ProductCatalogEntry, TransactionKind

T = TypeVar("T")

UNKNOWN_PRODUCT = "Unknown Product"
_NON_DIGITS = re.compile(r"\D")


def normalize_label(text: str | None) -> str:
    return (text or "").casefold().strip()


def id_sort_key(tx_id: str | int | None) -> int:
    digits = _NON_DIGITS.sub("", str(tx_id or ""))
    return int(digits) if digits else 0


def sort_transactions(transactions: Iterable[LedgerTransaction]) -> list[LedgerTransaction]:
    """Newest first; same-day entries by the numeric part of their id, highest first."""
    return sorted(
        transactions,
        key=lambda tx: (tx.date or dt.date.min, id_sort_key(tx.id)),
        reverse=True,
    )


@dataclass(frozen=True)
class KindTotals:
    income: Decimal = Decimal(0)
    expense: Decimal = Decimal(0)
    investment: Decimal = Decimal(0)

    @property
    def net(self) -> Decimal:
        # Investment is capital redeployment, not an expense.
        return self.income - self.expense

    @property
    def has_activity(self) -> bool:
        return self.income > 0 or self.expense > 0

    def get(self, kind: TransactionKind) -> Decimal:
        return getattr(self, kind.value)

    def __add__(self, other: KindTotals) -> KindTotals:
        return KindTotals(
            income=self.income + other.income,
            expense=self.expense + other.expense,
            investment=self.investment + other.investment,
        )


def sum_by_kind(transactions: Iterable[LedgerTransaction]) -> KindTotals:
    sums: dict[TransactionKind, Decimal] = defaultdict(lambda: Decimal(0))
    for tx in transactions:
        sums[tx.kind] += tx.amount
    return KindTotals(
        income=sums[TransactionKind.INCOME],
        expense=sums[TransactionKind.EXPENSE],
        investment=sums[TransactionKind.INVESTMENT],
    )


def _catalog_names(catalog: Iterable[ProductCatalogEntry]) -> dict[str, str]:
    return {entry.product_id: entry.normalized_name for entry in catalog}


def product_bucket_key(tx: LedgerTransaction, id_to_name: dict[str, str]) -> str:
    if tx.product_id and tx.product_id in id_to_name:
        return id_to_name[tx.product_id]
    return normalize_label(tx.label or tx.category or UNKNOWN_PRODUCT)


def group_by_product(
    transactions: Iterable[LedgerTransaction],
    catalog: Sequence[ProductCatalogEntry],
) -> dict[str, list[LedgerTransaction]]:
    """Bucket transactions by catalog product, falling back to their own label.

    Every catalog product gets a bucket, even when nothing maps to it.
    """
    id_to_name = _catalog_names(catalog)
    buckets: dict[str, list[LedgerTransaction]] = {}
    for entry in catalog:
        buckets.setdefault(entry.normalized_name, [])

    for tx in transactions:
        buckets.setdefault(product_bucket_key(tx, id_to_name), []).append(tx)

    return {key: sort_transactions(bucket) for key, bucket in buckets.items()}


def revenue_by_product(
    transactions: Iterable[LedgerTransaction],
    catalog: Sequence[ProductCatalogEntry],
) -> dict[str, Decimal]:
    """Income per product bucket from live transactions.

    A catalog product with no live transactions falls back to its precomputed total.
    """
    grouped = group_by_product(transactions, catalog)
    stored_totals: dict[str, Decimal] = {}
    for entry in catalog:
        if entry.total_revenue is not None:
            stored_totals.setdefault(entry.normalized_name, entry.total_revenue)

    revenue: dict[str, Decimal] = {}
    for key, bucket in grouped.items():
        if bucket:
            revenue[key] = sum_by_kind(bucket).income
        else:
            revenue[key] = stored_totals.get(key, Decimal(0))
    return revenue


def income_by_stream(transactions: Iterable[LedgerTransaction]) -> list[tuple[str, Decimal]]:
    totals: dict[str, Decimal] = defaultdict(lambda: Decimal(0))
    for tx in transactions:
        if tx.kind == TransactionKind.INCOME and tx.stream:
            totals[tx.stream] += tx.amount
    positive = [(stream, total) for stream, total in totals.items() if total > 0]
    return sorted(positive, key=lambda item: item[1], reverse=True)


@dataclass(frozen=True)
class PeriodBucket:
    period_key: str
    transactions: list[LedgerTransaction]
    totals: KindTotals


def month_key(day: dt.date) -> str:
    return f"{day.year:04d}-{day.month:02d}"


def group_by_month(transactions: Iterable[LedgerTransaction], *, year: int | None = None) -> list[PeriodBucket]:
    """Group by ``YYYY-MM``, newest month first. Undated transactions are skipped."""
    groups: dict[str, list[LedgerTransaction]] = defaultdict(list)
    for tx in transactions:
        if tx.date is None:
            continue
        if year is not None and tx.date.year != year:
            continue
        groups[month_key(tx.date)].append(tx)

    return [
        PeriodBucket(period_key=key, transactions=sort_transactions(groups[key]), totals=sum_by_kind(groups[key]))
        for key in sorted(groups, reverse=True)
    ]


@dataclass(frozen=True)
class MonthSummary:
    month: int
    label: str
    totals: KindTotals


def monthly_series(transactions: Iterable[LedgerTransaction], year: int) -> list[MonthSummary]:
    """Twelve entries, January first, zero-filled."""
    per_month: dict[int, list[LedgerTransaction]] = defaultdict(list)
    for tx in transactions:
        if tx.date is not None and tx.date.year == year:
            per_month[tx.date.month].append(tx)
    return [
        MonthSummary(month=month, label=dt.date(year, month, 1).strftime("%b"), totals=sum_by_kind(per_month[month]))
        for month in range(1, 13)
    ]


@dataclass(frozen=True)
class StreamMonth:
    month: int
    label: str
    amounts: dict[str, Decimal]

    @property
    def total(self) -> Decimal:
        return sum(self.amounts.values(), start=Decimal(0))


@dataclass(frozen=True)
class StreamSeries:
    streams: list[str]
    months: list[StreamMonth]

    def yearly_total(self, stream: str) -> Decimal:
        return sum((month.amounts.get(stream, Decimal(0)) for month in self.months), start=Decimal(0))

    def month(self, month: int) -> StreamMonth | None:
        return self.months[month - 1] if 1 <= month <= len(self.months) else None


def monthly_stream_series(transactions: Iterable[LedgerTransaction], year: int) -> StreamSeries:
    """Income per stream for every month of ``year``, January first.

    Streams are ordered by their yearly total, largest first, and every month
    carries an amount for every stream. Income without a stream is left out.
    """
    per_stream: dict[str, dict[int, Decimal]] = defaultdict(lambda: defaultdict(lambda: Decimal(0)))
    for tx in transactions:
        if tx.kind != TransactionKind.INCOME or not tx.stream:
            continue
        if tx.date is None or tx.date.year != year:
            continue
        per_stream[tx.stream][tx.date.month] += tx.amount

    streams = sorted(per_stream, key=lambda name: sum(per_stream[name].values(), start=Decimal(0)), reverse=True)
    months = [
        StreamMonth(
            month=month,
            label=dt.date(year, month, 1).strftime("%b"),
            amounts={stream: per_stream[stream].get(month, Decimal(0)) for stream in streams},
        )
        for month in range(1, 13)
    ]
    return StreamSeries(streams=streams, months=months)


@dataclass(frozen=True)
class RevenuePoint:
    label: str
    revenue: Decimal


def weekly_revenue(
    transactions: Iterable[LedgerTransaction],
    *,
    now: dt.date,
    weeks: int = 12,
) -> list[RevenuePoint]:
    """Income over the last ``weeks`` seven-day windows ending at ``now``, oldest first."""
    buckets = [Decimal(0)] * weeks
    for tx in transactions:
        if tx.kind != TransactionKind.INCOME or tx.date is None:
            continue
        days_ago = (now - tx.date).days
        week_index = days_ago // 7
        if 0 <= days_ago and week_index < weeks:
            buckets[weeks - 1 - week_index] += tx.amount
    return [RevenuePoint(label=f"Week {idx + 1}", revenue=total) for idx, total in enumerate(buckets)]


def daily_revenue(
    transactions: Iterable[LedgerTransaction],
    *,
    now: dt.date,
    days: int = 30,
) -> list[RevenuePoint]:
    """Income per day for the last ``days`` days ending at ``now``, oldest first."""
    window = [now - dt.timedelta(days=offset) for offset in range(days - 1, -1, -1)]
    totals: dict[dt.date, Decimal] = {day: Decimal(0) for day in window}
    for tx in transactions:
        if tx.kind == TransactionKind.INCOME and tx.date in totals:
            totals[tx.date] += tx.amount
    return [RevenuePoint(label=day.strftime("%m-%d"), revenue=totals[day]) for day in window]


@dataclass(frozen=True)
class Page(Generic[T]):
    items: list[T]
    page: int
    page_size: int
    total_items: int
    total_pages: int = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "total_pages", max(1, math.ceil(self.total_items / self.page_size)))

    @property
    def first_index(self) -> int:
        if not self.items:
            return 0
        return (self.page - 1) * self.page_size + 1

    @property
    def last_index(self) -> int:
        if not self.items:
            return 0
        return self.first_index + len(self.items) - 1

    @property
    def has_previous(self) -> bool:
        return self.page > 1

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @property
    def showing(self) -> str:
        return f"Showing {self.first_index}-{self.last_index} of {self.total_items}"


def paginate(items: Sequence[T], page: int, page_size: int) -> Page[T]:
    """Slice one 1-based page; out-of-range pages clamp to the nearest valid page."""
    if page_size <= 0:
        msg = "page_size must be > 0"
        raise ValueError(msg)

    total_pages = max(1, math.ceil(len(items) / page_size))
    current = min(max(1, page), total_pages)
    start = (current - 1) * page_size
    return Page(items=list(items[start : start + page_size]), page=current, page_size=page_size, total_items=len(items))


def iter_pages(items: Sequence[T], page_size: int) -> Iterator[Page[T]]:
    first = paginate(items, 1, page_size)
    yield first
    for page in range(2, first.total_pages + 1):
        yield paginate(items, page, page_size)


__all__ = [
    "KindTotals",
    "MonthSummary",
    "Page",
    "PeriodBucket",
    "RevenuePoint",
    "StreamMonth",
    "StreamSeries",
    "UNKNOWN_PRODUCT",
    "daily_revenue",
    "group_by_month",
    "group_by_product",
    "id_sort_key",
    "income_by_stream",
    "iter_pages",
    "month_key",
    "monthly_series",
    "monthly_stream_series",
    "normalize_label",
    "paginate",
    "product_bucket_key",
    "revenue_by_product",
    "sort_transactions",
    "sum_by_kind",
    "weekly_revenue",
]
