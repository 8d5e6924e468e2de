from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, localcontext
from typing import Any

from domain.metrics import PercentChange
from domain.numbers import coerce


@dataclass(frozen=True)
class CurrencyStyle:
    prefix: str
    suffix: str
    decimals: int
    group_sep: str
    decimal_sep: str


CURRENCY_STYLES: dict[str, CurrencyStyle] = {
    "IDR": CurrencyStyle(prefix="Rp ", suffix="", decimals=0, group_sep=".", decimal_sep=","),
    "USD": CurrencyStyle(prefix="$", suffix="", decimals=2, group_sep=",", decimal_sep="."),
    "EUR": CurrencyStyle(prefix="", suffix=" €", decimals=2, group_sep=".", decimal_sep=","),
    "SGD": CurrencyStyle(prefix="S$", suffix="", decimals=2, group_sep=",", decimal_sep="."),
}


def format_decimal(value: Decimal) -> str:
    quantized = value.normalize()
    # Avoid scientific notation for integers.
    if quantized == quantized.to_integral():
        return f"{quantized:.0f}"
    return format(quantized, "f")


def _round_to(value: Decimal, decimals: int) -> Decimal:
    # quantize fails once the integer digits plus decimals exceed the context precision.
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, value.adjusted() + decimals + 2)
        return value.quantize(Decimal(1).scaleb(-decimals), rounding=ROUND_HALF_UP)


def format_grouped(value: Decimal, *, decimals: int = 0, group_sep: str = ".", decimal_sep: str = ",") -> str:
    rounded = _round_to(value, decimals)
    text = f"{rounded.copy_abs():,.{decimals}f}"
    return text.replace(",", "\0").replace(".", decimal_sep).replace("\0", group_sep)


def format_units(value: Any, decimals: int = 8) -> str:
    """Asset quantity with up to ``decimals`` fractional digits, trailing zeros stripped."""
    quantized = _round_to(coerce(value), decimals)
    if quantized == 0:
        return "0"
    return format_decimal(quantized)


def format_compact(value: Any) -> str:
    """Short axis label: 1.2B, 3.4M, 12K."""
    amount = coerce(value)
    if amount >= 1_000_000_000:
        return f"{amount / 1_000_000_000:.1f}B"
    if amount >= 1_000_000:
        return f"{amount / 1_000_000:.1f}M"
    if amount >= 1_000:
        return f"{amount / 1_000:.0f}K"
    return f"{amount:.0f}"


def format_change(change: PercentChange | None) -> str:
    if change is None:
        return "—"
    sign = "+" if change.is_positive else ""
    return f"{sign}{change.percent:.1f}%"


class CurrencyFormatter:
    """Render base-currency amounts in the display currency.

    ``rates`` hold base-currency units per one unit of each currency.
    """

    def __init__(
        self,
        currency: str = "IDR",
        *,
        rates: Mapping[str, Decimal] | None = None,
        base_currency: str = "IDR",
    ) -> None:
        self.currency = currency.upper()
        self.base_currency = base_currency.upper()
        self._rates = {code.upper(): Decimal(rate) for code, rate in (rates or {}).items()}
        self._style = CURRENCY_STYLES.get(self.currency, CURRENCY_STYLES["IDR"])

    @property
    def symbol(self) -> str:
        return (self._style.prefix or self._style.suffix).strip()

    def convert(self, amount: Any) -> Decimal:
        value = coerce(amount)
        if self.currency == self.base_currency:
            return value
        rate = self._rates.get(self.currency)
        if not rate:
            return value
        return value / rate

    def format(self, amount: Any) -> str:
        converted = self.convert(amount)
        style = self._style
        body = format_grouped(
            converted,
            decimals=style.decimals,
            group_sep=style.group_sep,
            decimal_sep=style.decimal_sep,
        )
        sign = "-" if converted < 0 and body.strip("0.,") else ""
        return f"{sign}{style.prefix}{body}{style.suffix}"


def format_currency(value: Any, currency: str = "IDR", *, rates: Mapping[str, Decimal] | None = None) -> str:
    return CurrencyFormatter(currency, rates=rates).format(value)
