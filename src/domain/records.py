from __future__ import annotations

import datetime as dt
from collections.abc import Mapping
from decimal import Decimal, DecimalException
from enum import StrEnum
from typing import Any, Callable, NewType

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .numbers import coerce, normalize

TransactionId = NewType("TransactionId", str)
ProductId = NewType("ProductId", str)

# Names a holding may use instead of its ticker symbol.
ASSET_ALIASES: dict[str, tuple[str, ...]] = {
    "BTC": ("bitcoin",),
    "ETH": ("ethereum",),
}


class TransactionKind(StrEnum):
    INCOME = "income"
    EXPENSE = "expense"
    INVESTMENT = "investment"


def parse_calendar_date(value: Any) -> dt.date | None:
    """Reduce a backend date (``YYYY-MM-DD`` or ISO datetime) to a calendar date."""
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    try:
        return dt.datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        pass
    try:
        return dt.date.fromisoformat(text[:10])
    except ValueError:
        return None


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _optional_text(value: Any) -> str | None:
    return _text(value) or None


def _derived(compute: Callable[[], Decimal]) -> Decimal:
    try:
        result = compute()
    except DecimalException:
        return Decimal(0)
    return result if result.is_finite() else Decimal(0)


def _first_present(raw: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if raw.get(key) is not None:
            return raw[key]
    return None


class LedgerTransaction(BaseModel):
    """A single income / expense / investment entry as returned by the backend."""

    model_config = ConfigDict(frozen=True)

    id: TransactionId
    kind: TransactionKind
    date: dt.date | None = None
    label: str = ""
    category: str = ""
    stream: str = ""
    amount: Decimal = Decimal(0)
    note: str | None = None
    product_id: ProductId | None = None
    price_idr: Decimal | None = None
    btc_amount: Decimal | None = None

    @model_validator(mode="before")
    @classmethod
    def _from_payload(cls, data: Any) -> Any:
        if not isinstance(data, Mapping):
            return data
        return {
            "id": _text(data.get("id")),
            "kind": _text(_first_present(data, "kind", "type")).lower(),
            "date": parse_calendar_date(data.get("date")),
            "label": _text(data.get("label") or data.get("category") or data.get("title")),
            "category": _text(data.get("category")),
            "stream": _text(data.get("stream")),
            "amount": coerce(_first_present(data, "amount", "amount_idr")),
            "note": _optional_text(data.get("note")),
            "product_id": _optional_text(data.get("product_id")),
            "price_idr": normalize(data.get("price_idr")),
            "btc_amount": normalize(_first_present(data, "btc_amount", "btcAmount")),
        }

    @model_validator(mode="after")
    def _validate_id(self) -> LedgerTransaction:
        if not self.id:
            raise ValueError("LedgerTransaction.id must be non-empty")
        return self

    @property
    def has_note(self) -> bool:
        return bool(self.note and self.note.strip())

    @property
    def unit_quantity(self) -> Decimal:
        # Older entries never stored a separate unit amount.
        return self.btc_amount if self.btc_amount is not None else self.amount


class PurchaseRecord(BaseModel):
    """One buy lot of an asset, listed under a holding."""

    model_config = ConfigDict(frozen=True)

    id: str | None = None
    date: dt.date | None = None
    quantity: Decimal = Decimal(0)
    invested: Decimal = Decimal(0)
    unit_price: Decimal = Decimal(0)
    note: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _from_payload(cls, data: Any) -> Any:
        if not isinstance(data, Mapping):
            return data
        quantity = coerce(_first_present(data, "quantity", "amount"))
        price = normalize(_first_present(data, "unit_price", "price_idr"))
        invested = coerce(_first_present(data, "invested", "invested_idr", "investedIdr"))
        if not invested and price:
            invested = _derived(lambda: price * quantity)
        if not price:
            price = _derived(lambda: invested / quantity) if quantity else Decimal(0)
        return {
            "id": _optional_text(data.get("id")),
            "date": parse_calendar_date(data.get("date")),
            "quantity": quantity,
            "invested": invested,
            "unit_price": price,
            "note": _optional_text(_first_present(data, "note", "notes", "description")),
        }


class Holding(BaseModel):
    model_config = ConfigDict(frozen=True)

    symbol: str = ""
    name: str = ""
    quantity: Decimal = Decimal(0)
    total_invested: Decimal = Decimal(0)
    note: str | None = None
    buys: list[PurchaseRecord] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _from_payload(cls, data: Any) -> Any:
        if not isinstance(data, Mapping):
            return data
        raw_buys = data.get("buys")
        buys = raw_buys if isinstance(raw_buys, list) else []
        return {
            "symbol": _text(data.get("symbol")),
            "name": _text(data.get("name")),
            "quantity": coerce(_first_present(data, "quantity", "amount")),
            "total_invested": coerce(_first_present(data, "total_invested", "total_invested_idr", "totalInvestedIdr")),
            "note": _optional_text(_first_present(data, "note", "description")),
            # A garbled lot is dropped; the rest of the holding still renders.
            "buys": [buy for buy in buys if isinstance(buy, (Mapping, PurchaseRecord))],
        }

    def matches_asset(self, asset: str) -> bool:
        asset_lower = asset.lower()
        symbol = self.symbol.lower()
        name = self.name.lower()
        if symbol == asset_lower or (symbol and asset_lower in symbol):
            return True
        return any(alias in name for alias in ASSET_ALIASES.get(asset.upper(), ()))


class ProductCatalogEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    product_id: ProductId
    name: str
    category: str = "General"
    stream: str = ""
    enabled: bool = True
    url_id: str | None = None
    price: Decimal | None = None
    total_revenue: Decimal | None = None

    @model_validator(mode="before")
    @classmethod
    def _from_payload(cls, data: Any) -> Any:
        if not isinstance(data, Mapping):
            return data
        enabled = data.get("enabled")
        return {
            "product_id": _text(_first_present(data, "product_id", "id")),
            "name": _text(data.get("name") or data.get("label")),
            "category": _text(data.get("category")) or "General",
            "stream": _text(data.get("stream") or data.get("client")),
            "enabled": True if enabled is None else enabled,
            "url_id": _optional_text(data.get("url_id")),
            "price": normalize(data.get("price")),
            "total_revenue": normalize(data.get("total_revenue")),
        }

    @model_validator(mode="after")
    def _validate_fields(self) -> ProductCatalogEntry:
        if not self.product_id:
            raise ValueError("ProductCatalogEntry.product_id must be non-empty")
        if not self.name:
            raise ValueError("ProductCatalogEntry.name must be non-empty")
        return self

    @property
    def normalized_name(self) -> str:
        return self.name.casefold().strip()


class CapitalItem(BaseModel):
    """An initial-capital line item, optionally depreciated straight-line."""

    model_config = ConfigDict(frozen=True)

    id: str = ""
    name: str = ""
    amount: Decimal = Decimal(0)
    depreciable: bool = False
    period_months: int = 12
    residual: Decimal = Decimal(0)

    @model_validator(mode="before")
    @classmethod
    def _from_payload(cls, data: Any) -> Any:
        if not isinstance(data, Mapping):
            return data
        period = normalize(_first_present(data, "period_months", "periode"))
        depreciable = data.get("depreciable")
        return {
            "id": _text(data.get("id")),
            "name": _text(data.get("name")),
            "amount": coerce(data.get("amount")),
            "depreciable": depreciable if depreciable is not None else False,
            "period_months": int(period) if period is not None else 12,
            "residual": coerce(_first_present(data, "residual", "residu")),
        }


class LegacyCapital(BaseModel):
    """Single ``{initialModal, periode, residu}`` triple used before itemized capital existed."""

    model_config = ConfigDict(frozen=True)

    initial_capital: Decimal = Decimal(0)
    period_months: int = 0
    residual: Decimal = Decimal(0)

    @model_validator(mode="before")
    @classmethod
    def _from_payload(cls, data: Any) -> Any:
        if not isinstance(data, Mapping):
            return data
        period = normalize(_first_present(data, "period_months", "periode"))
        return {
            "initial_capital": coerce(_first_present(data, "initial_capital", "initialModal")),
            "period_months": int(period) if period is not None else 0,
            "residual": coerce(_first_present(data, "residual", "residu")),
        }


class CapitalStructure(BaseModel):
    model_config = ConfigDict(frozen=True)

    items: list[CapitalItem] = Field(default_factory=list)
    legacy: LegacyCapital | None = None


__all__ = [
    "ASSET_ALIASES",
    "CapitalItem",
    "CapitalStructure",
    "Holding",
    "LedgerTransaction",
    "LegacyCapital",
    "ProductCatalogEntry",
    "ProductId",
    "PurchaseRecord",
    "TransactionId",
    "TransactionKind",
    "parse_calendar_date",
]
