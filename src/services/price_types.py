from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal


@dataclass(frozen=True)
class PriceQuote:
    """Price quote with associated validity window."""

    timestamp: datetime
    base_id: str
    quote_id: str
    rate: Decimal
    source: str
    valid_from: datetime
    valid_to: datetime


class PriceLookupError(RuntimeError):
    def __init__(self, message: str, *, base_id: str, quote_id: str, source: str | None = None) -> None:
        super().__init__(message)
        self.base_id = base_id
        self.quote_id = quote_id
        self.source = source


__all__ = ["PriceLookupError", "PriceQuote"]
