from __future__ import annotations

from collections import defaultdict
from datetime import datetime
from typing import Protocol

from .price_types import PriceQuote


class PriceStore(Protocol):
    def write(self, quote: PriceQuote) -> None: ...

    def read(self, base_id: str, quote_id: str, timestamp: datetime) -> PriceQuote | None: ...


class MemoryPriceStore(PriceStore):
    """Process-local quote cache; the newest quote covering a timestamp wins."""

    def __init__(self, *, max_quotes_per_pair: int = 32) -> None:
        if max_quotes_per_pair <= 0:
            msg = "max_quotes_per_pair must be > 0"
            raise ValueError(msg)
        self._max_quotes = max_quotes_per_pair
        self._quotes: dict[tuple[str, str], list[PriceQuote]] = defaultdict(list)

    def write(self, quote: PriceQuote) -> None:
        quotes = self._quotes[self._key(quote.base_id, quote.quote_id)]
        quotes.append(quote)
        if len(quotes) > self._max_quotes:
            del quotes[: len(quotes) - self._max_quotes]

    def read(self, base_id: str, quote_id: str, timestamp: datetime) -> PriceQuote | None:
        best: PriceQuote | None = None
        for quote in self._quotes.get(self._key(base_id, quote_id), []):
            if not (quote.valid_from <= timestamp <= quote.valid_to):
                continue
            if best is None or quote.timestamp > best.timestamp:
                best = quote
        return best

    def clear(self) -> None:
        self._quotes.clear()

    @staticmethod
    def _key(base_id: str, quote_id: str) -> tuple[str, str]:
        return base_id.upper(), quote_id.upper()


__all__ = ["MemoryPriceStore", "PriceStore"]
