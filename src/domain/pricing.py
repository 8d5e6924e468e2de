from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Protocol


class PriceProvider(Protocol):
    """Current or historical asset price in a fiat currency."""

    def rate(self, base_id: str, quote_id: str, timestamp: datetime) -> Decimal: ...


def unrealized_pnl(quantity: Decimal, invested: Decimal, price: Decimal) -> Decimal:
    """Market value of ``quantity`` at ``price`` minus what was paid for it."""
    return price * quantity - invested


def pnl_percent(pnl: Decimal, invested: Decimal) -> Decimal:
    if invested <= 0:
        return Decimal(0)
    return pnl / invested * Decimal(100)


__all__ = ["PriceProvider", "pnl_percent", "unrealized_pnl"]
