from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from .ledger_api_client import LedgerApiClient
from .price_sources import CoinGeckoPriceSource, FallbackPriceSource, InternalPriceSource, PriceSnapshotSource
from .price_store import MemoryPriceStore, PriceStore
from .price_types import PriceLookupError

logger = logging.getLogger(__name__)

NO_SOURCE = "none"


class PriceService:
    """Cached spot prices; a failed lookup degrades to a zero rate instead of raising."""

    def __init__(
        self,
        source: PriceSnapshotSource,
        store: PriceStore,
    ) -> None:
        self.source = source
        self.store = store
        self.last_source = NO_SOURCE

    def get_price(
        self,
        base_id: str,
        quote_id: str,
        timestamp: datetime | None = None,
    ) -> Decimal:
        ts = timestamp or datetime.now(timezone.utc)
        existing = self.store.read(base_id=base_id, quote_id=quote_id, timestamp=ts)
        if existing is not None:
            return existing.rate
        return self.refresh(base_id, quote_id, ts)

    def refresh(self, base_id: str, quote_id: str, timestamp: datetime | None = None) -> Decimal:
        ts = timestamp or datetime.now(timezone.utc)
        try:
            fetched = self.source.fetch_snapshot(base_id=base_id, quote_id=quote_id, timestamp=ts)
        except PriceLookupError as exc:
            logger.warning("No price for %s/%s: %s", base_id, quote_id, exc)
            self.last_source = NO_SOURCE
            return Decimal(0)
        self.store.write(fetched)
        self.last_source = fetched.source
        return fetched.rate

    def rate(self, base_id: str, quote_id: str, timestamp: datetime) -> Decimal:
        return self.get_price(base_id, quote_id, timestamp)


def build_default_service(client: LedgerApiClient, *, refresh_seconds: int = 60) -> PriceService:
    validity = timedelta(seconds=refresh_seconds)
    source = FallbackPriceSource(
        [
            InternalPriceSource(client, validity=validity),
            CoinGeckoPriceSource(timeout=client.timeout, validity=validity),
        ]
    )
    return PriceService(source=source, store=MemoryPriceStore())


__all__ = ["NO_SOURCE", "PriceService", "build_default_service"]
