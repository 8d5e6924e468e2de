from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Protocol, Sequence

import requests

from domain.numbers import normalize

from .ledger_api_client import LedgerApiClient, LedgerApiError
from .price_types import PriceLookupError, PriceQuote

logger = logging.getLogger(__name__)

COINGECKO_IDS: dict[str, str] = {
    "BTC": "bitcoin",
    "ETH": "ethereum",
}


class PriceSnapshotSource(Protocol):
    def fetch_snapshot(self, base_id: str, quote_id: str, timestamp: datetime) -> PriceQuote: ...


def _pick(payload: Any, *keys: str) -> Any:
    if not isinstance(payload, Mapping):
        return None
    for key in keys:
        if payload.get(key) is not None:
            return payload[key]
    return None


class InternalPriceSource(PriceSnapshotSource):
    """Spot price published by the dashboard backend itself."""

    name = "internal"

    def __init__(self, client: LedgerApiClient, *, validity: timedelta = timedelta(minutes=1)) -> None:
        self._client = client
        self._validity = validity

    def fetch_snapshot(self, base_id: str, quote_id: str, timestamp: datetime) -> PriceQuote:
        base = base_id.lower()
        quote = quote_id.lower()
        try:
            payload = self._client.get_crypto_prices(symbols=base, vs_currency=quote)
        except LedgerApiError as exc:
            raise PriceLookupError(str(exc), base_id=base_id, quote_id=quote_id, source=self.name) from exc

        # Either {"btc": {"idr": ...}}, {"idr": ...} or {"price_idr": ...}.
        candidate = _pick(payload, base, base.upper())
        if candidate is None:
            candidate = payload
        raw = _pick(candidate, quote, quote.upper(), f"price_{quote}")
        if raw is None:
            raw = _pick(payload, f"price_{quote}")

        rate = normalize(raw)
        if rate is None:
            raise PriceLookupError("Internal price payload has no usable rate", base_id=base_id, quote_id=quote_id)
        return PriceQuote(
            timestamp=timestamp,
            base_id=base_id.upper(),
            quote_id=quote_id.upper(),
            rate=rate,
            source=self.name,
            valid_from=timestamp,
            valid_to=timestamp + self._validity,
        )


class CoinGeckoPriceSource(PriceSnapshotSource):
    name = "coingecko"

    def __init__(
        self,
        *,
        base_url: str = "https://api.coingecko.com/api/v3",
        timeout: float = 10.0,
        session: requests.Session | None = None,
        validity: timedelta = timedelta(minutes=1),
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()
        self._validity = validity

    def fetch_snapshot(self, base_id: str, quote_id: str, timestamp: datetime) -> PriceQuote:
        coin_id = COINGECKO_IDS.get(base_id.upper())
        if coin_id is None:
            raise PriceLookupError(f"No CoinGecko id for {base_id}", base_id=base_id, quote_id=quote_id)

        quote = quote_id.lower()
        try:
            response = self._session.get(
                f"{self.base_url}/simple/price",
                params={"ids": coin_id, "vs_currencies": quote},
                timeout=self.timeout,
            )
            response.raise_for_status()
            payload = response.json()
        except (requests.RequestException, ValueError) as exc:
            raise PriceLookupError(
                "CoinGecko request failed",
                base_id=base_id,
                quote_id=quote_id,
                source=self.name,
            ) from exc

        rate = normalize(_pick(_pick(payload, coin_id), quote, quote.upper()))
        if rate is None:
            raise PriceLookupError("CoinGecko payload has no usable rate", base_id=base_id, quote_id=quote_id)
        return PriceQuote(
            timestamp=timestamp,
            base_id=base_id.upper(),
            quote_id=quote_id.upper(),
            rate=rate,
            source=self.name,
            valid_from=timestamp,
            valid_to=timestamp + self._validity,
        )


class FallbackPriceSource(PriceSnapshotSource):
    """Ask each source in turn; the first usable quote wins."""

    def __init__(self, sources: Sequence[PriceSnapshotSource]) -> None:
        if not sources:
            msg = "sources must contain at least one entry"
            raise ValueError(msg)
        self._sources = tuple(sources)

    def fetch_snapshot(self, base_id: str, quote_id: str, timestamp: datetime) -> PriceQuote:
        for source in self._sources:
            try:
                return source.fetch_snapshot(base_id, quote_id, timestamp)
            except PriceLookupError as exc:
                logger.warning("Price source %s failed for %s/%s: %s", type(source).__name__, base_id, quote_id, exc)
        raise PriceLookupError("All price sources failed", base_id=base_id, quote_id=quote_id)


class StaticPriceSource(PriceSnapshotSource):
    """Fixed rates, for offline runs."""

    name = "static"

    def __init__(self, rates: Mapping[tuple[str, str], Decimal]) -> None:
        self._rates = {(base.upper(), quote.upper()): rate for (base, quote), rate in rates.items()}

    def fetch_snapshot(self, base_id: str, quote_id: str, timestamp: datetime) -> PriceQuote:
        key = (base_id.upper(), quote_id.upper())
        rate = self._rates.get(key)
        if rate is None:
            raise PriceLookupError(f"No static rate for {key[0]}/{key[1]}", base_id=base_id, quote_id=quote_id)
        return PriceQuote(
            timestamp=timestamp,
            base_id=key[0],
            quote_id=key[1],
            rate=rate,
            source=self.name,
            valid_from=timestamp,
            valid_to=datetime.max.replace(tzinfo=timestamp.tzinfo),
        )


__all__ = [
    "COINGECKO_IDS",
    "CoinGeckoPriceSource",
    "FallbackPriceSource",
    "InternalPriceSource",
    "PriceSnapshotSource",
    "StaticPriceSource",
]
