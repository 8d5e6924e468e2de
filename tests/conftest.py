from datetime import datetime, timezone

import pytest

from config import AppSettings
from tests.helpers.factories import reset_ids
from tests.helpers.fixed_price_provider import FixedPriceProvider

FIXED_NOW = datetime(2025, 3, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def _reset_ids() -> None:
    reset_ids()


@pytest.fixture(scope="function")
def settings() -> AppSettings:
    # Constructed with explicit values so a developer's .env cannot leak into tests.
    return AppSettings(_env_file=None, display_currency="IDR", tracked_asset="BTC")


@pytest.fixture(scope="function")
def price_provider() -> FixedPriceProvider:
    return FixedPriceProvider("1500000000")


@pytest.fixture(scope="function")
def fixed_now() -> datetime:
    return FIXED_NOW
