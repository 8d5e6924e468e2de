from __future__ import annotations

from decimal import Decimal
from functools import cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Units of base currency (IDR) per one unit of the foreign currency.
DEFAULT_EXCHANGE_RATES: dict[str, Decimal] = {
    "IDR": Decimal("1"),
    "USD": Decimal("16668.25"),
    "EUR": Decimal("17730.05"),
    "SGD": Decimal("12439.93"),
}


class AppSettings(BaseSettings):
    api_base_url: str = "http://127.0.0.1:8124"
    request_timeout: float = 10.0

    base_currency: str = "IDR"
    display_currency: str = "IDR"
    exchange_rates: dict[str, Decimal] = Field(default_factory=lambda: dict(DEFAULT_EXCHANGE_RATES))

    tracked_asset: str = "BTC"
    price_refresh_seconds: int = Field(default=60, gt=0)

    roi_target: Decimal = Decimal("200")
    default_initial_capital: Decimal = Decimal("25000000")
    page_size: int = Field(default=10, gt=0)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="DASHBOARD_",
        extra="ignore",
    )


@cache
def config() -> AppSettings:
    return AppSettings()
