from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from domain.records import (
    CapitalItem,
    CapitalStructure,
    Holding,
    LedgerTransaction,
    LegacyCapital,
    ProductCatalogEntry,
)

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

_LEGACY_CAPITAL_KEYS = ("initialModal", "initial_capital")


def unwrap_collection(payload: Any, *keys: str) -> list[Any]:
    """Accept either a bare JSON array or an object wrapping it under one of ``keys``."""
    if isinstance(payload, list):
        return payload
    if isinstance(payload, Mapping):
        for key in keys:
            value = payload.get(key)
            if isinstance(value, list):
                return value
    return []


def _parse_each(entries: list[Any], model: type[ModelT], kind: str) -> list[ModelT]:
    parsed: list[ModelT] = []
    for idx, entry in enumerate(entries):
        try:
            parsed.append(model.model_validate(entry))
        except ValidationError as exc:
            fields = ", ".join(".".join(str(part) for part in err["loc"]) or "<root>" for err in exc.errors())
            logger.info("Skipping malformed %s #%d (%s)", kind, idx, fields)
    if len(parsed) != len(entries):
        logger.info("Parsed %d of %d %s entries", len(parsed), len(entries), kind)
    return parsed


def parse_transactions(payload: Any) -> list[LedgerTransaction]:
    return _parse_each(unwrap_collection(payload, "transactions", "data"), LedgerTransaction, "transaction")


def parse_holdings(payload: Any) -> list[Holding]:
    return _parse_each(unwrap_collection(payload, "holdings", "data"), Holding, "holding")


def parse_catalog(payload: Any) -> list[ProductCatalogEntry]:
    return _parse_each(unwrap_collection(payload, "products", "items", "data"), ProductCatalogEntry, "product")


def parse_capital(payload: Any) -> CapitalStructure:
    """Itemized capital list, the legacy single triple, or both side by side."""
    items = _parse_each(unwrap_collection(payload, "items", "capital_items"), CapitalItem, "capital item")

    legacy: LegacyCapital | None = None
    if isinstance(payload, Mapping) and any(payload.get(key) is not None for key in _LEGACY_CAPITAL_KEYS):
        legacy = LegacyCapital.model_validate(payload)

    return CapitalStructure(items=items, legacy=legacy)


__all__ = [
    "parse_capital",
    "parse_catalog",
    "parse_holdings",
    "parse_transactions",
    "unwrap_collection",
]
