from __future__ import annotations

import csv
import logging
from pathlib import Path

from pydantic import ValidationError

from domain.numbers import normalize
from domain.records import ProductCatalogEntry

logger = logging.getLogger(__name__)

_PRODUCT_ID_COLUMNS = ("product_id", "id", "productid")
_NAME_COLUMNS = ("name", "label")
_STREAM_COLUMNS = ("stream", "client")
_PRICE_COLUMNS = ("price", "amount")


def load_catalog_csv(csv_path: Path) -> list[ProductCatalogEntry]:
    """Load catalog products from a CSV export.

    Headers are matched case-insensitively: product_id,name[,label][,category][,stream][,price].
    Rows without a product id or a name are skipped.
    """

    if not csv_path.exists():
        return []

    with csv_path.open(encoding="utf-8-sig", newline="") as handle:
        reader = csv.DictReader(handle)
        if reader.fieldnames is None:
            raise ValueError(f"Catalog CSV {csv_path} is empty or missing headers")

        headers = {name.strip().lower() for name in reader.fieldnames if name}
        if not headers.intersection(_PRODUCT_ID_COLUMNS) or not headers.intersection(_NAME_COLUMNS):
            raise ValueError(f"Catalog CSV {csv_path} needs a product_id and a name column")

        products: list[ProductCatalogEntry] = []
        for line_no, raw in enumerate(reader, start=2):
            # Overflow cells of ragged rows land under a None key.
            row = {key.strip().lower(): (value or "").strip() for key, value in raw.items() if key is not None}
            product = _build_product(row)
            if product is None:
                logger.info("Skipping catalog row %d in %s: missing product_id or name", line_no, csv_path)
                continue
            products.append(product)

    return products


def _first(row: dict[str, str], columns: tuple[str, ...]) -> str:
    for column in columns:
        if row.get(column):
            return row[column]
    return ""


def _build_product(row: dict[str, str]) -> ProductCatalogEntry | None:
    try:
        return ProductCatalogEntry.model_validate(
            {
                "product_id": _first(row, _PRODUCT_ID_COLUMNS),
                "name": _first(row, _NAME_COLUMNS),
                "category": row.get("category") or "General",
                "stream": _first(row, _STREAM_COLUMNS),
                "price": normalize(_first(row, _PRICE_COLUMNS)),
            }
        )
    except ValidationError:
        return None
