from __future__ import annotations

import math
import re
from collections.abc import Mapping
from decimal import Decimal, DecimalException
from typing import Any

# Probed in this order when a backend sends a nested object where a number is expected.
AMOUNT_KEYS: tuple[str, ...] = ("invested_idr", "total_invested_idr", "price_idr", "amount", "value")

_MAX_DEPTH = 16
# Backend numbers are IEEE doubles: larger magnitudes are unusable and smaller ones read as zero.
_MAX_ADJUSTED_EXPONENT = 308
_MIN_ADJUSTED_EXPONENT = -324
_NUMBER_RE = re.compile(r"(?P<body>[.,]?\d[\d.,]*)(?P<exp>[eE][-+]?\d+)?")
_IGNORED_CHARS = re.compile(r"[\s'_]")
_MINUS_SIGNS = ("-", "−")


def normalize(value: Any) -> Decimal | None:
    """Convert a loosely-typed JSON value into a finite Decimal.

    Returns None for anything that does not carry a usable number. Never raises.
    """
    return _normalize(value, 0)


def coerce(value: Any) -> Decimal:
    result = _normalize(value, 0)
    return result if result is not None else Decimal(0)


def _normalize(value: Any, depth: int) -> Decimal | None:
    if value is None or isinstance(value, bool) or depth > _MAX_DEPTH:
        return None
    if isinstance(value, Decimal):
        return _in_range(value)
    if isinstance(value, int):
        return _in_range(Decimal(value))
    if isinstance(value, float):
        return Decimal(repr(value)) if math.isfinite(value) else None
    if isinstance(value, str):
        return parse_number_text(value)
    if isinstance(value, Mapping):
        return _normalize_mapping(value, depth)
    if isinstance(value, (list, tuple)):
        for item in value:
            result = _normalize(item, depth + 1)
            if result is not None:
                return result
    return None


def _normalize_mapping(value: Mapping[Any, Any], depth: int) -> Decimal | None:
    for key in AMOUNT_KEYS:
        if value.get(key) is not None:
            return _normalize(value[key], depth + 1)
    for item in value.values():
        result = _normalize(item, depth + 1)
        if result is not None:
            return result
    return None


def parse_number_text(text: str) -> Decimal | None:
    """Parse human-entered amounts such as ``"Rp 12.000.000"`` or ``"5,000"``."""
    compact = _IGNORED_CHARS.sub("", text)
    matches = list(_NUMBER_RE.finditer(compact))
    if len(matches) != 1:
        return None

    match = matches[0]
    canonical = _resolve_separators(match.group("body").rstrip(".,"))
    if canonical is None:
        return None

    prefix = compact[: match.start()]
    sign = "-" if any(minus in prefix for minus in _MINUS_SIGNS) else ""
    exponent = match.group("exp") or ""
    try:
        result = Decimal(f"{sign}{canonical}{exponent}")
    except DecimalException:
        return None
    return _in_range(result)


def _in_range(value: Decimal) -> Decimal | None:
    if not value.is_finite():
        return None
    if not value:
        return value
    exponent = value.adjusted()
    if exponent > _MAX_ADJUSTED_EXPONENT:
        return None
    if exponent < _MIN_ADJUSTED_EXPONENT:
        return Decimal(0)
    return value


def _resolve_separators(body: str) -> str | None:
    if not body:
        return None

    has_comma = "," in body
    has_dot = "." in body
    if has_comma and has_dot:
        decimal_sep = "," if body.rfind(",") > body.rfind(".") else "."
        group_sep = "." if decimal_sep == "," else ","
        if body.count(decimal_sep) > 1:
            return None
        return body.replace(group_sep, "").replace(decimal_sep, ".")
    if not (has_comma or has_dot):
        return body

    sep = "," if has_comma else "."
    if body.count(sep) > 1:
        return body.replace(sep, "")

    int_part, frac_part = body.split(sep)
    # "12.000" in the base currency is twelve thousand; "0.001" is still a fraction.
    if len(frac_part) == 3 and int_part.strip("0"):
        return int_part + frac_part
    return f"{int_part or '0'}.{frac_part}"


__all__ = ["AMOUNT_KEYS", "coerce", "normalize", "parse_number_text"]
