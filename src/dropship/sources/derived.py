"""
Fields computed from raw measurement columns.

Weight_Ratio compares the volume-based weight of an item with its scale
weight: ``(L * W * H) / 10000 - weight / 1000``. Positive means the item is
lighter than its volume suggests, negative means heavier.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from decimal import Decimal, InvalidOperation
from typing import Any

MEASUREMENT_FIELDS = ("Length", "Width", "Height", "Weight")


def weight_ratio(length: Decimal, width: Decimal, height: Decimal, weight: Decimal) -> Decimal:
    """
    Examples:
        >>> weight_ratio(Decimal(100), Decimal(50), Decimal(20), Decimal(2500))
        Decimal('7.5')
    """
    return (length * width * height) / Decimal(10000) - weight / Decimal(1000)


def measurement(value: Any) -> Decimal:
    """Coerce a measurement column to Decimal; NULL and unparseable values count as 0."""
    if value is None or isinstance(value, bool):
        return Decimal(0)
    if isinstance(value, Decimal):
        return value if value.is_finite() else Decimal(0)
    if isinstance(value, float):
        return Decimal(repr(value)) if math.isfinite(value) else Decimal(0)
    try:
        return Decimal(str(value).strip())
    except InvalidOperation:
        return Decimal(0)


def find_key(fields: Mapping[str, Any], name: str) -> str | None:
    """Case-insensitive key lookup, as column names come back in table case."""
    if name in fields:
        return name
    lowered = name.lower()
    return next((key for key in fields if key.lower() == lowered), None)


def has_measurements(fields: Mapping[str, Any]) -> bool:
    return all(find_key(fields, name) is not None for name in MEASUREMENT_FIELDS)


def with_weight_ratio(fields: Mapping[str, Any], target: str = "Weight_Ratio") -> dict[str, Any]:
    """
    Copy of `fields` with `target` set to the computed weight ratio.

    Any stored value under `target` is replaced. Fields without all four
    measurement columns are returned unchanged.
    """
    result = dict(fields)
    if not has_measurements(fields):
        return result
    length, width, height, weight = (measurement(fields[find_key(fields, name)]) for name in MEASUREMENT_FIELDS)
    result[find_key(fields, target) or target] = weight_ratio(length, width, height, weight)
    return result
