"""Unit vocabulary, base-unit conversion and product size parsing."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional

# Multipliers into the "small" unit of each family: grams for mass, millilitres
# for volume. Spoon measures are approximate gram equivalents.
SMALL_UNIT_MULTIPLIERS: Dict[str, float] = {
    "kg": 1000,
    "g": 1,
    "l": 1000,
    "cl": 10,
    "ml": 1,
    "tsp": 5,
    "càc": 5,
    "tbsp": 15,
    "càs": 15,
}

PIECE_UNITS = frozenset({"piece", "pièce", "pieces", "pièces"})

UNIT_TAGS = frozenset(SMALL_UNIT_MULTIPLIERS) | PIECE_UNITS

WEIGHT_UNITS = frozenset({"g", "kg"})
VOLUME_UNITS = frozenset({"ml", "cl", "l", "tsp", "tbsp", "càc", "càs"})
PRODUCT_WEIGHT_UNITS = frozenset({"g", "kg"})
PRODUCT_VOLUME_UNITS = frozenset({"ml", "cl", "l"})

FAMILY_MULTIPLIERS: Dict[str, Dict[str, float]] = {
    "weight": {"kg": 1000, "g": 1, "mg": 0.001},
    "volume": {"l": 1000, "ml": 1, "cl": 10},
}

SIZE_PATTERN = re.compile(
    r"(\d+(?:[\.,]\d+)?)\s*(kg|g|l|ml|cl|piece|pièce|pieces|pièces)(?![a-zà-ÿ])",
    re.IGNORECASE,
)
PACK_PATTERN = re.compile(r"(\d+)\s*par\s*pack", re.IGNORECASE)


@dataclass(frozen=True)
class ParsedSize:
    value: float
    unit: str
    is_packaging: bool = False


def normalize_unit(unit: Any) -> str:
    if unit is None:
        return ""
    return str(unit).strip().lower()


def to_base_units(amount: float, unit: Any) -> float:
    """Convert ``amount`` to grams or millilitres.

    Count units and unrecognised units pass through unchanged.
    """
    multiplier = SMALL_UNIT_MULTIPLIERS.get(normalize_unit(unit))
    if multiplier is None:
        return amount
    return amount * multiplier


def is_piece_unit(unit: Any) -> bool:
    normalized = normalize_unit(unit)
    return "piece" in normalized or "pièce" in normalized


def unit_family(unit: Any) -> Optional[str]:
    normalized = normalize_unit(unit)
    if is_piece_unit(normalized):
        return "piece"
    for family, multipliers in FAMILY_MULTIPLIERS.items():
        if normalized in multipliers:
            return family
    return None


def to_family_base(amount: float, unit: Any) -> float:
    normalized = normalize_unit(unit)
    for multipliers in FAMILY_MULTIPLIERS.values():
        if normalized in multipliers:
            return amount * multipliers[normalized]
    return amount


def parse_size(size_value: Any) -> Optional[ParsedSize]:
    """Read the first ``<number><unit>`` group of a free-form size descriptor."""
    if size_value is None:
        return None
    text = str(size_value).strip().lower()
    if not text:
        return None
    match = SIZE_PATTERN.search(text)
    if not match:
        return None
    value = _parse_decimal(match.group(1))
    if value is None:
        return None
    return ParsedSize(value=value, unit=match.group(2).lower(), is_packaging=False)


def parse_pack_size(size_value: Any) -> Optional[ParsedSize]:
    """Like :func:`parse_size`, but ``"<N> par pack"`` descriptors win and count as packaging."""
    if size_value is None:
        return None
    text = str(size_value).strip()
    pack_match = PACK_PATTERN.search(text)
    if pack_match:
        return ParsedSize(value=float(pack_match.group(1)), unit="piece", is_packaging=True)
    return parse_size(text)


def _parse_decimal(value: str) -> Optional[float]:
    try:
        parsed = float(value.replace(",", "."))
    except ValueError:
        return None
    return parsed if math.isfinite(parsed) else None


__all__ = [
    "ParsedSize",
    "PIECE_UNITS",
    "UNIT_TAGS",
    "is_piece_unit",
    "normalize_unit",
    "parse_pack_size",
    "parse_size",
    "to_base_units",
    "to_family_base",
    "unit_family",
]
