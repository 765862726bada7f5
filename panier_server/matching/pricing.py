from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from ..schemas import Ingredient, PriceBasis, Product
from .tables import DEFAULT_PIECE_WEIGHTS, lookup_piece_weight
from .units import (
    PRODUCT_VOLUME_UNITS,
    PRODUCT_WEIGHT_UNITS,
    VOLUME_UNITS,
    WEIGHT_UNITS,
    is_piece_unit,
    normalize_unit,
    parse_pack_size,
    to_base_units,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PriceQuote:
    price: float
    basis: PriceBasis


def quote_price(
    ingredient: Ingredient,
    product: Optional[Product],
    *,
    piece_weights: Optional[Mapping[str, float]] = None,
) -> PriceQuote:
    """Price the share of ``product`` needed to cover ``ingredient``.

    Branches, in order: piece need against a counted pack, piece need against a
    product sold by weight (via average piece weights), same-family weight or
    volume scaling. Anything else charges the whole product.
    """
    if product is None:
        return PriceQuote(0.0, PriceBasis.NONE)
    product_price = coerce_price(product.price_eur)
    if product_price is None:
        return PriceQuote(0.0, PriceBasis.NONE)

    size = parse_pack_size(product.size_value)
    if size is None:
        return PriceQuote(product_price, PriceBasis.UNSCALED)

    unit = normalize_unit(ingredient.unit)
    amount = max(float(ingredient.amount), 0.0)
    weights = DEFAULT_PIECE_WEIGHTS if piece_weights is None else piece_weights

    if is_piece_unit(unit):
        if size.is_packaging:
            if size.value > 0:
                return PriceQuote(product_price * (amount / size.value), PriceBasis.PACK)
        elif size.unit in PRODUCT_WEIGHT_UNITS:
            average_weight = lookup_piece_weight(weights, ingredient.name)
            product_weight = to_base_units(size.value, size.unit)
            if average_weight and product_weight > 0:
                total_weight_needed = amount * average_weight
                return PriceQuote(
                    (total_weight_needed / product_weight) * product_price,
                    PriceBasis.PIECE_WEIGHT,
                )

    same_weight = unit in WEIGHT_UNITS and size.unit in PRODUCT_WEIGHT_UNITS
    same_volume = unit in VOLUME_UNITS and size.unit in PRODUCT_VOLUME_UNITS
    if same_weight or same_volume:
        required_amount = to_base_units(amount, unit)
        product_amount = to_base_units(size.value, size.unit)
        if product_amount > 0:
            return PriceQuote((required_amount / product_amount) * product_price, PriceBasis.LINEAR)

    logger.debug(
        "Charging whole product ingredient=%s unit=%s product=%s size=%s",
        ingredient.name,
        unit,
        product.productId,
        product.size_value,
    )
    return PriceQuote(product_price, PriceBasis.UNSCALED)


def proportional_price(
    ingredient: Ingredient,
    product: Optional[Product],
    *,
    piece_weights: Optional[Mapping[str, float]] = None,
) -> float:
    return quote_price(ingredient, product, piece_weights=piece_weights).price


def coerce_price(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        parsed = float(value)
    else:
        try:
            parsed = float(str(value).strip().replace(",", "."))
        except ValueError:
            return None
    if not math.isfinite(parsed) or parsed < 0:
        return None
    return parsed


__all__ = ["PriceQuote", "coerce_price", "proportional_price", "quote_price"]
