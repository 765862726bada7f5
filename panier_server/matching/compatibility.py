from __future__ import annotations

from typing import List, Sequence

from ..schemas import CompatibilityAnnotation, Ingredient, Product
from .tables import DEFAULT_MAX_RATIO, DEFAULT_MIN_RATIO
from .units import parse_pack_size, to_family_base, unit_family


def is_compatible(
    ingredient: Ingredient,
    product: Product,
    *,
    min_ratio: float = DEFAULT_MIN_RATIO,
    max_ratio: float = DEFAULT_MAX_RATIO,
) -> bool:
    """Return whether the product's package size reasonably covers the ingredient need.

    Unknown sizes and cross-family comparisons are never held against a product.
    Weight and volume packs must hold between ``min_ratio`` and ``max_ratio`` times
    the need (both bounds inclusive); piece packs must hold at least the need.
    """
    size = parse_pack_size(product.size_value)
    if size is None:
        return True
    ingredient_family = unit_family(ingredient.unit)
    product_family = unit_family(size.unit)
    if ingredient_family is None or ingredient_family != product_family:
        return True

    ingredient_amount = to_family_base(ingredient.amount, ingredient.unit)
    product_amount = to_family_base(size.value, size.unit)
    if ingredient_family == "piece":
        return product_amount >= ingredient_amount
    if ingredient_amount <= 0:
        return True
    ratio = product_amount / ingredient_amount
    return min_ratio <= ratio <= max_ratio


def annotate_compatibility(
    ingredient: Ingredient,
    products: Sequence[Product],
    *,
    min_ratio: float = DEFAULT_MIN_RATIO,
    max_ratio: float = DEFAULT_MAX_RATIO,
) -> List[CompatibilityAnnotation]:
    return [
        CompatibilityAnnotation(
            productId=product.productId,
            compatible=is_compatible(ingredient, product, min_ratio=min_ratio, max_ratio=max_ratio),
        )
        for product in products
    ]


__all__ = ["annotate_compatibility", "is_compatible"]
