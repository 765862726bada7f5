from __future__ import annotations

from typing import Optional

from panier_server.schemas import CategorizedIngredient, Ingredient, Product


def make_product(
    product_id: str,
    name: str,
    *,
    price: Optional[float] = 1.0,
    size: Optional[str] = None,
    category: Optional[str] = None,
    brand: Optional[str] = None,
    available: bool = True,
) -> Product:
    return Product(
        productId=product_id,
        name=name,
        brand=brand,
        main_category=category,
        price_eur=price,
        size_value=size,
        available=available,
    )


def make_ingredient(name: str, amount: float = 1, unit: str = "g", **extra) -> Ingredient:
    return Ingredient(name=name, amount=amount, unit=unit, **extra)


def make_categorized(name: str, amount: float = 1, unit: str = "g", categories=None, **extra) -> CategorizedIngredient:
    return CategorizedIngredient(name=name, amount=amount, unit=unit, categories=categories or [], **extra)
