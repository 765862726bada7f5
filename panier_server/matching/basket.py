"""Basket-level operations shared by the service and the client preview."""

from __future__ import annotations

from datetime import date
from typing import Iterable, List, Mapping, Optional, Sequence

from ..schemas import Ingredient, MatchResult
from .errors import InputValidationError
from .pricing import quote_price

MIN_RESCALED_AMOUNT = 0.1


def rescale_ingredient(ingredient: Ingredient, ratio: float) -> Ingredient:
    amount = round(ingredient.amount * ratio, 1)
    return ingredient.model_copy(update={"amount": max(amount, MIN_RESCALED_AMOUNT)})


def rescale_matches(
    matches: Sequence[MatchResult],
    servings: int,
    new_servings: int,
    *,
    piece_weights: Optional[Mapping[str, float]] = None,
) -> List[MatchResult]:
    """Scale every ingredient amount by ``new_servings / servings`` and re-price."""
    if servings < 1 or new_servings < 1:
        raise InputValidationError("Servings must be at least 1")
    ratio = new_servings / servings
    rescaled: List[MatchResult] = []
    for match in matches:
        ingredient = rescale_ingredient(match.ingredient, ratio)
        update = {"ingredient": ingredient}
        if match.status == "ok":
            quote = quote_price(ingredient, match.selectedProduct, piece_weights=piece_weights)
            update["price"] = round(quote.price, 4)
            update["priceBasis"] = quote.basis
        rescaled.append(match.model_copy(update=update))
    return rescaled


def total_cost(matches: Iterable[MatchResult], excluded_product_ids: Iterable[str] = ()) -> float:
    excluded = {str(product_id) for product_id in excluded_product_ids or []}
    total = 0.0
    for match in matches:
        if match.selectedProduct is not None and match.selectedProduct.productId in excluded:
            continue
        total += match.price or 0.0
    return round(total, 2)


def cost_per_serving(total: float, servings: int) -> float:
    if servings < 1:
        return round(total, 2)
    return round(total / servings, 2)


def format_shopping_list(
    matches: Sequence[MatchResult],
    servings: int,
    *,
    excluded_product_ids: Iterable[str] = (),
    generated_on: Optional[date] = None,
) -> str:
    excluded = {str(product_id) for product_id in excluded_product_ids or []}
    day = generated_on or date.today()
    lines = [
        f"Liste de courses - {day.strftime('%d/%m/%Y')}",
        f"Pour {servings} personnes",
        "",
    ]
    kept: List[MatchResult] = []
    for match in matches:
        product = match.selectedProduct
        if product is not None and product.productId in excluded:
            continue
        kept.append(match)
        if product is None:
            lines.append(f"{match.ingredient.name} - Produit non trouvé")
            continue
        amount = _format_amount(match.ingredient.amount)
        lines.append(f"{product.name} - {amount}{match.ingredient.unit} - €{match.price:.2f}")
    lines.append("")
    lines.append(f"Total: €{total_cost(kept):.2f}")
    return "\n".join(lines)


def _format_amount(amount: float) -> str:
    if float(amount).is_integer():
        return str(int(amount))
    return f"{amount:g}"


__all__ = [
    "cost_per_serving",
    "format_shopping_list",
    "rescale_ingredient",
    "rescale_matches",
    "total_cost",
]
