from __future__ import annotations

import logging
from typing import Iterable, List, Sequence

from ..schemas import Ingredient, Product
from .tables import DEFAULT_CANDIDATE_LIMIT, DEFAULT_MIN_RESULTS

logger = logging.getLogger(__name__)

MIN_TOKEN_LENGTH = 3


def prefilter_candidates(
    ingredient: Ingredient,
    candidates: Sequence[Product],
    *,
    limit: int = DEFAULT_CANDIDATE_LIMIT,
    min_results: int = DEFAULT_MIN_RESULTS,
) -> List[Product]:
    """Narrow ``candidates`` down to at most ``limit`` products relevant to ``ingredient``.

    Passes run in priority order: full-name substring, name tokens, declared
    alternatives. Enough exact matches short-circuit the broader passes. When
    fewer than ``min_results`` products match, the result is padded with the
    remaining candidates in their original order.
    """
    if not candidates:
        return []
    name = ingredient.name.strip().lower()
    tokens = [token for token in name.split() if len(token) >= MIN_TOKEN_LENGTH]

    exact = [product for product in candidates if name and name in _product_name(product)]
    if len(exact) >= min_results:
        return _dedupe(exact)[:limit]

    token_matches = [
        product
        for product in candidates
        if any(token in _product_name(product) for token in tokens)
    ]
    alternative_matches = _match_alternatives(ingredient.possibleAlternatives, candidates, min_results)

    selected = _dedupe([*exact, *token_matches, *alternative_matches])[:limit]
    if len(selected) < min_results:
        seen = {product.productId for product in selected}
        for product in candidates:
            if len(selected) >= limit:
                break
            if product.productId in seen:
                continue
            seen.add(product.productId)
            selected.append(product)
        logger.debug(
            "Padded candidates ingredient=%s matched=%s returned=%s",
            ingredient.name,
            len(exact) + len(token_matches) + len(alternative_matches),
            len(selected),
        )
    return selected


def _match_alternatives(
    alternatives: Iterable[str], candidates: Sequence[Product], min_results: int
) -> List[Product]:
    matches: List[Product] = []
    for alternative in alternatives or []:
        needle = alternative.strip().lower()
        if not needle:
            continue
        for product in candidates:
            if needle in _product_name(product):
                matches.append(product)
                if len(matches) >= min_results:
                    return matches
    return matches


def _product_name(product: Product) -> str:
    return (product.name or "").lower()


def _dedupe(products: Iterable[Product]) -> List[Product]:
    seen: set[str] = set()
    unique: List[Product] = []
    for product in products:
        if product.productId in seen:
            continue
        seen.add(product.productId)
        unique.append(product)
    return unique


__all__ = ["prefilter_candidates"]
