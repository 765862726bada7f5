from __future__ import annotations

from datetime import date

import pytest

from panier_server.matching.basket import (
    cost_per_serving,
    format_shopping_list,
    rescale_ingredient,
    rescale_matches,
    total_cost,
)
from panier_server.matching.errors import InputValidationError
from panier_server.schemas import MatchResult, PriceBasis
from tests.helpers import make_ingredient, make_product


def _matches():
    return [
        MatchResult(
            ingredient=make_ingredient("farine", 250, "g"),
            selectedProduct=make_product("f1", "Farine T45", price=1.00, size="1kg"),
            price=0.25,
            priceBasis=PriceBasis.LINEAR,
        ),
        MatchResult(
            ingredient=make_ingredient("oeuf", 2, "pièces"),
            selectedProduct=make_product("o1", "Oeufs plein air", price=3.00, size="6 par pack"),
            price=1.00,
            priceBasis=PriceBasis.PACK,
        ),
        MatchResult(
            ingredient=make_ingredient("vanille", 1, "càc"),
            price=0.0,
        ),
        MatchResult(
            ingredient=make_ingredient("sel", 1, "g"),
            status="error",
            error="timed out",
        ),
    ]


def test_rescale_doubles_amounts_and_prices():
    rescaled = rescale_matches(_matches(), 4, 8)
    assert rescaled[0].ingredient.amount == 500
    assert rescaled[0].price == pytest.approx(0.50)
    assert rescaled[1].ingredient.amount == 4
    assert rescaled[1].price == pytest.approx(2.00)
    assert rescaled[2].price == 0
    assert rescaled[3].status == "error"
    assert rescaled[3].ingredient.amount == 2


def test_rescale_rounds_to_one_decimal_with_a_floor():
    assert rescale_ingredient(make_ingredient("sel", 1, "g"), 1 / 3).amount == pytest.approx(0.3)
    assert rescale_ingredient(make_ingredient("sel", 0.1, "g"), 0.25).amount == pytest.approx(0.1)


@pytest.mark.parametrize("servings, new_servings", [(0, 4), (4, 0)])
def test_rescale_rejects_non_positive_servings(servings, new_servings):
    with pytest.raises(InputValidationError):
        rescale_matches(_matches(), servings, new_servings)


def test_total_cost_skips_excluded_products():
    matches = _matches()
    assert total_cost(matches) == pytest.approx(1.25)
    assert total_cost(matches, ["o1"]) == pytest.approx(0.25)
    assert cost_per_serving(1.25, 4) == pytest.approx(0.31)


def test_format_shopping_list():
    text = format_shopping_list(
        _matches(),
        4,
        excluded_product_ids=["f1"],
        generated_on=date(2024, 3, 9),
    )
    assert text.splitlines() == [
        "Liste de courses - 09/03/2024",
        "Pour 4 personnes",
        "",
        "Oeufs plein air - 2pièces - €1.00",
        "vanille - Produit non trouvé",
        "sel - Produit non trouvé",
        "",
        "Total: €1.00",
    ]
