from __future__ import annotations

from panier_server.matching.prefilter import prefilter_candidates
from tests.helpers import make_ingredient, make_product


def _catalog(names):
    return [make_product(str(index), name) for index, name in enumerate(names)]


def test_empty_candidates_return_empty_list():
    assert prefilter_candidates(make_ingredient("farine"), []) == []


def test_result_is_capped_and_drawn_from_candidates():
    catalog = _catalog([f"Farine de blé {index}" for index in range(25)])
    selected = prefilter_candidates(make_ingredient("farine"), catalog)
    assert len(selected) == 10
    assert all(product in catalog for product in selected)


def test_enough_exact_matches_short_circuit_broader_passes():
    catalog = _catalog(
        [f"Lait demi-écrémé {index}" for index in range(6)]
        + ["Lait de coco", "Demi-baguette"]
    )
    selected = prefilter_candidates(make_ingredient("lait demi-écrémé"), catalog)
    assert [product.productId for product in selected] == ["0", "1", "2", "3", "4", "5"]


def test_token_and_alternative_passes_fill_in_after_exact_matches():
    catalog = _catalog(["Beurre doux", "Beurre salé", "Margarine tournesol", "Chocolat noir"])
    ingredient = make_ingredient("beurre doux", possibleAlternatives=["margarine"])
    selected = prefilter_candidates(ingredient, catalog, min_results=3)
    assert [product.name for product in selected] == ["Beurre doux", "Beurre salé", "Margarine tournesol"]


def test_short_tokens_are_ignored():
    catalog = _catalog(["Ail rose", "Sel de mer", "Oeufs frais"])
    selected = prefilter_candidates(make_ingredient("sel fin de table"), catalog, min_results=1)
    # "de" is too short to count as a token; "sel" still matches.
    assert [product.name for product in selected] == ["Sel de mer"]


def test_short_result_is_padded_in_catalog_order_up_to_the_cap():
    catalog = _catalog(["Pâtes", "Riz", "Sucre en poudre", "Sel", "Poivre", "Thym"])
    selected = prefilter_candidates(make_ingredient("sucre"), catalog)
    assert selected[0].name == "Sucre en poudre"
    assert [product.name for product in selected[1:]] == ["Pâtes", "Riz", "Sel", "Poivre", "Thym"]


def test_duplicate_product_ids_are_removed():
    duplicate = make_product("7", "Crème fraîche")
    catalog = [duplicate, duplicate, make_product("8", "Crème fraîche épaisse")]
    selected = prefilter_candidates(make_ingredient("crème fraîche"), catalog, min_results=1)
    assert [product.productId for product in selected] == ["7", "8"]
