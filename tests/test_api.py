from __future__ import annotations

import json
import unittest
from datetime import datetime, timezone
from unittest import mock

from fastapi.testclient import TestClient

from panier_server.main import app
from panier_server.matching.errors import CatalogUnavailableError, ExternalCollaboratorError
from panier_server.schemas import ProductSelection, RecipeAnalysisResponse
from tests.helpers import make_product


CATALOG = [
    make_product("f1", "Farine de blé T45", price=1.00, size="1kg", category="Epicerie sucrée", brand="Francine"),
    make_product("b1", "Beurre doux", price=2.40, size="250g", category="Crèmerie", brand="Président"),
    make_product("l1", "Lait demi-écrémé", price=1.20, size="1L", category="Crèmerie", brand="Lactel"),
]


class ApiTestCase(unittest.TestCase):
    def setUp(self):
        self.client = TestClient(app)

    def test_health(self):
        response = self.client.get("/v1/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "ok")
        self.assertEqual(response.headers["X-Content-Type-Options"], "nosniff")

    def test_catalog_browsing(self):
        with mock.patch("panier_server.routes.catalog.get_catalog", return_value=CATALOG):
            page = self.client.get("/v1/catalog", params={"category": "Crèmerie", "sort": "price_eur", "pageSize": 1})
            categories = self.client.get("/v1/catalog/categories")
            stats = self.client.get("/v1/catalog/stats")

        self.assertEqual(page.status_code, 200)
        self.assertEqual(page.json()["total"], 2)
        self.assertEqual([item["productId"] for item in page.json()["items"]], ["l1"])
        self.assertEqual(categories.json(), ["Crèmerie", "Epicerie sucrée"])
        self.assertEqual(stats.json()["totalProducts"], 3)

    def test_invalid_sort_is_rejected_with_error_code(self):
        with mock.patch("panier_server.routes.catalog.get_catalog", return_value=CATALOG):
            response = self.client.get("/v1/catalog", params={"sort": "image_src"})
        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.json()["code"], "invalid_input")

    def test_missing_catalog_maps_to_503(self):
        with mock.patch(
            "panier_server.routes.catalog.get_catalog",
            side_effect=CatalogUnavailableError("Catalog file not found at data/products.csv"),
        ):
            response = self.client.get("/v1/catalog/categories")
        self.assertEqual(response.status_code, 503)
        self.assertEqual(
            response.json(),
            {"detail": "Catalog file not found at data/products.csv", "code": "catalog_unavailable"},
        )

    def test_analyze_delegates_to_workflow(self):
        result = RecipeAnalysisResponse(servings=4, generatedAt=datetime.now(timezone.utc), totalCost=3.2)
        with mock.patch(
            "panier_server.routes.recipes.run_recipe_analysis",
            new=mock.AsyncMock(return_value=result),
        ) as workflow:
            response = self.client.post("/v1/recipes/analyze", json={"recipe": "Crêpes", "servings": 4})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["totalCost"], 3.2)
        self.assertEqual(workflow.await_args.kwargs["request"].recipe, "Crêpes")

    def test_collaborator_timeout_maps_to_504(self):
        error = ExternalCollaboratorError("Timed out", status_code=504, code="collaborator_timeout")
        with mock.patch("panier_server.routes.recipes.parse_recipe", new=mock.AsyncMock(side_effect=error)):
            response = self.client.post("/v1/recipes/parse", json={"recipe": "Crêpes"})
        self.assertEqual(response.status_code, 504)
        self.assertEqual(response.json()["code"], "collaborator_timeout")

    def test_category_suggestion_defaults_to_catalog_categories(self):
        suggest = mock.AsyncMock(return_value=["Crèmerie"])
        with mock.patch("panier_server.routes.matching.get_catalog", return_value=CATALOG), mock.patch(
            "panier_server.routes.matching.suggest_categories", new=suggest
        ):
            response = self.client.post("/v1/categories/suggest", json={"ingredient": "beurre"})

        self.assertEqual(response.json(), {"categories": ["Crèmerie"]})
        self.assertEqual(suggest.await_args.args, ("beurre", ["Crèmerie", "Epicerie sucrée"]))

    def test_product_selection_annotates_compatibility(self):
        selector = mock.AsyncMock(return_value=ProductSelection(selectedProduct=CATALOG[1], confidence=0.9, compatible=True))
        with mock.patch("panier_server.routes.matching.select_product", new=selector):
            response = self.client.post(
                "/v1/products/select",
                json={
                    "ingredient": {"name": "beurre", "amount": 125, "unit": "g"},
                    "candidates": [CATALOG[1].model_dump()],
                },
            )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["selectedProduct"]["productId"], "b1")
        compatibility = selector.await_args.args[2]
        self.assertEqual([(item.productId, item.compatible) for item in compatibility], [("b1", True)])

    def test_matches_reject_unknown_units(self):
        response = self.client.post(
            "/v1/matches",
            json={"ingredients": [{"name": "sucre", "amount": 1, "unit": "cup"}]},
        )
        self.assertEqual(response.status_code, 422)

    def test_match_stream_returns_ndjson(self):
        async def selector(ingredient, candidates, compatibility):
            return ProductSelection(selectedProduct=candidates[0], confidence=0.7, compatible=True)

        with mock.patch("panier_server.routes.matching.get_catalog", return_value=CATALOG), mock.patch(
            "panier_server.services.shopping_list.select_product", new=selector
        ):
            response = self.client.post(
                "/v1/matches/stream",
                json={
                    "ingredients": [
                        {"name": "beurre", "amount": 125, "unit": "g", "categories": ["Crèmerie"]},
                        {"name": "farine", "amount": 500, "unit": "g"},
                    ]
                },
            )

        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.headers["content-type"].startswith("application/x-ndjson"))
        lines = [json.loads(line) for line in response.text.splitlines() if line]
        by_index = {line["index"]: line["match"] for line in lines}
        self.assertEqual(by_index[0]["selectedProduct"]["productId"], "b1")
        self.assertEqual(by_index[1]["selectedProduct"]["productId"], "f1")

    def test_reprice(self):
        response = self.client.post(
            "/v1/shopping-list/reprice",
            json={
                "servings": 2,
                "newServings": 4,
                "matches": [
                    {
                        "ingredient": {"name": "beurre", "amount": 125, "unit": "g"},
                        "selectedProduct": CATALOG[1].model_dump(),
                        "price": 1.2,
                    }
                ],
            },
        )
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["totalCost"], 2.4)
        self.assertEqual(body["costPerServing"], 0.6)
        self.assertIn("Beurre doux - 250g - €2.40", body["shoppingList"])


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
