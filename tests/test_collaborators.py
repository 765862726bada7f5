from __future__ import annotations

import json
import unittest
from unittest import IsolatedAsyncioTestCase, mock

from panier_server.config import Settings
from panier_server.matching.errors import ExternalCollaboratorError, InputValidationError
from panier_server.schemas import CompatibilityAnnotation
from panier_server.services.categories import lookup_local_categories, suggest_categories
from panier_server.services.openai_responses import parse_json_output
from panier_server.services.product_selector import (
    NO_CANDIDATES_NOTE,
    build_user_prompt,
    interpret_selection,
    select_product,
    selection_request_timeout,
)
from panier_server.services.recipe_parser import MAX_RECIPE_CHARS, coerce_parsed_recipe, parse_recipe
from tests.helpers import make_ingredient, make_product


CATEGORIES = ["Crèmerie", "Epicerie sucrée", "Fruits", "Surgelés", "Poissonnerie"]


class ParseJsonOutputTestCase(unittest.TestCase):
    def test_reads_fenced_json(self):
        payload = parse_json_output('Voici:\n```json\n{"categories": ["Fruits"]}\n```', context="Test")
        self.assertEqual(payload, {"categories": ["Fruits"]})

    def test_reads_bare_json(self):
        self.assertEqual(parse_json_output(' {"a": 1} ', context="Test"), {"a": 1})

    def test_rejects_invalid_output(self):
        for text in ["", "not json", "[1, 2]"]:
            with self.assertRaises(ExternalCollaboratorError):
                parse_json_output(text, context="Test")


class RecipeParserTestCase(IsolatedAsyncioTestCase):
    async def test_parses_model_output(self):
        reply = json.dumps(
            {
                "title": "Crêpes",
                "servings": 6,
                "ingredients": [
                    {"name": "farine", "amount": 250, "unit": "g", "possibleAlternatives": ["farine de blé"]},
                    {"name": "oeuf", "amount": 4, "unit": "Pièces", "isCritical": True},
                    {"name": "lait", "amount": 50, "unit": "cl"},
                ],
            }
        )
        with mock.patch("panier_server.services.recipe_parser.call_openai_responses", return_value=reply) as call:
            parsed = await parse_recipe("Crêpes: 250g de farine, 4 oeufs, 50cl de lait")

        call.assert_called_once()
        self.assertIn("250g de farine", call.call_args.kwargs["user_prompt"])
        self.assertEqual(parsed.servings, 6)
        self.assertEqual([ingredient.unit for ingredient in parsed.ingredients], ["g", "pièces", "cl"])
        self.assertTrue(parsed.ingredients[1].isCritical)

    async def test_rejects_empty_or_oversized_recipe_without_calling_the_model(self):
        with mock.patch("panier_server.services.recipe_parser.call_openai_responses") as call:
            with self.assertRaises(InputValidationError):
                await parse_recipe("   ")
            with self.assertRaises(InputValidationError):
                await parse_recipe("x" * (MAX_RECIPE_CHARS + 1))
        call.assert_not_called()

    def test_missing_ingredient_list_is_a_collaborator_error(self):
        with self.assertRaises(ExternalCollaboratorError) as ctx:
            coerce_parsed_recipe({"servings": 4})
        self.assertEqual(str(ctx.exception), "Invalid recipe data structure")

    def test_unknown_unit_fails_the_whole_recipe(self):
        payload = {
            "ingredients": [
                {"name": "farine", "amount": 200, "unit": "g"},
                {"name": "sel", "amount": 1, "unit": "pincée"},
            ]
        }
        with self.assertRaises(ExternalCollaboratorError) as ctx:
            coerce_parsed_recipe(payload)
        self.assertEqual(str(ctx.exception), "Invalid ingredient format")

    def test_null_servings_fall_back_to_default(self):
        parsed = coerce_parsed_recipe(
            {"servings": None, "ingredients": [{"name": "sucre", "amount": 2.5, "unit": "càs"}]}
        )
        self.assertEqual(parsed.servings, 4)


class CategorySuggestionTestCase(IsolatedAsyncioTestCase):
    def test_keyword_table_resolves_catalog_spelling(self):
        keywords = {"beurre": ["crèmerie", "Produits laitiers"], "sucre": ["Epicerie sucrée"]}
        self.assertEqual(lookup_local_categories("Beurre doux", CATEGORIES, keywords), ["Crèmerie"])
        self.assertEqual(lookup_local_categories("cassonade", CATEGORIES, keywords), [])

    async def test_keyword_hit_skips_the_model(self):
        with mock.patch("panier_server.services.categories.call_openai_responses") as call:
            categories = await suggest_categories("farine", CATEGORIES)
        call.assert_not_called()
        self.assertEqual(categories, ["Epicerie sucrée"])

    async def test_model_suggestions_are_restricted_to_known_categories(self):
        reply = '{"categories": ["poissonnerie", "Rayon imaginaire", "Surgelés", "Poissonnerie", "Fruits"]}'
        with mock.patch("panier_server.services.categories.call_openai_responses", return_value=reply):
            categories = await suggest_categories("cabillaud", CATEGORIES)
        self.assertEqual(categories, ["Poissonnerie", "Surgelés", "Fruits"])

    async def test_no_valid_suggestion_raises(self):
        with mock.patch(
            "panier_server.services.categories.call_openai_responses",
            return_value='{"categories": ["Rayon imaginaire"]}',
        ):
            with self.assertRaises(ExternalCollaboratorError):
                await suggest_categories("cabillaud", CATEGORIES)

    async def test_empty_category_list_returns_nothing(self):
        self.assertEqual(await suggest_categories("cabillaud", []), [])


class ProductSelectorTestCase(IsolatedAsyncioTestCase):
    def setUp(self):
        self.ingredient = make_ingredient("beurre", 125, "g")
        self.candidates = [
            make_product("b1", "Beurre doux", price=2.40, size="250g"),
            make_product("b2", "Beurre demi-sel", price=2.60, size="500g"),
        ]
        self.compatibility = [
            CompatibilityAnnotation(productId="b1", compatible=True),
            CompatibilityAnnotation(productId="b2", compatible=False),
        ]

    async def test_no_candidates_skips_the_model(self):
        with mock.patch("panier_server.services.product_selector.call_openai_responses") as call:
            selection = await select_product(self.ingredient, [], [])
        call.assert_not_called()
        self.assertIsNone(selection.selectedProduct)
        self.assertEqual(selection.substitutionNotes, NO_CANDIDATES_NOTE)

    async def test_selection_resolves_to_a_candidate(self):
        reply = '```json\n{"productId": "b2", "confidence": 1.7, "substitutionNotes": " demi-sel "}\n```'
        with mock.patch("panier_server.services.product_selector.call_openai_responses", return_value=reply):
            selection = await select_product(self.ingredient, self.candidates, self.compatibility)
        self.assertEqual(selection.selectedProduct.productId, "b2")
        self.assertEqual(selection.confidence, 1.0)
        self.assertFalse(selection.compatible)
        self.assertEqual(selection.substitutionNotes, "demi-sel")

    async def test_model_call_is_bounded_by_the_selection_timeout(self):
        settings = Settings(selection_timeout_seconds=10, openai_request_timeout_seconds=90)
        reply = '{"productId": "b1", "confidence": 0.8}'
        with mock.patch("panier_server.services.product_selector.get_settings", return_value=settings), mock.patch(
            "panier_server.services.product_selector.call_openai_responses", return_value=reply
        ) as call:
            await select_product(self.ingredient, self.candidates, self.compatibility)
        self.assertEqual(call.call_args.kwargs["timeout"], 10)

    def test_request_timeout_without_a_selection_timeout(self):
        self.assertIsNone(selection_request_timeout(Settings(selection_timeout_seconds=0)))
        self.assertEqual(selection_request_timeout(Settings(selection_timeout_seconds=120)), 90)

    def test_unknown_product_id_is_treated_as_no_match(self):
        selection = interpret_selection({"productId": "zz", "confidence": 0.9}, self.candidates)
        self.assertIsNone(selection.selectedProduct)
        self.assertEqual(selection.confidence, 0)

    def test_nested_selected_product_is_accepted(self):
        selection = interpret_selection(
            {"selectedProduct": {"productId": "b1"}, "confidence": "0.8", "compatible": True},
            self.candidates,
        )
        self.assertEqual(selection.selectedProduct.productId, "b1")
        self.assertAlmostEqual(selection.confidence, 0.8)
        self.assertTrue(selection.compatible)

    def test_prompt_carries_size_compatibility(self):
        prompt = build_user_prompt(self.ingredient, self.candidates, self.compatibility)
        self.assertIn('"sizeCompatible": false', prompt)
        self.assertIn('"productId": "b1"', prompt)


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
