from __future__ import annotations

import asyncio
import json
import logging

from pydantic import ValidationError

from ..config import get_settings
from ..matching.errors import ExternalCollaboratorError, InputValidationError
from ..schemas import ParsedRecipe
from .openai_responses import call_openai_responses, parse_json_output

logger = logging.getLogger(__name__)

MAX_RECIPE_CHARS = 20000

SYSTEM_PROMPT = (
    "You turn free-text recipes into structured French shopping data. "
    "Return valid JSON only, with no explanatory text."
)


def build_user_prompt(recipe: str) -> str:
    schema = {
        "title": "optional recipe title",
        "recipeType": "optional, e.g. dessert | plat | entrée",
        "cuisineOrigin": "optional, e.g. française",
        "servings": 4,
        "ingredients": [
            {
                "name": "farine",
                "amount": 200,
                "unit": "g",
                "possibleAlternatives": ["farine de blé"],
                "isCritical": True,
            }
        ],
    }
    requirements = (
        "Requirements:\n"
        "- Ingredient names must be in French, singular (\"pomme\" not \"pommes\") and generic "
        "(\"farine\" not \"farine multi-usage\").\n"
        "- `unit` must be one of: g, kg, ml, cl, l, tsp, tbsp, càc, càs, piece.\n"
        "- Approximate non-standard measures (pinch, cup, handful) with g or ml.\n"
        "- `amount` must be a positive number.\n"
        "- `possibleAlternatives` lists at most 3 substitute ingredient names.\n"
        "- `isCritical` is true when the recipe cannot be made without the ingredient.\n"
        "- `servings` must be a number."
    )
    return (
        "Parse this recipe into a structured ingredients list.\n"
        f"Recipe:\n\"\"\"\n{recipe}\n\"\"\"\n\n"
        f"Expected format:\n```json\n{json.dumps(schema, ensure_ascii=False, indent=2)}\n```\n"
        f"{requirements}"
    )


async def parse_recipe(recipe: str) -> ParsedRecipe:
    """Extract ingredients and servings from free text via the language model.

    Any malformed reply fails the whole recipe; no partial ingredient list is returned.
    """
    if not isinstance(recipe, str) or not recipe.strip():
        raise InputValidationError("Recipe must be a non-empty string")
    if len(recipe) > MAX_RECIPE_CHARS:
        raise InputValidationError(f"Recipe is longer than {MAX_RECIPE_CHARS} characters")
    settings = get_settings()
    llm_text = await asyncio.to_thread(
        call_openai_responses,
        model=settings.openai_parser_model,
        system_prompt=SYSTEM_PROMPT,
        user_prompt=build_user_prompt(recipe.strip()),
        max_output_tokens=settings.openai_max_output_tokens,
        top_p=settings.openai_top_p,
        reasoning_effort=settings.openai_reasoning_effort,
    )
    payload = parse_json_output(llm_text, context="Recipe parser")
    return coerce_parsed_recipe(payload)


def coerce_parsed_recipe(payload: dict) -> ParsedRecipe:
    if not isinstance(payload.get("ingredients"), list):
        logger.error("Recipe parser returned no ingredient list keys=%s", sorted(payload))
        raise ExternalCollaboratorError("Invalid recipe data structure")
    cleaned = {key: value for key, value in payload.items() if value is not None}
    try:
        return ParsedRecipe.model_validate(cleaned)
    except ValidationError as exc:
        logger.error("Recipe parser returned invalid ingredients: %s", exc.errors(include_url=False))
        raise ExternalCollaboratorError("Invalid ingredient format") from exc
