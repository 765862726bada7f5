from __future__ import annotations

import asyncio
import json
import logging
import threading
import weakref
from datetime import datetime, timezone
from typing import AsyncIterator, Dict, List, Sequence, Tuple

from ..config import Settings, get_settings
from ..matching.basket import cost_per_serving, format_shopping_list, rescale_matches, total_cost
from ..matching.orchestrator import MatchOrchestrator, ProductSelector
from ..schemas import (
    CategorizedIngredient,
    Ingredient,
    MatchBatchRequest,
    MatchBatchResponse,
    Product,
    RecipeAnalysisRequest,
    RecipeAnalysisResponse,
    RepriceRequest,
    RepriceResponse,
)
from .catalog import get_catalog, list_categories
from .categories import suggest_categories
from .knowledge import get_matching_tables
from .product_selector import select_product
from .recipe_parser import parse_recipe

logger = logging.getLogger(__name__)

_selection_slots: "weakref.WeakKeyDictionary[asyncio.AbstractEventLoop, Tuple[int, asyncio.Semaphore]]" = (
    weakref.WeakKeyDictionary()
)
_selection_slots_lock = threading.Lock()


def shared_selection_semaphore(limit: int) -> asyncio.Semaphore:
    """Selector slots shared by every request served on the running event loop."""
    loop = asyncio.get_running_loop()
    with _selection_slots_lock:
        entry = _selection_slots.get(loop)
        if entry is None or entry[0] != limit:
            entry = (limit, asyncio.Semaphore(limit))
            _selection_slots[loop] = entry
        return entry[1]


def build_orchestrator(
    settings: Settings | None = None,
    *,
    selector: ProductSelector | None = None,
) -> MatchOrchestrator:
    """Build an orchestrator whose selector calls share the process-wide concurrency limit.

    Must be called from a coroutine.
    """
    settings = settings or get_settings()
    return MatchOrchestrator(
        selector=selector or select_product,
        tables=get_matching_tables(settings),
        selection_timeout=settings.selection_timeout_seconds or None,
        semaphore=shared_selection_semaphore(settings.selection_concurrency),
    )


async def run_recipe_analysis(*, request: RecipeAnalysisRequest) -> RecipeAnalysisResponse:
    """Parse a recipe, categorize and match every ingredient, then total the basket."""
    settings = get_settings()
    catalog = get_catalog()
    parsed = await parse_recipe(request.recipe)
    categorized = await categorize_ingredients(parsed.ingredients, list_categories(catalog))
    orchestrator = build_orchestrator(settings)
    matches = await orchestrator.match_all(categorized, catalog)

    servings = parsed.servings
    if request.servings and request.servings != parsed.servings:
        matches = rescale_matches(
            matches,
            parsed.servings,
            request.servings,
            piece_weights=orchestrator.tables.piece_weights,
        )
        servings = request.servings
    total = total_cost(matches)
    logger.info(
        "Recipe analysis completed ingredients=%s matched=%s failed=%s total=%s",
        len(matches),
        sum(1 for match in matches if match.selectedProduct is not None),
        sum(1 for match in matches if match.status == "error"),
        total,
    )
    return RecipeAnalysisResponse(
        title=parsed.title,
        recipeType=parsed.recipeType,
        cuisineOrigin=parsed.cuisineOrigin,
        servings=servings,
        matches=matches,
        totalCost=total,
        costPerServing=cost_per_serving(total, servings),
        generatedAt=datetime.now(timezone.utc),
    )


async def categorize_ingredients(
    ingredients: Sequence[Ingredient],
    categories: Sequence[str],
) -> List[CategorizedIngredient]:
    """Attach suggested categories to each ingredient.

    A failed suggestion leaves the ingredient without categories so matching
    falls back to the whole catalog.
    """
    if not ingredients:
        return []
    tasks = [
        asyncio.create_task(suggest_categories(ingredient.name, categories))
        for ingredient in ingredients
    ]
    outcomes = await asyncio.gather(*tasks, return_exceptions=True)
    categorized: List[CategorizedIngredient] = []
    for ingredient, outcome in zip(ingredients, outcomes):
        if isinstance(outcome, Exception):
            logger.warning(
                "Category suggestion failed ingredient=%s error=%s",
                ingredient.name,
                outcome,
            )
            outcome = []
        categorized.append(
            CategorizedIngredient(**ingredient.model_dump(), categories=list(outcome))
        )
    return categorized


async def run_match_batch(*, request: MatchBatchRequest) -> MatchBatchResponse:
    catalog = _resolve_catalog(request.catalog)
    matches = await build_orchestrator().match_all(request.ingredients, catalog)
    return MatchBatchResponse(matches=matches)


async def stream_match_batch(*, request: MatchBatchRequest) -> AsyncIterator[str]:
    """Yield one NDJSON line per ingredient as soon as its match completes."""
    catalog = _resolve_catalog(request.catalog)
    orchestrator = build_orchestrator()
    async for index, match in orchestrator.iter_matches(request.ingredients, catalog):
        line: Dict[str, object] = {"index": index, "match": match.model_dump(mode="json")}
        yield json.dumps(line, ensure_ascii=False) + "\n"


def reprice_shopping_list(*, request: RepriceRequest) -> RepriceResponse:
    tables = get_matching_tables()
    servings = request.newServings or request.servings
    matches = rescale_matches(
        request.matches,
        request.servings,
        servings,
        piece_weights=tables.piece_weights,
    )
    total = total_cost(matches, request.excludedProductIds)
    return RepriceResponse(
        servings=servings,
        matches=matches,
        totalCost=total,
        costPerServing=cost_per_serving(total, servings),
        shoppingList=format_shopping_list(
            matches,
            servings,
            excluded_product_ids=request.excludedProductIds,
        ),
    )


def _resolve_catalog(catalog: Sequence[Product] | None) -> Sequence[Product]:
    if catalog is not None:
        return catalog
    return get_catalog()
