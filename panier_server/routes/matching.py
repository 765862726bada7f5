from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import StreamingResponse

from ..matching.compatibility import annotate_compatibility
from ..ratelimit import limiter
from ..schemas import (
    CategorySuggestionRequest,
    CategorySuggestionResponse,
    MatchBatchRequest,
    MatchBatchResponse,
    ProductSelection,
    ProductSelectionRequest,
)
from ..services.catalog import get_catalog, list_categories
from ..services.categories import suggest_categories
from ..services.knowledge import get_matching_tables
from ..services.product_selector import select_product
from ..services.shopping_list import run_match_batch, stream_match_batch


router = APIRouter(tags=["matching"])


@router.post("/categories/suggest", response_model=CategorySuggestionResponse)
@limiter.limit("60/minute")
async def suggest_ingredient_categories(
    request: Request,
    payload: CategorySuggestionRequest,
) -> CategorySuggestionResponse:
    categories = payload.categories
    if categories is None:
        categories = list_categories(get_catalog())
    suggested = await suggest_categories(payload.ingredient, categories)
    return CategorySuggestionResponse(categories=suggested)


@router.post("/products/select", response_model=ProductSelection)
@limiter.limit("60/minute")
async def select_ingredient_product(request: Request, payload: ProductSelectionRequest) -> ProductSelection:
    compatibility = payload.compatibility
    if compatibility is None:
        tables = get_matching_tables()
        compatibility = annotate_compatibility(
            payload.ingredient,
            payload.candidates,
            min_ratio=tables.min_ratio,
            max_ratio=tables.max_ratio,
        )
    return await select_product(payload.ingredient, payload.candidates, compatibility)


@router.post("/matches", response_model=MatchBatchResponse)
@limiter.limit("10/minute")
async def match_ingredients(request: Request, payload: MatchBatchRequest) -> MatchBatchResponse:
    return await run_match_batch(request=payload)


@router.post("/matches/stream")
@limiter.limit("10/minute")
async def stream_ingredient_matches(request: Request, payload: MatchBatchRequest) -> StreamingResponse:
    # Catalog errors have to surface before the response starts streaming.
    if payload.catalog is None:
        payload = payload.model_copy(update={"catalog": list(get_catalog())})
    return StreamingResponse(
        stream_match_batch(request=payload),
        media_type="application/x-ndjson",
    )
