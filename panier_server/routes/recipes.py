from __future__ import annotations

import logging

from fastapi import APIRouter, Request

from ..ratelimit import limiter
from ..schemas import ParsedRecipe, RecipeAnalysisRequest, RecipeAnalysisResponse, RecipeParseRequest
from ..services.recipe_parser import parse_recipe
from ..services.shopping_list import run_recipe_analysis


router = APIRouter(prefix="/recipes", tags=["recipes"])

logger = logging.getLogger(__name__)


@router.post("/parse", response_model=ParsedRecipe)
@limiter.limit("20/minute")
async def parse_recipe_text(request: Request, payload: RecipeParseRequest) -> ParsedRecipe:
    return await parse_recipe(payload.recipe)


@router.post("/analyze", response_model=RecipeAnalysisResponse)
@limiter.limit("10/minute")
async def analyze_recipe(request: Request, payload: RecipeAnalysisRequest) -> RecipeAnalysisResponse:
    logger.info("Recipe analysis requested chars=%s servings=%s", len(payload.recipe), payload.servings)
    return await run_recipe_analysis(request=payload)
