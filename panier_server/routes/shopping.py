from __future__ import annotations

import logging

from fastapi import APIRouter

from ..schemas import RepriceRequest, RepriceResponse
from ..services.shopping_list import reprice_shopping_list


router = APIRouter(prefix="/shopping-list", tags=["shopping-list"])

logger = logging.getLogger(__name__)


@router.post("/reprice", response_model=RepriceResponse)
def reprice(payload: RepriceRequest) -> RepriceResponse:
    logger.info(
        "Shopping list reprice requested items=%s servings=%s new_servings=%s excluded=%s",
        len(payload.matches),
        payload.servings,
        payload.newServings,
        len(payload.excludedProductIds),
    )
    return reprice_shopping_list(request=payload)
