from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Query

from ..schemas import CatalogPage, CatalogStats
from ..services.catalog import get_catalog, list_categories
from ..services.catalog_stats import search_catalog, summarize_catalog


router = APIRouter(prefix="/catalog", tags=["catalog"])


@router.get("", response_model=CatalogPage)
def browse_catalog(
    q: Optional[str] = Query(default=None, max_length=200),
    category: Optional[str] = Query(default=None),
    sort: Optional[str] = Query(default=None),
    direction: str = Query(default="asc"),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=10, ge=1, le=200, alias="pageSize"),
) -> CatalogPage:
    return search_catalog(
        get_catalog(),
        query=q,
        category=category,
        sort=sort,
        direction=direction,
        page=page,
        page_size=page_size,
    )


@router.get("/categories", response_model=List[str])
def catalog_categories() -> List[str]:
    return list_categories(get_catalog())


@router.get("/stats", response_model=CatalogStats)
def catalog_stats(category: Optional[str] = Query(default=None)) -> CatalogStats:
    return summarize_catalog(get_catalog(), category=category)
