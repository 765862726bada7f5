from __future__ import annotations

import math
import re
from collections import Counter, defaultdict
from typing import Any, Dict, List, Optional, Sequence

from ..matching.errors import InputValidationError
from ..schemas import BrandCount, CatalogPage, CatalogStats, CategoryStat, PriceBucket, Product

SORTABLE_FIELDS = {
    "name",
    "brand",
    "main_category",
    "price_eur",
    "price_per_kg_eur",
    "size_value",
    "available",
}
NUMERIC_FIELDS = {"price_eur", "price_per_kg_eur", "size_value"}
PRICE_BUCKET_WIDTH = 5
TOP_BRAND_LIMIT = 10

LEADING_NUMBER_PATTERN = re.compile(r"-?\d+(?:[\.,]\d+)?")


def filter_catalog(
    catalog: Sequence[Product],
    *,
    query: str | None = None,
    category: str | None = None,
) -> List[Product]:
    needle = (query or "").strip().lower()
    selected: List[Product] = []
    for product in catalog:
        if category and category != "all" and product.main_category != category:
            continue
        if needle:
            in_name = needle in (product.name or "").lower()
            in_brand = needle in (product.brand or "").lower()
            if not (in_name or in_brand):
                continue
        selected.append(product)
    return selected


def search_catalog(
    catalog: Sequence[Product],
    *,
    query: str | None = None,
    category: str | None = None,
    sort: str | None = None,
    direction: str = "asc",
    page: int = 1,
    page_size: int = 10,
) -> CatalogPage:
    if sort and sort not in SORTABLE_FIELDS:
        raise InputValidationError(f"Cannot sort by '{sort}'")
    if direction not in {"asc", "desc"}:
        raise InputValidationError("direction must be 'asc' or 'desc'")
    products = filter_catalog(catalog, query=query, category=category)
    if sort:
        products = _sort_products(products, sort, descending=direction == "desc")
    page = max(page, 1)
    page_size = max(page_size, 1)
    start = (page - 1) * page_size
    return CatalogPage(
        items=products[start : start + page_size],
        total=len(products),
        page=page,
        pageSize=page_size,
    )


def summarize_catalog(catalog: Sequence[Product], *, category: str | None = None) -> CatalogStats:
    products = filter_catalog(catalog, category=category)
    if not products:
        return CatalogStats()

    per_category: Dict[str, List[Product]] = defaultdict(list)
    for product in products:
        per_category[product.main_category or "Sans catégorie"].append(product)
    categories = [
        CategoryStat(
            category=name,
            count=len(items),
            averagePrice=_average([item.price_eur for item in items]),
        )
        for name, items in sorted(per_category.items())
    ]

    brand_counts = Counter(product.brand for product in products if product.brand)
    top_brands = [
        BrandCount(brand=brand, count=count)
        for brand, count in sorted(brand_counts.items(), key=lambda item: (-item[1], item[0]))[:TOP_BRAND_LIMIT]
    ]

    buckets: Counter[int] = Counter()
    for product in products:
        if product.price_eur is None:
            continue
        buckets[int(math.floor(product.price_eur / PRICE_BUCKET_WIDTH) * PRICE_BUCKET_WIDTH)] += 1
    distribution = [
        PriceBucket(range=f"{start}-{start + PRICE_BUCKET_WIDTH}€", count=count)
        for start, count in sorted(buckets.items())
    ]

    total_price = sum(product.price_eur or 0.0 for product in products)
    return CatalogStats(
        totalProducts=len(products),
        availableProducts=sum(1 for product in products if product.available),
        averagePrice=round(total_price / len(products), 2),
        categories=categories,
        topBrands=top_brands,
        priceDistribution=distribution,
    )


def _sort_products(products: List[Product], field: str, *, descending: bool) -> List[Product]:
    present: List[tuple[Any, Product]] = []
    missing: List[Product] = []
    for product in products:
        key = _sort_key(getattr(product, field), field)
        if key is None:
            missing.append(product)
        else:
            present.append((key, product))
    present.sort(key=lambda item: item[0], reverse=descending)
    ordered = [product for _, product in present]
    return ordered + missing if descending else missing + ordered


def _sort_key(value: Any, field: str) -> Any:
    if value is None:
        return None
    if field in NUMERIC_FIELDS:
        if isinstance(value, (int, float)):
            return float(value)
        match = LEADING_NUMBER_PATTERN.search(str(value))
        return float(match.group(0).replace(",", ".")) if match else None
    if isinstance(value, bool):
        return int(value)
    return str(value).lower()


def _average(values: Sequence[Optional[float]]) -> Optional[float]:
    priced = [value for value in values if value is not None]
    if not priced:
        return None
    return round(sum(priced) / len(priced), 2)
