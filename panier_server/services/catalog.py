from __future__ import annotations

import csv
import json
import logging
import os
import threading
from pathlib import Path
from typing import Any, Iterable, List, Mapping, Sequence, Tuple

import redis
from pydantic import ValidationError

from ..config import Settings, get_settings
from ..matching.errors import CatalogUnavailableError
from ..redis_util import get_redis
from ..schemas import Product

logger = logging.getLogger(__name__)

CATALOG_FIELDS = [
    "productId",
    "name",
    "brand",
    "main_category",
    "price_eur",
    "price_per_kg_eur",
    "size_value",
    "image_src",
    "available",
]

_catalog_lock = threading.Lock()
_catalog_cache: Tuple[Product, ...] | None = None
_catalog_cache_path: str | None = None
_catalog_cache_mtime: float = 0.0


def get_catalog() -> Sequence[Product]:
    """Return the product catalog, loading it once per file version.

    A JSON dataset stored in Redis takes precedence over the CSV file.
    """
    settings = get_settings()
    from_redis = _load_from_redis(settings)
    if from_redis is not None:
        return from_redis
    path = settings.catalog_path
    if not path:
        raise CatalogUnavailableError("Catalog path is not configured")
    try:
        stat = os.stat(path)
    except OSError as exc:
        raise CatalogUnavailableError(f"Catalog file not found at {path}") from exc
    global _catalog_cache, _catalog_cache_path, _catalog_cache_mtime
    with _catalog_lock:
        if (
            _catalog_cache is not None
            and _catalog_cache_path == path
            and _catalog_cache_mtime >= stat.st_mtime
        ):
            return _catalog_cache
        try:
            products = load_catalog_csv(path)
        except (OSError, UnicodeDecodeError, csv.Error) as exc:
            logger.error("Unable to read catalog path=%s error=%s", path, exc)
            raise CatalogUnavailableError(f"Unable to read catalog at {path}") from exc
        _catalog_cache = tuple(products)
        _catalog_cache_path = path
        _catalog_cache_mtime = stat.st_mtime
        logger.info("Loaded catalog path=%s products=%s", path, len(products))
        return _catalog_cache


def reset_catalog_cache() -> None:
    global _catalog_cache, _catalog_cache_path, _catalog_cache_mtime
    with _catalog_lock:
        _catalog_cache = None
        _catalog_cache_path = None
        _catalog_cache_mtime = 0.0


def load_catalog_csv(path: str | Path) -> List[Product]:
    with Path(path).open("r", encoding="utf-8-sig", newline="") as handle:
        reader = csv.DictReader(handle)
        return build_products(reader)


def build_products(rows: Iterable[Mapping[str, Any]]) -> List[Product]:
    """Validate raw catalog rows into products, skipping invalid and duplicate ids."""
    products: List[Product] = []
    seen: set[str] = set()
    skipped = 0
    duplicates = 0
    for row in rows:
        if not isinstance(row, Mapping):
            skipped += 1
            continue
        record = {str(key).strip(): _transform_cell(value) for key, value in row.items() if key}
        try:
            product = Product.model_validate(record)
        except ValidationError:
            skipped += 1
            continue
        if product.productId in seen:
            duplicates += 1
            continue
        seen.add(product.productId)
        products.append(product)
    if skipped or duplicates:
        logger.warning(
            "Skipped catalog rows invalid=%s duplicate=%s kept=%s",
            skipped,
            duplicates,
            len(products),
        )
    return products


def list_categories(catalog: Iterable[Product]) -> List[str]:
    return sorted({product.main_category for product in catalog if product.main_category})


def _transform_cell(value: Any) -> Any:
    if not isinstance(value, str):
        return value
    text = value.strip()
    if text == "":
        return None
    if text == "True":
        return True
    if text == "False":
        return False
    return text


def _load_from_redis(settings: Settings) -> Sequence[Product] | None:
    client = get_redis()
    if client is None:
        return None
    try:
        raw = client.get(settings.catalog_redis_key)
    except redis.RedisError as exc:
        logger.warning("Redis catalog lookup failed key=%s error=%s", settings.catalog_redis_key, exc)
        return None
    if not raw:
        return None
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        logger.warning("Redis catalog payload is not JSON key=%s error=%s", settings.catalog_redis_key, exc)
        return None
    if isinstance(data, dict):
        items = data.get("items") or []
    elif isinstance(data, list):
        items = data
    else:
        items = []
    return tuple(build_products(items))
