from __future__ import annotations

import math
from datetime import datetime, timezone
from enum import Enum
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .matching.units import UNIT_TAGS, normalize_unit

MAX_ALTERNATIVES = 3


def _coerce_optional_float(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else None
    text = str(value).strip().replace("€", "").replace(",", ".")
    if not text:
        return None
    try:
        parsed = float(text)
    except ValueError:
        return None
    return parsed if math.isfinite(parsed) else None


class Product(BaseModel):
    """A catalog entry. Instances are frozen; the catalog is read-only once loaded."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    productId: str = Field(min_length=1)
    name: str = ""
    brand: Optional[str] = None
    main_category: Optional[str] = None
    price_eur: Optional[float] = None
    price_per_kg_eur: Optional[float] = None
    size_value: Optional[str] = None
    image_src: Optional[str] = None
    available: bool = True

    @field_validator("productId", mode="before")
    @classmethod
    def _stringify_id(cls, v):
        if isinstance(v, float) and v.is_integer():
            return str(int(v))
        if isinstance(v, (int, float)):
            return str(v)
        return v.strip() if isinstance(v, str) else v

    @field_validator("name", mode="before")
    @classmethod
    def _default_name(cls, v):
        if v is None:
            return ""
        return str(v).strip()

    @field_validator("brand", "main_category", "size_value", "image_src", mode="before")
    @classmethod
    def _optional_text(cls, v):
        if v is None:
            return None
        text = str(v).strip()
        return text or None

    @field_validator("price_eur", "price_per_kg_eur", mode="before")
    @classmethod
    def _coerce_price(cls, v):
        return _coerce_optional_float(v)

    @field_validator("available", mode="before")
    @classmethod
    def _coerce_available(cls, v):
        if v is None or v == "":
            return True
        if isinstance(v, str):
            return v.strip().lower() in {"true", "1", "yes", "oui"}
        return v


class Ingredient(BaseModel):
    name: str = Field(min_length=1)
    amount: float = Field(gt=0)
    unit: str
    possibleAlternatives: List[str] = Field(default_factory=list)
    isCritical: bool = False

    @field_validator("name", mode="before")
    @classmethod
    def _strip_name(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("unit", mode="before")
    @classmethod
    def _normalize_unit(cls, v):
        if not isinstance(v, str):
            raise ValueError("unit must be a string")
        unit = normalize_unit(v)
        if unit not in UNIT_TAGS:
            raise ValueError(f"unsupported unit '{v}'")
        return unit

    @field_validator("possibleAlternatives", mode="before")
    @classmethod
    def _clean_alternatives(cls, v):
        if v is None:
            return []
        if isinstance(v, str):
            v = [v]
        cleaned = [str(item).strip() for item in v if item is not None and str(item).strip()]
        return cleaned[:MAX_ALTERNATIVES]


class CategorizedIngredient(Ingredient):
    categories: List[str] = Field(default_factory=list)


class ParsedRecipe(BaseModel):
    ingredients: List[Ingredient] = Field(min_length=1)
    servings: int = Field(default=4, ge=1)
    title: Optional[str] = None
    recipeType: Optional[str] = None
    cuisineOrigin: Optional[str] = None

    @field_validator("servings", mode="before")
    @classmethod
    def _round_servings(cls, v):
        if isinstance(v, float) and math.isfinite(v):
            return max(1, int(round(v)))
        return v


class PriceBasis(str, Enum):
    PACK = "pack"
    PIECE_WEIGHT = "piece_weight"
    LINEAR = "linear"
    UNSCALED = "unscaled"
    NONE = "none"


class CompatibilityAnnotation(BaseModel):
    productId: str
    compatible: bool


class ProductSelection(BaseModel):
    selectedProduct: Optional[Product] = None
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    compatible: bool = False
    substitutionNotes: Optional[str] = None


class MatchResult(BaseModel):
    ingredient: Ingredient
    status: Literal["ok", "error"] = "ok"
    selectedProduct: Optional[Product] = None
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    compatible: bool = False
    substitutionNotes: Optional[str] = None
    category: Optional[str] = None
    price: float = Field(default=0.0, ge=0.0)
    priceBasis: Optional[PriceBasis] = None
    candidateCount: int = 0
    error: Optional[str] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class RecipeParseRequest(BaseModel):
    recipe: str


class RecipeAnalysisRequest(BaseModel):
    recipe: str
    servings: Optional[int] = Field(default=None, ge=1)


class RecipeAnalysisResponse(BaseModel):
    status: str = "completed"
    title: Optional[str] = None
    recipeType: Optional[str] = None
    cuisineOrigin: Optional[str] = None
    servings: int
    matches: List[MatchResult] = Field(default_factory=list)
    totalCost: float = 0.0
    costPerServing: float = 0.0
    generatedAt: datetime


class CategorySuggestionRequest(BaseModel):
    ingredient: str = Field(min_length=1)
    categories: Optional[List[str]] = None


class CategorySuggestionResponse(BaseModel):
    categories: List[str] = Field(default_factory=list)


class ProductSelectionRequest(BaseModel):
    ingredient: Ingredient
    candidates: List[Product] = Field(default_factory=list)
    compatibility: Optional[List[CompatibilityAnnotation]] = None


class MatchBatchRequest(BaseModel):
    ingredients: List[CategorizedIngredient] = Field(min_length=1)
    catalog: Optional[List[Product]] = None


class MatchBatchResponse(BaseModel):
    matches: List[MatchResult] = Field(default_factory=list)


class RepriceRequest(BaseModel):
    matches: List[MatchResult] = Field(default_factory=list)
    servings: int = Field(ge=1)
    newServings: Optional[int] = Field(default=None, ge=1)
    excludedProductIds: List[str] = Field(default_factory=list)


class RepriceResponse(BaseModel):
    servings: int
    matches: List[MatchResult] = Field(default_factory=list)
    totalCost: float = 0.0
    costPerServing: float = 0.0
    shoppingList: str = ""


class CatalogPage(BaseModel):
    items: List[Product] = Field(default_factory=list)
    total: int = 0
    page: int = 1
    pageSize: int = 10


class CategoryStat(BaseModel):
    category: str
    count: int
    averagePrice: Optional[float] = None


class BrandCount(BaseModel):
    brand: str
    count: int


class PriceBucket(BaseModel):
    range: str
    count: int


class CatalogStats(BaseModel):
    totalProducts: int = 0
    availableProducts: int = 0
    averagePrice: float = 0.0
    categories: List[CategoryStat] = Field(default_factory=list)
    topBrands: List[BrandCount] = Field(default_factory=list)
    priceDistribution: List[PriceBucket] = Field(default_factory=list)
