from __future__ import annotations

import asyncio
import json
import logging
import math
from typing import Any, Dict, List, Optional, Sequence

from ..config import Settings, get_settings
from ..schemas import CompatibilityAnnotation, Ingredient, Product, ProductSelection
from .openai_responses import call_openai_responses, parse_json_output

logger = logging.getLogger(__name__)

NO_CANDIDATES_NOTE = "Aucun produit candidat trouvé dans le catalogue."

SYSTEM_PROMPT = (
    "You are a grocery assistant choosing the supermarket product that best covers a recipe ingredient. "
    "Never invent products: pick one of the provided candidates by productId, or null when none fits."
)


async def select_product(
    ingredient: Ingredient,
    candidates: Sequence[Product],
    compatibility: Sequence[CompatibilityAnnotation] | None = None,
) -> ProductSelection:
    """Ask the model for the best candidate; the result always references a provided candidate."""
    if not candidates:
        logger.info("No candidates for ingredient=%s; skipping product selection", ingredient.name)
        return ProductSelection(substitutionNotes=NO_CANDIDATES_NOTE)
    settings = get_settings()
    llm_text = await asyncio.to_thread(
        call_openai_responses,
        model=settings.openai_selection_model,
        system_prompt=SYSTEM_PROMPT,
        user_prompt=build_user_prompt(ingredient, candidates, compatibility),
        max_output_tokens=settings.openai_max_output_tokens,
        top_p=settings.openai_top_p,
        reasoning_effort=settings.openai_reasoning_effort,
        timeout=selection_request_timeout(settings),
    )
    payload = parse_json_output(llm_text, context="Product selection")
    return interpret_selection(payload, candidates, compatibility)


def selection_request_timeout(settings: Settings) -> Optional[float]:
    """Model request timeout that never outlasts the per-ingredient selection timeout."""
    if not settings.selection_timeout_seconds:
        return None
    return min(float(settings.openai_request_timeout_seconds), float(settings.selection_timeout_seconds))


def build_user_prompt(
    ingredient: Ingredient,
    candidates: Sequence[Product],
    compatibility: Sequence[CompatibilityAnnotation] | None,
) -> str:
    flags = _compatibility_lookup(compatibility)
    candidate_payload: List[Dict[str, Any]] = []
    for product in candidates:
        candidate_payload.append(
            {
                "productId": product.productId,
                "name": product.name,
                "brand": product.brand,
                "size_value": product.size_value,
                "price_eur": product.price_eur,
                "price_per_kg_eur": product.price_per_kg_eur,
                "available": product.available,
                "sizeCompatible": flags.get(product.productId),
            }
        )
    schema = {
        "productId": "productId from the candidates, or null",
        "confidence": 0.95,
        "compatible": True,
        "substitutionNotes": "optional short note in French when the product is a substitute",
    }
    return (
        f"Ingredient needed:\n```json\n{json.dumps(ingredient.model_dump(mode='json'), ensure_ascii=False)}\n```\n"
        f"Available products:\n```json\n{json.dumps(candidate_payload, ensure_ascii=False, indent=2)}\n```\n"
        "`sizeCompatible` tells whether the package size reasonably covers the quantity needed.\n"
        "Prefer available products that are the same ingredient, then size-compatible ones.\n"
        f"Select the best match and return only JSON:\n```json\n{json.dumps(schema, ensure_ascii=False, indent=2)}\n```"
    )


def interpret_selection(
    payload: Dict[str, Any],
    candidates: Sequence[Product],
    compatibility: Sequence[CompatibilityAnnotation] | None = None,
) -> ProductSelection:
    product_id = payload.get("productId") or payload.get("product_id")
    selected = payload.get("selectedProduct")
    if product_id is None and isinstance(selected, dict):
        product_id = selected.get("productId") or selected.get("product_id")
    notes = _clean_text(payload.get("substitutionNotes") or payload.get("substitution_notes"))
    product = _find_candidate(candidates, product_id)
    if product is None:
        if product_id is not None:
            logger.warning("Selector returned unknown productId=%s; treating as no match", product_id)
        return ProductSelection(substitutionNotes=notes)
    compatible = payload.get("compatible")
    if not isinstance(compatible, bool):
        compatible = _compatibility_lookup(compatibility).get(product.productId, True)
    return ProductSelection(
        selectedProduct=product,
        confidence=_clamp_confidence(payload.get("confidence")),
        compatible=compatible,
        substitutionNotes=notes,
    )


def _find_candidate(candidates: Sequence[Product], product_id: Any) -> Optional[Product]:
    if product_id is None:
        return None
    target = str(product_id).strip()
    for product in candidates:
        if product.productId == target:
            return product
    return None


def _compatibility_lookup(compatibility: Sequence[CompatibilityAnnotation] | None) -> Dict[str, bool]:
    return {annotation.productId: annotation.compatible for annotation in compatibility or []}


def _clamp_confidence(value: Any) -> float:
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(parsed):
        return 0.0
    return min(max(parsed, 0.0), 1.0)


def _clean_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None
