from __future__ import annotations

import asyncio
import json
import logging
import re
from typing import Any, Dict, List, Mapping, Sequence

from ..config import get_settings
from ..matching.errors import ExternalCollaboratorError
from ..matching.tables import MatchingTables
from .knowledge import get_matching_tables
from .openai_responses import call_openai_responses, parse_json_output

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You map grocery ingredients to supermarket catalog categories. "
    "Only ever answer with categories from the list you are given, as JSON."
)


def lookup_local_categories(
    ingredient_name: str,
    categories: Sequence[str],
    keywords: Mapping[str, Sequence[str]],
    *,
    limit: int = 3,
) -> List[str]:
    """Resolve preferred categories from the keyword table, in the catalog's own spelling."""
    name = (ingredient_name or "").strip().lower()
    if not name or not categories:
        return []
    available: Dict[str, str] = {}
    for category in categories:
        if category:
            available.setdefault(category.casefold(), category)
    resolved: List[str] = []
    for keyword, preferred in keywords.items():
        if not keyword or not re.search(rf"\b{re.escape(keyword.lower())}", name):
            continue
        for candidate in preferred:
            match = available.get(str(candidate).casefold())
            if match and match not in resolved:
                resolved.append(match)
    return resolved[:limit]


async def suggest_categories(
    ingredient_name: str,
    categories: Sequence[str],
    *,
    tables: MatchingTables | None = None,
) -> List[str]:
    """Return up to ``category_suggestion_limit`` categories drawn from ``categories``."""
    settings = get_settings()
    limit = settings.category_suggestion_limit
    known = _unique(categories)
    if not known:
        return []
    tables = tables or get_matching_tables(settings)
    local = lookup_local_categories(ingredient_name, known, tables.category_keywords, limit=limit)
    if local:
        logger.debug("Category keyword hit ingredient=%s categories=%s", ingredient_name, local)
        return local

    llm_text = await asyncio.to_thread(
        call_openai_responses,
        model=settings.openai_category_model,
        system_prompt=SYSTEM_PROMPT,
        user_prompt=_build_user_prompt(ingredient_name, known, limit),
        max_output_tokens=settings.openai_max_output_tokens,
        top_p=settings.openai_top_p,
        reasoning_effort=settings.openai_reasoning_effort,
    )
    payload = parse_json_output(llm_text, context="Category suggestion")
    suggested = _filter_suggestions(payload, known, limit)
    if not suggested:
        logger.error("Invalid category suggestion ingredient=%s payload=%s", ingredient_name, payload)
        raise ExternalCollaboratorError(f"No valid category suggested for {ingredient_name}")
    return suggested


def _build_user_prompt(ingredient_name: str, categories: Sequence[str], limit: int) -> str:
    return (
        f"Given this ingredient: \"{ingredient_name}\"\n"
        f"And these categories: {json.dumps(list(categories), ensure_ascii=False)}\n"
        "Select the most relevant categories that might contain this ingredient, in order of relevance.\n"
        "Return only a JSON object with the format: "
        "{\"categories\": [\"primary-category\", \"fallback-category1\", \"fallback-category2\"]}\n"
        "All categories must be from the provided list.\n"
        f"Limit to {limit} most relevant categories."
    )


def _filter_suggestions(payload: Dict[str, Any], known: Sequence[str], limit: int) -> List[str]:
    raw = payload.get("categories")
    if raw is None and payload.get("category"):
        raw = [payload.get("category")]
    if isinstance(raw, str):
        raw = [raw]
    if not isinstance(raw, list):
        return []
    allowed = {category.casefold(): category for category in known}
    suggested: List[str] = []
    for entry in raw:
        if not isinstance(entry, str):
            continue
        match = allowed.get(entry.strip().casefold())
        if match and match not in suggested:
            suggested.append(match)
    return suggested[:limit]


def _unique(categories: Sequence[str]) -> List[str]:
    seen: set[str] = set()
    unique: List[str] = []
    for category in categories or []:
        if not category or category in seen:
            continue
        seen.add(category)
        unique.append(category)
    return unique
