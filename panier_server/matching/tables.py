"""Knowledge tables consumed by the matching core.

The defaults are empirical; deployments can extend or override them with JSON
files (see ``load_matching_tables``) without code changes.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

logger = logging.getLogger(__name__)

# Average mass in grams of one discrete unit, keyed by singular French name.
DEFAULT_PIECE_WEIGHTS: Dict[str, float] = {
    "oignon": 150,
    "pomme": 200,
    "ail": 30,
    "citron": 100,
    "orange": 150,
    "banane": 120,
    "poireau": 200,
    "carotte": 100,
    "courgette": 200,
}

BAKING_CATEGORIES = ["Epicerie sucrée", "Aide à la pâtisserie", "Farines et levures"]
DAIRY_CATEGORIES = ["Crèmerie", "Produits laitiers", "Beurre et crème"]
PRODUCE_CATEGORIES = ["Fruits et légumes", "Fruits", "Légumes"]
DELI_CATEGORIES = ["Charcuterie", "Boucherie", "Viandes"]
SAVOURY_CATEGORIES = ["Epicerie salée", "Condiments", "Sel et épices"]

# Ingredient keyword -> preferred catalog categories, most relevant first.
DEFAULT_CATEGORY_KEYWORDS: Dict[str, List[str]] = {
    "farine": BAKING_CATEGORIES,
    "sucre": BAKING_CATEGORIES,
    "levure": BAKING_CATEGORIES,
    "chocolat": BAKING_CATEGORIES,
    "lait": DAIRY_CATEGORIES,
    "beurre": DAIRY_CATEGORIES,
    "crème": DAIRY_CATEGORIES,
    "fromage": DAIRY_CATEGORIES,
    "yaourt": DAIRY_CATEGORIES,
    "oeuf": ["Oeufs", *DAIRY_CATEGORIES],
    "œuf": ["Oeufs", *DAIRY_CATEGORIES],
    "pâte brisée": ["Pâtes à tarte", *DAIRY_CATEGORIES],
    "pâte feuilletée": ["Pâtes à tarte", *DAIRY_CATEGORIES],
    "lardon": DELI_CATEGORIES,
    "jambon": DELI_CATEGORIES,
    "poulet": DELI_CATEGORIES,
    "pomme": PRODUCE_CATEGORIES,
    "oignon": PRODUCE_CATEGORIES,
    "carotte": PRODUCE_CATEGORIES,
    "citron": PRODUCE_CATEGORIES,
    "courgette": PRODUCE_CATEGORIES,
    "poireau": PRODUCE_CATEGORIES,
    "tomate": PRODUCE_CATEGORIES,
    "sel": SAVOURY_CATEGORIES,
    "poivre": SAVOURY_CATEGORIES,
    "huile": ["Huiles et vinaigres", *SAVOURY_CATEGORIES],
}

DEFAULT_MIN_RATIO = 0.5
DEFAULT_MAX_RATIO = 3.0
DEFAULT_CANDIDATE_LIMIT = 10
DEFAULT_MIN_RESULTS = 5


@dataclass(frozen=True)
class MatchingTables:
    piece_weights: Mapping[str, float] = field(default_factory=lambda: dict(DEFAULT_PIECE_WEIGHTS))
    category_keywords: Mapping[str, Sequence[str]] = field(
        default_factory=lambda: {key: list(value) for key, value in DEFAULT_CATEGORY_KEYWORDS.items()}
    )
    min_ratio: float = DEFAULT_MIN_RATIO
    max_ratio: float = DEFAULT_MAX_RATIO
    candidate_limit: int = DEFAULT_CANDIDATE_LIMIT
    min_results: int = DEFAULT_MIN_RESULTS

    def piece_weight(self, ingredient_name: str | None) -> Optional[float]:
        return lookup_piece_weight(self.piece_weights, ingredient_name)


def lookup_piece_weight(weights: Mapping[str, Any], ingredient_name: str | None) -> Optional[float]:
    """Average weight in grams of one piece of ``ingredient_name``, or ``None`` when unknown."""
    if not ingredient_name:
        return None
    weight = weights.get(ingredient_name.strip().lower())
    if weight is None:
        return None
    try:
        weight = float(weight)
    except (TypeError, ValueError):
        return None
    return weight if weight > 0 else None


def load_matching_tables(
    *,
    piece_weights_path: str | Path | None = None,
    category_keywords_path: str | Path | None = None,
    **overrides: Any,
) -> MatchingTables:
    """Build tables from the defaults, merging JSON overrides when paths are given."""
    piece_weights: Dict[str, float] = dict(DEFAULT_PIECE_WEIGHTS)
    category_keywords: Dict[str, List[str]] = {
        key: list(value) for key, value in DEFAULT_CATEGORY_KEYWORDS.items()
    }
    if piece_weights_path:
        for name, weight in _read_json_mapping(piece_weights_path).items():
            try:
                piece_weights[str(name).strip().lower()] = float(weight)
            except (TypeError, ValueError):
                logger.warning("Ignoring piece weight with non-numeric value name=%s value=%r", name, weight)
    if category_keywords_path:
        for keyword, categories in _read_json_mapping(category_keywords_path).items():
            if isinstance(categories, str):
                categories = [categories]
            if not isinstance(categories, list):
                logger.warning("Ignoring category keyword with invalid categories keyword=%s", keyword)
                continue
            category_keywords[str(keyword).strip().lower()] = [str(item) for item in categories if item]
    return MatchingTables(
        piece_weights=piece_weights,
        category_keywords=category_keywords,
        **overrides,
    )


def _read_json_mapping(path: str | Path) -> Dict[str, Any]:
    with Path(path).open("r", encoding="utf-8") as handle:
        payload = json.load(handle)
    if not isinstance(payload, dict):
        raise ValueError(f"Expected a JSON object in {path}")
    return payload


__all__ = [
    "DEFAULT_CATEGORY_KEYWORDS",
    "DEFAULT_PIECE_WEIGHTS",
    "MatchingTables",
    "load_matching_tables",
    "lookup_piece_weight",
]
