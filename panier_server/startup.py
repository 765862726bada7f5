from __future__ import annotations

import logging
from typing import Iterable, List, Tuple

from .config import Settings

logger = logging.getLogger(__name__)


def _collect_missing(settings: Settings, pairs: Iterable[Tuple[str, str]]) -> List[str]:
    missing: List[str] = []
    for attr, label in pairs:
        value = getattr(settings, attr, None)
        if value in (None, "", [], {}):
            missing.append(label)
    return missing


def validate_settings(settings: Settings) -> None:
    """Fail fast on inconsistent matching bounds or missing configuration outside dev."""
    if settings.compatibility_min_ratio > settings.compatibility_max_ratio:
        raise RuntimeError(
            "COMPATIBILITY_MIN_RATIO must not exceed COMPATIBILITY_MAX_RATIO "
            f"({settings.compatibility_min_ratio} > {settings.compatibility_max_ratio})"
        )
    if settings.candidate_min_results > settings.candidate_limit:
        logger.warning(
            "CANDIDATE_MIN_RESULTS=%s exceeds CANDIDATE_LIMIT=%s; results are capped at the limit",
            settings.candidate_min_results,
            settings.candidate_limit,
        )

    environment = (settings.environment or "dev").lower()
    required_pairs = [
        ("openai_api_key", "OPENAI_API_KEY"),
        ("catalog_path", "CATALOG_PATH"),
    ]
    missing = _collect_missing(settings, required_pairs)
    if environment == "dev":
        if missing:
            logger.warning(
                "Running in dev without %s; model-backed routes will return 503",
                ", ".join(missing),
            )
        return

    if missing:
        raise RuntimeError(
            f"Missing required configuration for environment '{environment}': {', '.join(sorted(missing))}"
        )
