from __future__ import annotations

import logging
import os
import threading
from typing import Tuple

from ..config import Settings, get_settings
from ..matching.tables import MatchingTables, load_matching_tables

logger = logging.getLogger(__name__)

_tables_lock = threading.Lock()
_tables_cache: MatchingTables | None = None
_tables_cache_key: Tuple | None = None


def get_matching_tables(settings: Settings | None = None) -> MatchingTables:
    """Return the matching tables for the current settings, reloading when override files change."""
    settings = settings or get_settings()
    cache_key = (
        settings.piece_weights_path,
        _mtime(settings.piece_weights_path),
        settings.category_keywords_path,
        _mtime(settings.category_keywords_path),
        settings.compatibility_min_ratio,
        settings.compatibility_max_ratio,
        settings.candidate_limit,
        settings.candidate_min_results,
    )
    global _tables_cache, _tables_cache_key
    with _tables_lock:
        if _tables_cache is not None and _tables_cache_key == cache_key:
            return _tables_cache
        tables = load_matching_tables(
            piece_weights_path=settings.piece_weights_path,
            category_keywords_path=settings.category_keywords_path,
            min_ratio=settings.compatibility_min_ratio,
            max_ratio=settings.compatibility_max_ratio,
            candidate_limit=settings.candidate_limit,
            min_results=settings.candidate_min_results,
        )
        logger.info(
            "Loaded matching tables piece_weights=%s category_keywords=%s",
            len(tables.piece_weights),
            len(tables.category_keywords),
        )
        _tables_cache = tables
        _tables_cache_key = cache_key
        return tables


def _mtime(path: str | None) -> float | None:
    if not path:
        return None
    try:
        return os.path.getmtime(path)
    except OSError:
        return None
