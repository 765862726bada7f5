"""Command-line interface for recipe analysis and shopping list previews."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Iterable

from panier_server.matching.basket import cost_per_serving, format_shopping_list, rescale_matches, total_cost
from panier_server.matching.errors import PanierError
from panier_server.matching.tables import load_matching_tables
from panier_server.schemas import RecipeAnalysisResponse
from panier_server.services.catalog import load_catalog_csv
from panier_server.services.catalog_stats import summarize_catalog

from .client import ApiError, ClientConfig, PanierClient
from .writer import SHOPPING_LIST_FIELDS, shopping_list_rows, write_csv, write_json, write_text

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Recipe to priced shopping list tooling")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    analyze = subparsers.add_parser("analyze", help="Analyze a recipe through the server")
    analyze.add_argument("--recipe", type=Path, required=True, help="Path to a recipe text file")
    analyze.add_argument(
        "--server",
        default=ClientConfig.base_url,
        help="Base URL of the panier server",
    )
    analyze.add_argument("--servings", type=int, default=None, help="Override the recipe servings")
    analyze.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Path to write the analysis JSON",
    )
    analyze.set_defaults(func=run_analyze)

    reprice = subparsers.add_parser("reprice", help="Rescale and reprice a saved analysis locally")
    reprice.add_argument("--analysis", type=Path, required=True, help="Analysis JSON written by 'analyze'")
    reprice.add_argument("--servings", type=int, default=None, help="New number of servings")
    reprice.add_argument(
        "--exclude",
        nargs="*",
        default=[],
        metavar="PRODUCT_ID",
        help="Product ids already at home",
    )
    reprice.add_argument(
        "--piece-weights",
        type=Path,
        default=None,
        help="Optional JSON file overriding per-piece weights",
    )
    reprice.add_argument(
        "--export",
        type=Path,
        default=None,
        help="Write the shopping list to this file (.csv for a table, text otherwise)",
    )
    reprice.set_defaults(func=run_reprice)

    stats = subparsers.add_parser("stats", help="Summarize a catalog CSV")
    stats.add_argument("--catalog", type=Path, required=True, help="Path to the catalog CSV")
    stats.add_argument("--category", default=None, help="Restrict to one main category")
    stats.set_defaults(func=run_stats)

    return parser


def run_analyze(args: argparse.Namespace) -> int:
    recipe = args.recipe.read_text(encoding="utf-8")
    with PanierClient(config=ClientConfig(base_url=args.server)) as client:
        payload = client.analyze_recipe(recipe, servings=args.servings)
    analysis = RecipeAnalysisResponse.model_validate(payload)
    logger.info(
        "Analysis received ingredients=%s total=%s", len(analysis.matches), analysis.totalCost
    )
    if args.output:
        write_json(payload, args.output)
        logger.info("Wrote analysis -> %s", args.output)
    print(format_shopping_list(analysis.matches, analysis.servings))
    return 0


def run_reprice(args: argparse.Namespace) -> int:
    with args.analysis.open("r", encoding="utf-8") as fh:
        analysis = RecipeAnalysisResponse.model_validate(json.load(fh))
    tables = load_matching_tables(piece_weights_path=args.piece_weights)
    servings = args.servings or analysis.servings
    matches = rescale_matches(
        analysis.matches,
        analysis.servings,
        servings,
        piece_weights=tables.piece_weights,
    )
    shopping_list = format_shopping_list(matches, servings, excluded_product_ids=args.exclude)
    total = total_cost(matches, args.exclude)
    logger.info(
        "Repriced analysis servings=%s total=%s per_serving=%s",
        servings,
        total,
        cost_per_serving(total, servings),
    )
    if args.export:
        if args.export.suffix.lower() == ".csv":
            write_csv(shopping_list_rows(matches, args.exclude), args.export, fieldnames=SHOPPING_LIST_FIELDS)
        else:
            write_text(shopping_list, args.export)
        logger.info("Wrote shopping list -> %s", args.export)
    print(shopping_list)
    return 0


def run_stats(args: argparse.Namespace) -> int:
    catalog = load_catalog_csv(args.catalog)
    stats = summarize_catalog(catalog, category=args.category)
    print(json.dumps(stats.model_dump(), ensure_ascii=False, indent=2))
    return 0


def main(argv: Iterable[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    logging.basicConfig(level=getattr(logging, args.log_level), stream=sys.stderr)
    try:
        return args.func(args)
    except (ApiError, PanierError, OSError, ValueError) as exc:
        logger.error("%s failed: %s", args.command, exc)
        return 1


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
