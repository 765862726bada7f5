"""Output helpers for analyses and shopping lists."""

from __future__ import annotations

import csv
import json
from pathlib import Path
from typing import Iterable, Mapping, Sequence

from panier_server.schemas import MatchResult

SHOPPING_LIST_FIELDS = ["ingredient", "amount", "unit", "productId", "product", "brand", "price"]


def ensure_dir(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def write_json(payload: object, path: Path) -> None:
    ensure_dir(path)
    with path.open("w", encoding="utf-8") as fh:
        json.dump(payload, fh, ensure_ascii=False, indent=2)
        fh.write("\n")


def write_text(text: str, path: Path) -> None:
    ensure_dir(path)
    path.write_text(text if text.endswith("\n") else text + "\n", encoding="utf-8")


def write_csv(records: Iterable[Mapping[str, object]], path: Path, *, fieldnames: list[str]) -> None:
    ensure_dir(path)
    with path.open("w", encoding="utf-8", newline="") as fh:
        writer = csv.DictWriter(fh, fieldnames=fieldnames)
        writer.writeheader()
        for record in records:
            writer.writerow({key: record.get(key) for key in fieldnames})


def shopping_list_rows(matches: Sequence[MatchResult], excluded_product_ids: Iterable[str] = ()) -> list[dict]:
    """One CSV row per ingredient; excluded or missing products leave the product columns blank."""
    excluded = set(excluded_product_ids)
    rows: list[dict] = []
    for match in matches:
        product = match.selectedProduct
        if product is not None and product.productId in excluded:
            product = None
        rows.append(
            {
                "ingredient": match.ingredient.name,
                "amount": match.ingredient.amount,
                "unit": match.ingredient.unit,
                "productId": product.productId if product else "",
                "product": product.name if product else "",
                "brand": (product.brand or "") if product else "",
                "price": f"{match.price:.2f}" if product else "",
            }
        )
    return rows
