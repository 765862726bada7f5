from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple

from ..schemas import (
    CategorizedIngredient,
    CompatibilityAnnotation,
    Ingredient,
    MatchResult,
    Product,
    ProductSelection,
)
from .compatibility import annotate_compatibility
from .prefilter import prefilter_candidates
from .pricing import quote_price
from .tables import MatchingTables

logger = logging.getLogger(__name__)

ProductSelector = Callable[
    [Ingredient, Sequence[Product], Sequence[CompatibilityAnnotation]],
    Awaitable[ProductSelection],
]


class MatchOrchestrator:
    """Run the per-ingredient matching pipeline across a batch of ingredients.

    Each ingredient is pre-filtered within its suggested categories, annotated
    for package compatibility, handed to ``selector`` for the final choice and
    then priced. Pipelines run concurrently; a failure in one ingredient is
    reported on its own ``MatchResult`` and never aborts the batch.
    """

    def __init__(
        self,
        *,
        selector: ProductSelector,
        tables: Optional[MatchingTables] = None,
        selection_timeout: float | None = None,
        max_concurrency: int | None = None,
        semaphore: asyncio.Semaphore | None = None,
    ) -> None:
        self.selector = selector
        self.tables = tables or MatchingTables()
        self.selection_timeout = selection_timeout
        if semaphore is None and max_concurrency:
            semaphore = asyncio.Semaphore(max_concurrency)
        self._semaphore = semaphore

    def select_candidates(
        self,
        ingredient: CategorizedIngredient,
        catalog: Sequence[Product],
    ) -> Tuple[List[Product], Optional[str]]:
        categories = [category for category in getattr(ingredient, "categories", None) or [] if category]
        for category in categories:
            target = category.casefold()
            pool = [
                product
                for product in catalog
                if product.main_category and product.main_category.casefold() == target
            ]
            candidates = self._prefilter(ingredient, pool)
            if candidates:
                return candidates, category
        candidates = self._prefilter(ingredient, catalog)
        return candidates, (categories[0] if categories else None)

    async def match_one(
        self,
        ingredient: CategorizedIngredient,
        catalog: Sequence[Product],
    ) -> MatchResult:
        try:
            return await self._run_pipeline(ingredient, catalog)
        except asyncio.TimeoutError:
            logger.warning(
                "Product selection timed out ingredient=%s timeout=%ss",
                ingredient.name,
                self.selection_timeout,
            )
            return _error_result(
                ingredient,
                f"Product selection timed out after {self.selection_timeout}s",
            )
        except Exception as exc:
            logger.warning("Ingredient match failed ingredient=%s error=%s", ingredient.name, exc)
            return _error_result(ingredient, str(exc) or exc.__class__.__name__)

    async def match_all(
        self,
        ingredients: Sequence[CategorizedIngredient],
        catalog: Sequence[Product],
    ) -> List[MatchResult]:
        """Match every ingredient, returning results in input order."""
        if not ingredients:
            return []
        results = await asyncio.gather(
            *(self.match_one(ingredient, catalog) for ingredient in ingredients)
        )
        failed = sum(1 for result in results if result.status == "error")
        if failed:
            logger.info("Match batch completed with failures total=%s failed=%s", len(results), failed)
        return list(results)

    async def iter_matches(
        self,
        ingredients: Sequence[CategorizedIngredient],
        catalog: Sequence[Product],
    ) -> AsyncIterator[Tuple[int, MatchResult]]:
        """Yield ``(index, result)`` pairs as soon as each ingredient finishes."""
        tasks: Dict[asyncio.Future, int] = {
            asyncio.ensure_future(self.match_one(ingredient, catalog)): index
            for index, ingredient in enumerate(ingredients)
        }
        pending = set(tasks)
        try:
            while pending:
                done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
                for task in sorted(done, key=lambda item: tasks[item]):
                    yield tasks[task], task.result()
        finally:
            for task in pending:
                task.cancel()

    async def _run_pipeline(
        self,
        ingredient: CategorizedIngredient,
        catalog: Sequence[Product],
    ) -> MatchResult:
        candidates, category = self.select_candidates(ingredient, catalog)
        annotations = annotate_compatibility(
            ingredient,
            candidates,
            min_ratio=self.tables.min_ratio,
            max_ratio=self.tables.max_ratio,
        )
        base_ingredient = Ingredient.model_validate(ingredient.model_dump(exclude={"categories"}))
        selection = await self._select(base_ingredient, candidates, annotations)
        product = _resolve_candidate(selection.selectedProduct, candidates)
        if selection.selectedProduct is not None and product is None:
            logger.warning(
                "Selector returned a product outside the candidate list ingredient=%s product=%s",
                ingredient.name,
                selection.selectedProduct.productId,
            )
        quote = quote_price(base_ingredient, product, piece_weights=self.tables.piece_weights)
        return MatchResult(
            ingredient=base_ingredient,
            status="ok",
            selectedProduct=product,
            confidence=selection.confidence if product is not None else 0.0,
            compatible=selection.compatible if product is not None else False,
            substitutionNotes=selection.substitutionNotes,
            category=category,
            price=round(quote.price, 4),
            priceBasis=quote.basis,
            candidateCount=len(candidates),
        )

    async def _select(
        self,
        ingredient: Ingredient,
        candidates: Sequence[Product],
        annotations: Sequence[CompatibilityAnnotation],
    ) -> ProductSelection:
        """Run the selector inside a concurrency slot, bounded by ``selection_timeout``.

        A timed-out selection is abandoned, not cancelled: selectors that wrap
        a blocking call in a worker thread keep running until that call
        returns, so the slot is only released once the selector really ends.
        """
        semaphore = self._semaphore
        if semaphore is not None:
            await semaphore.acquire()
        try:
            task = asyncio.ensure_future(self.selector(ingredient, candidates, annotations))
        except Exception:
            if semaphore is not None:
                semaphore.release()
            raise
        task.add_done_callback(_selection_finished(ingredient.name, semaphore))
        if not self.selection_timeout:
            return await task
        return await asyncio.wait_for(asyncio.shield(task), timeout=self.selection_timeout)

    def _prefilter(self, ingredient: Ingredient, pool: Sequence[Product]) -> List[Product]:
        return prefilter_candidates(
            ingredient,
            pool,
            limit=self.tables.candidate_limit,
            min_results=self.tables.min_results,
        )


def _resolve_candidate(selected: Optional[Product], candidates: Sequence[Product]) -> Optional[Product]:
    if selected is None:
        return None
    for candidate in candidates:
        if candidate.productId == selected.productId:
            return candidate
    return None


def _selection_finished(
    ingredient_name: str,
    semaphore: Optional[asyncio.Semaphore],
) -> Callable[[asyncio.Future], None]:
    def _done(task: asyncio.Future) -> None:
        if semaphore is not None:
            semaphore.release()
        # Consume the outcome of selections nobody awaits any more.
        if not task.cancelled() and task.exception() is not None:
            logger.debug(
                "Selector finished with error ingredient=%s error=%s",
                ingredient_name,
                task.exception(),
            )

    return _done


def _error_result(ingredient: Ingredient, message: str) -> MatchResult:
    return MatchResult(
        ingredient=Ingredient.model_validate(ingredient.model_dump(exclude={"categories"})),
        status="error",
        error=message,
    )


__all__ = ["MatchOrchestrator", "ProductSelector"]
