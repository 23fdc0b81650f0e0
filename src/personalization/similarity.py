"""Similar product retrieval.

Finds products that share name keywords or catalog attributes with a
reference product, then falls back to same-category, same-brand and finally
any active product until the requested count is met. Lookup failures never
reach the caller: they produce an empty result.
"""

import logging
import re
import time
from typing import Any, Dict, List, Tuple, Union

from src.personalization.catalog import (
    BY_BEST_SELLER_RATING_NEWEST,
    BY_RATING_BEST_SELLER_NEWEST,
    BY_RATING_THEN_BEST_SELLER,
    AnyOf,
    CatalogLookup,
    Condition,
    Intersects,
    IsIn,
    NameKeywords,
)
from src.personalization.models import ProductAttributes, validate_identifier
from src.personalization.tiers import CandidateSet, FallbackTier, run_tiers

# Configure module logger
logger = logging.getLogger(__name__)

DEFAULT_SIMILAR_LIMIT = 8
MIN_KEYWORD_LENGTH = 3

TIER_ATTRIBUTES = "attributes"
TIER_SAME_CATEGORY = "same_category"
TIER_SAME_BRAND = "same_brand"
TIER_GLOBAL = "global"

_TOKEN_SPLIT = re.compile(r"[^\w]+", re.UNICODE)


def name_keywords(name: str) -> List[str]:
    """Distinct lower-cased name tokens longer than two characters."""
    keywords = []
    for token in _TOKEN_SPLIT.split(name.lower()):
        token = token.strip("_")
        if len(token) >= MIN_KEYWORD_LENGTH and token not in keywords:
            keywords.append(token)
    return keywords


def similarity_conditions(product: ProductAttributes) -> List[Condition]:
    """OR-conditions in priority order for a reference product."""
    conditions: List[Condition] = []

    keywords = name_keywords(product.name)
    if keywords:
        conditions.append(NameKeywords(keywords))
    if product.category_ids:
        conditions.append(Intersects("category_ids", product.category_ids))
    if product.brand_id:
        conditions.append(IsIn("brand_id", [product.brand_id]))
    if product.tags:
        conditions.append(Intersects("tags", product.tags))
    if product.skin_types:
        conditions.append(Intersects("skin_types", product.skin_types))
    if product.concerns:
        conditions.append(Intersects("concerns", product.concerns))

    return conditions


class SimilarityEngine:
    """Attribute-overlap similarity with a fallback cascade."""

    def __init__(self, catalog: CatalogLookup):
        self.catalog = catalog

    def _tiers(self, product: ProductAttributes) -> List[FallbackTier]:
        catalog = self.catalog
        tiers = []

        conditions = similarity_conditions(product)
        if conditions:
            overlap = AnyOf(conditions)
            tiers.append(
                FallbackTier(
                    TIER_ATTRIBUTES,
                    lambda exclude, n: catalog.query_active(
                        overlap, exclude, BY_RATING_THEN_BEST_SELLER, n
                    ),
                )
            )

        if product.category_ids:
            same_category = Intersects("category_ids", product.category_ids)
            tiers.append(
                FallbackTier(
                    TIER_SAME_CATEGORY,
                    lambda exclude, n: catalog.query_active(
                        same_category, exclude, BY_RATING_BEST_SELLER_NEWEST, n
                    ),
                )
            )

        if product.brand_id:
            same_brand = IsIn("brand_id", [product.brand_id])
            tiers.append(
                FallbackTier(
                    TIER_SAME_BRAND,
                    lambda exclude, n: catalog.query_active(
                        same_brand, exclude, BY_RATING_BEST_SELLER_NEWEST, n
                    ),
                )
            )

        tiers.append(
            FallbackTier(
                TIER_GLOBAL,
                lambda exclude, n: catalog.query_active(
                    None, exclude, BY_BEST_SELLER_RATING_NEWEST, n
                ),
            )
        )
        return tiers

    def similar(
        self,
        product_id: str,
        limit: int = DEFAULT_SIMILAR_LIMIT,
        return_details: bool = False,
    ) -> Union[CandidateSet, Tuple[CandidateSet, Dict[str, Any]]]:
        """Get products similar to ``product_id``.

        Args:
            product_id: Reference product.
            limit: Maximum number of products to return.
            return_details: If True, also return the tier of every product.

        Returns:
            CandidateSet of at most ``limit`` products, never containing the
            reference product. Empty if the reference cannot be resolved or
            any lookup fails.
        """
        start_time = time.time()
        empty = CandidateSet(0)

        try:
            validate_identifier(product_id, "product_id")
            reference = self.catalog.get_product(product_id)
            candidates = run_tiers(
                CandidateSet(limit, blocked=[reference.id]),
                self._tiers(reference),
            )
        except Exception as e:
            logger.warning(
                "Similar products unavailable, returning empty result",
                extra={
                    "product_id": product_id,
                    "error": str(e),
                    "error_type": type(e).__name__,
                },
            )
            if return_details:
                return empty, {"tiers": {}, "error_type": type(e).__name__}
            return empty

        # Re-check uniqueness before handing the list out
        final = CandidateSet(limit, blocked=[reference.id])
        for product in candidates:
            final.add(product, candidates.tier_of(product.id))

        total_time = time.time() - start_time
        logger.info(
            "Similar products generated",
            extra={
                "product_id": product_id,
                "limit": limit,
                "num_products": len(final),
                "tiers": final.tier_counts(),
                "total_time_ms": round(total_time * 1000, 2),
            },
        )

        if return_details:
            return final, {
                "tiers": {pid: final.tier_of(pid) for pid in final.ids},
            }
        return final
