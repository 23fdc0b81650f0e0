"""Preference aggregation over a user's activity ledger.

Turns raw activity records into weighted affinity maps (categories, brands,
tags) and raw-frequency filter usage patterns. Every operation is read-only
and returns the same result for an unchanged ledger.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from src.personalization.catalog import CatalogLookup, LookupResult
from src.personalization.ledger import ActivityLedger
from src.personalization.models import ActivityType, FilterUsagePatterns

# Configure module logger
logger = logging.getLogger(__name__)

# Contribution of one activity to each attribute of its product
ACTIVITY_WEIGHTS: Dict[ActivityType, int] = {
    ActivityType.PURCHASE: 10,
    ActivityType.ADD_TO_CART: 5,
    ActivityType.SEARCH: 3,
    ActivityType.CLICK: 2,
    ActivityType.FILTER_USE: 2,
    ActivityType.VIEW: 1,
}

DEFAULT_HISTORY_LIMIT = 10
DEFAULT_FILTER_SAMPLE_SIZE = 50
# Records scanned per requested id when de-duplicating recent products
RECENT_SCAN_FACTOR = 3

PreferenceScoreMap = Dict[str, float]


def activity_weight(activity_type: ActivityType) -> int:
    """Weight an activity type contributes to preference scores."""
    return ACTIVITY_WEIGHTS.get(activity_type, 1)


@dataclass
class PreferenceProfile:
    """Category, brand and tag scores from one pass over the ledger.

    ``skipped`` lists the lookups that failed, so skipped records stay
    distinguishable from records whose product has no attributes.
    """

    categories: PreferenceScoreMap = field(default_factory=dict)
    brands: PreferenceScoreMap = field(default_factory=dict)
    tags: PreferenceScoreMap = field(default_factory=dict)
    scored_records: int = 0
    skipped: List[LookupResult] = field(default_factory=list)

    @property
    def has_signal(self) -> bool:
        return bool(self.categories or self.brands or self.tags)


def _add(scores: Dict[str, float], key: str, amount: float) -> None:
    scores[key] = scores.get(key, 0) + amount


class PreferenceAggregator:
    """Derives per-user preference signals from the activity ledger."""

    def __init__(self, ledger: ActivityLedger, catalog: CatalogLookup):
        self.ledger = ledger
        self.catalog = catalog

    def _distinct_recent_products(
        self, user_id: str, activity_type: ActivityType, limit: int
    ) -> List[str]:
        """Distinct product ids, newest first, keeping each id's latest position."""
        if limit <= 0:
            return []

        records = self.ledger.query_by_user(
            user_id,
            activity_type=activity_type,
            limit=limit * RECENT_SCAN_FACTOR,
            with_product_only=True,
        )

        seen = set()
        product_ids = []
        for record in records:
            if record.product_id in seen:
                continue
            seen.add(record.product_id)
            product_ids.append(record.product_id)
            if len(product_ids) >= limit:
                break

        return product_ids

    def recently_viewed(self, user_id: str, limit: int = DEFAULT_HISTORY_LIMIT) -> List[str]:
        return self._distinct_recent_products(user_id, ActivityType.VIEW, limit)

    def most_added_to_cart(self, user_id: str, limit: int = DEFAULT_HISTORY_LIMIT) -> List[str]:
        return self._distinct_recent_products(user_id, ActivityType.ADD_TO_CART, limit)

    def purchased(self, user_id: str, limit: int = DEFAULT_HISTORY_LIMIT) -> List[str]:
        return self._distinct_recent_products(user_id, ActivityType.PURCHASE, limit)

    def preference_profile(self, user_id: str) -> PreferenceProfile:
        """Score categories, brands and tags in a single pass.

        Each record that references a product adds the activity weight to
        every category, the brand and every tag of that product. Records whose
        product cannot be resolved are skipped.

        Args:
            user_id: User whose ledger slice is aggregated.

        Returns:
            PreferenceProfile with the three score maps.
        """
        profile = PreferenceProfile()
        resolved: Dict[str, LookupResult] = {}

        # Oldest first so map insertion order follows the user's history
        records = self.ledger.query_by_user(
            user_id, newest_first=False, with_product_only=True
        )

        for record in records:
            result = resolved.get(record.product_id)
            if result is None:
                result = self.catalog.lookup(record.product_id)
                resolved[record.product_id] = result
                if not result.ok:
                    profile.skipped.append(result)
                    logger.debug(
                        "Skipping activity for unresolved product",
                        extra={
                            "user_id": user_id,
                            "product_id": record.product_id,
                            "error_type": type(result.error).__name__,
                        },
                    )
            if not result.ok:
                continue

            product = result.product
            weight = float(activity_weight(record.activity_type))
            for category_id in product.category_ids:
                _add(profile.categories, category_id, weight)
            if product.brand_id:
                _add(profile.brands, product.brand_id, weight)
            for tag in product.tags:
                _add(profile.tags, tag, weight)
            profile.scored_records += 1

        if profile.skipped:
            logger.info(
                "Preference aggregation skipped unresolved products",
                extra={
                    "user_id": user_id,
                    "num_skipped": len(profile.skipped),
                    "num_scored": profile.scored_records,
                },
            )

        return profile

    def preferred_categories(self, user_id: str) -> PreferenceScoreMap:
        return self.preference_profile(user_id).categories

    def preferred_brands(self, user_id: str) -> PreferenceScoreMap:
        return self.preference_profile(user_id).brands

    def preferred_tags(self, user_id: str) -> PreferenceScoreMap:
        return self.preference_profile(user_id).tags

    def filter_usage_patterns(
        self, user_id: str, sample_size: int = DEFAULT_FILTER_SAMPLE_SIZE
    ) -> FilterUsagePatterns:
        """Count filter values over the most recent filter-use records.

        Every value present in a snapshot adds 1 to its dimension's count;
        activity weights do not apply here.
        """
        patterns = FilterUsagePatterns()
        records = self.ledger.query_by_user(
            user_id, activity_type=ActivityType.FILTER_USE, limit=sample_size
        )

        for record in records:
            filters = record.metadata.filters
            if filters is None:
                continue
            if filters.price is not None:
                patterns.price_ranges.append(filters.price)
            for category_id in filters.category_ids:
                _add(patterns.category_usage, category_id, 1)
            for brand_id in filters.brand_ids:
                _add(patterns.brand_usage, brand_id, 1)
            for tag in filters.tags:
                _add(patterns.tag_usage, tag, 1)
            for skin_type in filters.skin_types:
                _add(patterns.skin_type_usage, skin_type, 1)
            for concern in filters.concerns:
                _add(patterns.concerns_usage, concern, 1)

        return patterns

    def search_history(
        self, user_id: str, limit: Optional[int] = DEFAULT_HISTORY_LIMIT
    ) -> List[str]:
        """Raw search queries, newest first. Duplicates are kept."""
        records = self.ledger.query_by_user(
            user_id, activity_type=ActivityType.SEARCH, limit=limit
        )
        return [
            record.metadata.search_query
            for record in records
            if record.metadata.search_query
        ]
