"""Personalized candidate generation.

Builds a ranked, de-duplicated product list for a user from their preference
signals, then falls back to best sellers and top-rated products until the
requested count is met.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Set, Tuple, Union

from src.personalization.aggregator import (
    DEFAULT_FILTER_SAMPLE_SIZE,
    PreferenceAggregator,
    PreferenceProfile,
)
from src.personalization.catalog import (
    BY_RATING,
    AnyOf,
    CatalogLookup,
    Condition,
    Intersects,
    IsIn,
    TextMatch,
)
from src.personalization.exceptions import GlowRecException
from src.personalization.models import FilterUsagePatterns, ProductAttributes
from src.personalization.tiers import CandidateSet, FallbackTier, run_tiers, top_ranked

# Configure module logger
logger = logging.getLogger(__name__)

DEFAULT_TOP_N = 10
DEFAULT_SIGNAL_TIMEOUT_SECONDS = 2.0
DEFAULT_SIGNAL_WORKERS = 8

# How many top-scoring attributes feed the signal query
TOP_CATEGORIES = 3
TOP_BRANDS = 3
TOP_TAGS = 5
TOP_SKIN_TYPES = 2
TOP_CONCERNS = 2
SEARCH_HISTORY_SAMPLE = 5
SEARCH_TERMS_USED = 3

TIER_SIGNAL = "signal"
TIER_COLD_START = "cold_start"
TIER_FILL = "fill"
TIER_INTERACTED_BACKFILL = "interacted_backfill"


@dataclass
class UserSignals:
    """Everything the generator reads about one user."""

    recently_viewed: List[str] = field(default_factory=list)
    added_to_cart: List[str] = field(default_factory=list)
    purchased: List[str] = field(default_factory=list)
    profile: PreferenceProfile = field(default_factory=PreferenceProfile)
    filter_patterns: FilterUsagePatterns = field(default_factory=FilterUsagePatterns)
    search_history: List[str] = field(default_factory=list)
    timed_out: bool = False

    @property
    def exclusion_set(self) -> Set[str]:
        return set(self.recently_viewed) | set(self.added_to_cart) | set(self.purchased)


@dataclass
class SignalQuery:
    """OR-conditions built from user signals, with the attributes used."""

    conditions: List[Condition] = field(default_factory=list)
    top_categories: List[str] = field(default_factory=list)
    top_brands: List[str] = field(default_factory=list)
    top_tags: List[str] = field(default_factory=list)
    top_skin_types: List[str] = field(default_factory=list)
    top_concerns: List[str] = field(default_factory=list)
    search_terms: List[str] = field(default_factory=list)

    def summary(self) -> Dict[str, List[str]]:
        return {
            "top_categories": self.top_categories,
            "top_brands": self.top_brands,
            "top_tags": self.top_tags,
            "top_skin_types": self.top_skin_types,
            "top_concerns": self.top_concerns,
            "search_terms": self.search_terms,
        }


def build_signal_query(signals: UserSignals) -> SignalQuery:
    """Turn user signals into OR-combined catalog conditions."""
    query = SignalQuery()
    profile = signals.profile
    patterns = signals.filter_patterns

    query.top_categories = top_ranked(profile.categories, TOP_CATEGORIES)
    if query.top_categories:
        query.conditions.append(Intersects("category_ids", query.top_categories))

    query.top_brands = top_ranked(profile.brands, TOP_BRANDS)
    if query.top_brands:
        query.conditions.append(IsIn("brand_id", query.top_brands))

    query.top_tags = top_ranked(profile.tags, TOP_TAGS)
    if query.top_tags:
        query.conditions.append(Intersects("tags", query.top_tags))

    query.top_skin_types = top_ranked(patterns.skin_type_usage, TOP_SKIN_TYPES)
    if query.top_skin_types:
        query.conditions.append(Intersects("skin_types", query.top_skin_types))

    query.top_concerns = top_ranked(patterns.concerns_usage, TOP_CONCERNS)
    if query.top_concerns:
        query.conditions.append(Intersects("concerns", query.top_concerns))

    query.search_terms = [term for term in signals.search_history[:SEARCH_TERMS_USED] if term]
    if query.search_terms:
        query.conditions.append(TextMatch(query.search_terms))

    return query


class CandidateGenerator:
    """Personalized recommendations with fallback tiers."""

    def __init__(
        self,
        aggregator: PreferenceAggregator,
        catalog: CatalogLookup,
        signal_timeout_seconds: Optional[float] = DEFAULT_SIGNAL_TIMEOUT_SECONDS,
        signal_workers: int = DEFAULT_SIGNAL_WORKERS,
        filter_sample_size: int = DEFAULT_FILTER_SAMPLE_SIZE,
        allow_interacted_backfill: bool = False,
    ):
        self.aggregator = aggregator
        self.catalog = catalog
        self.signal_timeout_seconds = signal_timeout_seconds
        self.filter_sample_size = filter_sample_size
        self.allow_interacted_backfill = allow_interacted_backfill
        self._executor = ThreadPoolExecutor(
            max_workers=signal_workers, thread_name_prefix="glowrec-signals"
        )

    def close(self) -> None:
        """Release the signal worker threads."""
        self._executor.shutdown(wait=False)

    def gather_signals(self, user_id: str) -> UserSignals:
        """Read every signal for a user concurrently.

        Reads that fail with a GlowRecException contribute nothing. If the
        reads do not finish within ``signal_timeout_seconds`` the user is
        treated as having no signal at all.
        """
        aggregator = self.aggregator
        readers: Dict[str, Tuple[Callable[[], Any], Any]] = {
            "recently_viewed": (lambda: aggregator.recently_viewed(user_id), []),
            "added_to_cart": (lambda: aggregator.most_added_to_cart(user_id), []),
            "purchased": (lambda: aggregator.purchased(user_id), []),
            "profile": (lambda: aggregator.preference_profile(user_id), PreferenceProfile()),
            "filter_patterns": (
                lambda: aggregator.filter_usage_patterns(user_id, self.filter_sample_size),
                FilterUsagePatterns(),
            ),
            "search_history": (
                lambda: aggregator.search_history(user_id, SEARCH_HISTORY_SAMPLE),
                [],
            ),
        }

        futures = {name: self._executor.submit(reader) for name, (reader, _) in readers.items()}
        done, pending = wait(futures.values(), timeout=self.signal_timeout_seconds)

        if pending:
            for future in pending:
                future.cancel()
            logger.warning(
                "Signal gathering timed out, treating user as cold-start",
                extra={
                    "user_id": user_id,
                    "timeout_seconds": self.signal_timeout_seconds,
                    "pending": [name for name, future in futures.items() if future in pending],
                },
            )
            return UserSignals(timed_out=True)

        values: Dict[str, Any] = {}
        for name, future in futures.items():
            try:
                values[name] = future.result()
            except GlowRecException as e:
                logger.warning(
                    "Signal read failed, continuing without it",
                    extra={"user_id": user_id, "signal": name, "error": str(e)},
                )
                values[name] = readers[name][1]

        return UserSignals(**values)

    def _tiers(self, signal_query: SignalQuery) -> List[FallbackTier]:
        catalog = self.catalog
        tiers = []

        if signal_query.conditions:
            signal_filter = AnyOf(signal_query.conditions)
            tiers.append(
                FallbackTier(
                    TIER_SIGNAL,
                    lambda exclude, n: catalog.query_active(signal_filter, exclude, BY_RATING, n),
                )
            )
        else:
            best_sellers = IsIn("is_best_seller", [True])
            tiers.append(
                FallbackTier(
                    TIER_COLD_START,
                    lambda exclude, n: catalog.query_active(best_sellers, exclude, BY_RATING, n),
                )
            )

        def top_rated(exclude: Set[str], n: int) -> List[ProductAttributes]:
            return catalog.query_active(None, exclude, BY_RATING, n)

        tiers.append(FallbackTier(TIER_FILL, top_rated))
        if self.allow_interacted_backfill:
            tiers.append(FallbackTier(TIER_INTERACTED_BACKFILL, top_rated, honors_exclusions=False))

        return tiers

    def recommend(
        self,
        user_id: str,
        top_n: int = DEFAULT_TOP_N,
        return_details: bool = False,
    ) -> Union[CandidateSet, Tuple[CandidateSet, Dict[str, Any]]]:
        """Get personalized recommendations for a user.

        Args:
            user_id: User to recommend for.
            top_n: Maximum number of products to return.
            return_details: If True, also return the signals and tiers used.

        Returns:
            CandidateSet of at most ``top_n`` products, optionally with a
            details dictionary.
        """
        start_time = time.time()

        signals = self.gather_signals(user_id)
        exclusions = signals.exclusion_set
        signal_query = build_signal_query(signals)

        candidates = run_tiers(
            CandidateSet(top_n),
            self._tiers(signal_query),
            exclusions=exclusions,
        )

        total_time = time.time() - start_time
        logger.info(
            "Personalized recommendations generated",
            extra={
                "user_id": user_id,
                "top_n": top_n,
                "num_recommendations": len(candidates),
                "num_conditions": len(signal_query.conditions),
                "num_excluded": len(exclusions),
                "tiers": candidates.tier_counts(),
                "total_time_ms": round(total_time * 1000, 2),
            },
        )

        if return_details:
            details = {
                "method": TIER_SIGNAL if signal_query.conditions else TIER_COLD_START,
                "signals": signal_query.summary(),
                "excluded": sorted(exclusions),
                "skipped_products": [result.product_id for result in signals.profile.skipped],
                "timed_out": signals.timed_out,
                "tiers": {product_id: candidates.tier_of(product_id) for product_id in candidates.ids},
            }
            return candidates, details

        return candidates
