"""Recommendation service.

Wires the activity ledger, preference aggregator, candidate generator and
similarity engine around an injected catalog, and exposes the entry points
the API calls.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple, Union

from src.config import Settings
from src.personalization.activity import ActivityLogger
from src.personalization.aggregator import PreferenceAggregator
from src.personalization.candidates import CandidateGenerator
from src.personalization.catalog import (
    BY_POPULARITY,
    BY_RATING,
    CatalogLookup,
    InMemoryCatalog,
    TextMatch,
    load_catalog,
)
from src.personalization.exceptions import ValidationError
from src.personalization.ledger import ActivityLedger, InMemoryActivityLedger, JsonlActivityLedger
from src.personalization.models import (
    ActivityRecord,
    FilterSnapshot,
    ProductAttributes,
    validate_identifier,
)
from src.personalization.similarity import SimilarityEngine
from src.personalization.tiers import CandidateSet

# Configure module logger
logger = logging.getLogger(__name__)


class RecommendationService:
    """Entry points for recommendations and activity tracking."""

    def __init__(
        self,
        catalog: CatalogLookup,
        ledger: ActivityLedger,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or Settings()
        self.catalog = catalog
        self.ledger = ledger
        self.activity = ActivityLogger(ledger)
        self.aggregator = PreferenceAggregator(ledger, catalog)
        self.candidates = CandidateGenerator(
            self.aggregator,
            catalog,
            signal_timeout_seconds=self.settings.signal_timeout_seconds,
            signal_workers=self.settings.signal_workers,
            filter_sample_size=self.settings.filter_sample_size,
            allow_interacted_backfill=self.settings.allow_interacted_backfill,
        )
        self.similarity = SimilarityEngine(catalog)

    def close(self) -> None:
        self.candidates.close()

    def _check_limit(self, limit: Optional[int], default: int) -> int:
        if limit is None:
            limit = default
        if limit < 1:
            raise ValidationError("limit must be at least 1", details={"limit": limit})
        return min(limit, self.settings.max_limit)

    def get_personalized_recommendations(
        self,
        user_id: str,
        limit: Optional[int] = None,
        explain: bool = False,
    ) -> Union[List[ProductAttributes], Tuple[List[ProductAttributes], Dict[str, Any]]]:
        """Personalized products for a user, best match first."""
        validate_identifier(user_id, "user_id")
        limit = self._check_limit(limit, self.settings.default_limit)

        if explain:
            candidates, details = self.candidates.recommend(user_id, limit, return_details=True)
            return candidates.products, details
        return self.candidates.recommend(user_id, limit).products

    def get_similar_products(
        self,
        product_id: str,
        limit: Optional[int] = None,
    ) -> List[ProductAttributes]:
        """Products similar to ``product_id``. Never raises; may be empty."""
        if limit is None:
            limit = self.settings.similar_default_limit
        limit = min(max(limit, 0), self.settings.max_limit)
        result: CandidateSet = self.similarity.similar(product_id, limit)
        return result.products

    def get_products_by_search_query(
        self, query: str, limit: Optional[int] = None
    ) -> List[ProductAttributes]:
        """Active products whose name, description or tags contain ``query``."""
        query = (query or "").strip()
        if not query:
            raise ValidationError("query must not be blank", details={"field": "query"})
        limit = self._check_limit(limit, self.settings.default_limit)

        products = self.catalog.query_active(
            TextMatch([query], tag_substring=True), (), BY_RATING, limit
        )
        logger.info(
            "Search query served",
            extra={"query": query, "num_products": len(products)},
        )
        return products

    def get_popular_products(self, limit: Optional[int] = None) -> List[ProductAttributes]:
        """Best sellers first, then by rating and review count."""
        limit = self._check_limit(limit, self.settings.default_limit)
        return self.catalog.query_active(None, (), BY_POPULARITY, limit)

    def get_user_search_history(self, user_id: str, limit: Optional[int] = None) -> List[str]:
        validate_identifier(user_id, "user_id")
        limit = self._check_limit(limit, self.settings.default_limit)
        return self.aggregator.search_history(user_id, limit)

    def get_recently_viewed_products(self, user_id: str, limit: Optional[int] = None) -> List[str]:
        validate_identifier(user_id, "user_id")
        limit = self._check_limit(limit, self.settings.default_limit)
        return self.aggregator.recently_viewed(user_id, limit)

    def log_search(self, user_id: str, search_query: str) -> ActivityRecord:
        return self.activity.log_search(user_id, search_query)

    def log_product_view(
        self,
        user_id: str,
        product_id: str,
        time_spent: Optional[float] = None,
        variant_id: Optional[str] = None,
    ) -> ActivityRecord:
        return self.activity.log_product_view(user_id, product_id, time_spent, variant_id)

    def log_product_click(
        self, user_id: str, product_id: str, variant_id: Optional[str] = None
    ) -> ActivityRecord:
        return self.activity.log_product_click(user_id, product_id, variant_id)

    def log_add_to_cart(
        self, user_id: str, product_id: str, variant_id: Optional[str] = None
    ) -> ActivityRecord:
        return self.activity.log_add_to_cart(user_id, product_id, variant_id)

    def log_purchase(
        self, user_id: str, product_id: str, variant_id: Optional[str] = None
    ) -> ActivityRecord:
        return self.activity.log_purchase(user_id, product_id, variant_id)

    def log_filter_use(self, user_id: str, filters: FilterSnapshot) -> ActivityRecord:
        return self.activity.log_filter_use(user_id, filters)

    def status(self) -> Dict[str, Any]:
        """Catalog and ledger sizes for the status endpoint."""
        catalog_size = len(self.catalog) if hasattr(self.catalog, "__len__") else None
        active = self.catalog.count_active() if hasattr(self.catalog, "count_active") else None
        return {
            "catalog_size": catalog_size,
            "active_products": active,
            "activity_records": self.ledger.count(),
        }


def build_service(settings: Settings) -> RecommendationService:
    """Create a service from settings.

    Loads the catalog file when ``catalog_path`` is set (an empty catalog
    otherwise) and uses a JSON-lines ledger when ``ledger_path`` is set.
    """
    if settings.catalog_path:
        catalog: CatalogLookup = load_catalog(settings.catalog_path)
    else:
        logger.warning("No catalog path configured, starting with an empty catalog")
        catalog = InMemoryCatalog()

    if settings.ledger_path:
        ledger: ActivityLedger = JsonlActivityLedger(settings.ledger_path)
    else:
        ledger = InMemoryActivityLedger()

    return RecommendationService(catalog, ledger, settings)
