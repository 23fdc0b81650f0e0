"""Activity recording calls.

Each ``log_*`` method builds one activity record for a tracked user action
and appends it to the ledger.
"""

import logging
from typing import List, Optional, Union

import pydantic

from src.personalization.exceptions import ValidationError
from src.personalization.ledger import ActivityLedger
from src.personalization.models import (
    ActivityMetadata,
    ActivityRecord,
    ActivityType,
    FilterSnapshot,
    validate_identifier,
)

# Configure module logger
logger = logging.getLogger(__name__)

DEFAULT_ACTIVITY_LIMIT = 100


class ActivityLogger:
    """Records user interactions in an activity ledger."""

    def __init__(self, ledger: ActivityLedger):
        self.ledger = ledger

    def _record(
        self,
        user_id: str,
        activity_type: ActivityType,
        product_id: Optional[str] = None,
        metadata: Optional[ActivityMetadata] = None,
    ) -> ActivityRecord:
        validate_identifier(user_id, "user_id")
        if product_id is not None:
            validate_identifier(product_id, "product_id")

        record = ActivityRecord(
            user_id=user_id,
            activity_type=activity_type,
            product_id=product_id,
            metadata=metadata or ActivityMetadata(),
        )
        stored = self.ledger.append_record(record)

        logger.info(
            "Activity recorded",
            extra={
                "user_id": user_id,
                "activity_type": activity_type.value,
                "product_id": product_id,
                "record_id": stored.record_id,
            },
        )
        return stored

    def log_search(self, user_id: str, search_query: str) -> ActivityRecord:
        query = (search_query or "").strip()
        if not query:
            raise ValidationError("search_query must not be blank", details={"field": "search_query"})
        return self._record(
            user_id,
            ActivityType.SEARCH,
            metadata=ActivityMetadata(search_query=query),
        )

    def log_product_view(
        self,
        user_id: str,
        product_id: str,
        time_spent: Optional[float] = None,
        variant_id: Optional[str] = None,
    ) -> ActivityRecord:
        if time_spent is not None and time_spent < 0:
            raise ValidationError("time_spent must not be negative", details={"time_spent": time_spent})
        return self._record(
            user_id,
            ActivityType.VIEW,
            product_id=product_id,
            metadata=ActivityMetadata(time_spent=time_spent, variant_id=variant_id),
        )

    def log_product_click(
        self, user_id: str, product_id: str, variant_id: Optional[str] = None
    ) -> ActivityRecord:
        return self._record(
            user_id,
            ActivityType.CLICK,
            product_id=product_id,
            metadata=ActivityMetadata(variant_id=variant_id),
        )

    def log_add_to_cart(
        self, user_id: str, product_id: str, variant_id: Optional[str] = None
    ) -> ActivityRecord:
        return self._record(
            user_id,
            ActivityType.ADD_TO_CART,
            product_id=product_id,
            metadata=ActivityMetadata(variant_id=variant_id),
        )

    def log_purchase(
        self, user_id: str, product_id: str, variant_id: Optional[str] = None
    ) -> ActivityRecord:
        return self._record(
            user_id,
            ActivityType.PURCHASE,
            product_id=product_id,
            metadata=ActivityMetadata(variant_id=variant_id),
        )

    def log_filter_use(
        self, user_id: str, filters: Union[FilterSnapshot, dict]
    ) -> ActivityRecord:
        """Record a filter snapshot. Empty snapshots are rejected."""
        if isinstance(filters, dict):
            try:
                filters = FilterSnapshot.model_validate(filters)
            except pydantic.ValidationError as e:
                raise ValidationError(
                    "Invalid filter snapshot",
                    details={"errors": [err["msg"] for err in e.errors()]},
                ) from e
        if filters.is_empty():
            raise ValidationError("filter snapshot is empty", details={"field": "filters"})
        return self._record(
            user_id,
            ActivityType.FILTER_USE,
            metadata=ActivityMetadata(filters=filters),
        )

    def get_user_activities(
        self, user_id: str, limit: int = DEFAULT_ACTIVITY_LIMIT
    ) -> List[ActivityRecord]:
        """Most recent activities of a user, newest first."""
        validate_identifier(user_id, "user_id")
        return self.ledger.query_by_user(user_id, limit=limit)
