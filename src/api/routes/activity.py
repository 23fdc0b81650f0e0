"""Activity tracking endpoints for the GlowRec API.

Each endpoint records one user interaction in the activity ledger. The
user id comes from the path; authentication happens upstream.
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from src.api.dependencies import get_service
from src.personalization.models import ActivityRecord, ActivityType, FilterSnapshot
from src.personalization.service import RecommendationService


router = APIRouter(
    prefix="/activity",
    tags=["activity"],
)


class ViewRequest(BaseModel):
    time_spent: Optional[float] = Field(default=None, ge=0, description="Seconds on the page")
    variant_id: Optional[str] = None


class VariantRequest(BaseModel):
    variant_id: Optional[str] = None


class SearchRequest(BaseModel):
    search_query: str = Field(..., min_length=1)


class ActivityResponse(BaseModel):
    """Stored activity record."""

    record_id: str
    user_id: str
    activity_type: ActivityType
    product_id: Optional[str] = None
    created_at: datetime

    @classmethod
    def from_record(cls, record: ActivityRecord) -> "ActivityResponse":
        return cls(
            record_id=record.record_id,
            user_id=record.user_id,
            activity_type=record.activity_type,
            product_id=record.product_id,
            created_at=record.created_at,
        )


@router.post(
    "/{user_id}/view/{product_id}",
    response_model=ActivityResponse,
    status_code=status.HTTP_201_CREATED,
)
def log_view(
    user_id: str,
    product_id: str,
    request: Optional[ViewRequest] = None,
    service: RecommendationService = Depends(get_service),
) -> ActivityResponse:
    request = request or ViewRequest()
    record = service.log_product_view(
        user_id, product_id, time_spent=request.time_spent, variant_id=request.variant_id
    )
    return ActivityResponse.from_record(record)


@router.post(
    "/{user_id}/click/{product_id}",
    response_model=ActivityResponse,
    status_code=status.HTTP_201_CREATED,
)
def log_click(
    user_id: str,
    product_id: str,
    request: Optional[VariantRequest] = None,
    service: RecommendationService = Depends(get_service),
) -> ActivityResponse:
    request = request or VariantRequest()
    record = service.log_product_click(user_id, product_id, variant_id=request.variant_id)
    return ActivityResponse.from_record(record)


@router.post(
    "/{user_id}/add-to-cart/{product_id}",
    response_model=ActivityResponse,
    status_code=status.HTTP_201_CREATED,
)
def log_add_to_cart(
    user_id: str,
    product_id: str,
    request: Optional[VariantRequest] = None,
    service: RecommendationService = Depends(get_service),
) -> ActivityResponse:
    request = request or VariantRequest()
    record = service.log_add_to_cart(user_id, product_id, variant_id=request.variant_id)
    return ActivityResponse.from_record(record)


@router.post(
    "/{user_id}/purchase/{product_id}",
    response_model=ActivityResponse,
    status_code=status.HTTP_201_CREATED,
)
def log_purchase(
    user_id: str,
    product_id: str,
    request: Optional[VariantRequest] = None,
    service: RecommendationService = Depends(get_service),
) -> ActivityResponse:
    request = request or VariantRequest()
    record = service.log_purchase(user_id, product_id, variant_id=request.variant_id)
    return ActivityResponse.from_record(record)


@router.post(
    "/{user_id}/search",
    response_model=ActivityResponse,
    status_code=status.HTTP_201_CREATED,
)
def log_search(
    user_id: str,
    request: SearchRequest,
    service: RecommendationService = Depends(get_service),
) -> ActivityResponse:
    record = service.log_search(user_id, request.search_query)
    return ActivityResponse.from_record(record)


@router.post(
    "/{user_id}/filter",
    response_model=ActivityResponse,
    status_code=status.HTTP_201_CREATED,
)
def log_filter(
    user_id: str,
    filters: FilterSnapshot,
    service: RecommendationService = Depends(get_service),
) -> ActivityResponse:
    """Record the filters a user applied. At least one filter must be set."""
    record = service.log_filter_use(user_id, filters)
    return ActivityResponse.from_record(record)
