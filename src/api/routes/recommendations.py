"""Recommendation endpoints for the GlowRec API.

This module provides endpoints for personalized recommendations, similar
products, catalog search, popular products and a user's browsing history.
"""

import time
from collections import Counter
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from src.api.dependencies import get_metrics, get_service
from src.api.metrics import MetricsService
from src.personalization.models import ProductAttributes
from src.personalization.service import RecommendationService


# Create API router
router = APIRouter(
    prefix="/recommendations",
    tags=["recommendations"],
)


class ProductListResponse(BaseModel):
    """Products returned by a recommendation endpoint.

    Attributes:
        products: Products in ranked order.
        count: Number of products returned.
    """

    products: List[ProductAttributes] = Field(..., description="Products in ranked order")
    count: int = Field(..., description="Number of products returned")


class PersonalizedResponse(ProductListResponse):
    user_id: str = Field(..., description="User the products were picked for")
    details: Optional[Dict[str, Any]] = Field(
        default=None, description="Signals and fallback tiers used (explain=true only)"
    )


class SimilarProductsResponse(ProductListResponse):
    product_id: str = Field(..., description="Reference product")


class SearchResponse(ProductListResponse):
    query: str = Field(..., description="Search text")


class HistoryResponse(BaseModel):
    user_id: str
    items: List[str] = Field(..., description="Most recent first")


def _elapsed_ms(start_time: float) -> float:
    return (time.time() - start_time) * 1000


@router.get("/personalized/{user_id}", response_model=PersonalizedResponse)
def get_personalized(
    user_id: str,
    limit: Optional[int] = Query(default=None, ge=1, description="Number of products"),
    explain: bool = Query(default=False, description="Include signals and tiers"),
    service: RecommendationService = Depends(get_service),
    metrics: MetricsService = Depends(get_metrics),
) -> PersonalizedResponse:
    """Get personalized recommendations for a user.

    Products the user already viewed, added to cart or purchased are left
    out. Users without activity get best sellers.

    Example:
        GET /recommendations/personalized/u1?limit=5
    """
    start_time = time.time()
    products, details = service.get_personalized_recommendations(user_id, limit, explain=True)

    metrics.record_call(
        "personalized",
        _elapsed_ms(start_time),
        tier_counts=Counter(details["tiers"].values()),
    )
    return PersonalizedResponse(
        user_id=user_id,
        products=products,
        count=len(products),
        details=details if explain else None,
    )


@router.get("/similar/{product_id}", response_model=SimilarProductsResponse)
def get_similar(
    product_id: str,
    limit: Optional[int] = Query(default=None, ge=1, description="Number of products"),
    service: RecommendationService = Depends(get_service),
    metrics: MetricsService = Depends(get_metrics),
) -> SimilarProductsResponse:
    """Get products similar to a reference product.

    An unknown product yields an empty list rather than an error.
    """
    start_time = time.time()
    products = service.get_similar_products(product_id, limit)
    metrics.record_call("similar", _elapsed_ms(start_time))
    return SimilarProductsResponse(product_id=product_id, products=products, count=len(products))


@router.get("/search", response_model=SearchResponse)
def search(
    query: str = Query(..., min_length=1, description="Search text"),
    user_id: Optional[str] = Query(default=None, description="Record the search for this user"),
    limit: Optional[int] = Query(default=None, ge=1),
    service: RecommendationService = Depends(get_service),
    metrics: MetricsService = Depends(get_metrics),
) -> SearchResponse:
    """Search active products by name, description and tags."""
    start_time = time.time()
    if user_id is not None:
        service.log_search(user_id, query)

    products = service.get_products_by_search_query(query, limit)
    metrics.record_call("search", _elapsed_ms(start_time))
    return SearchResponse(query=query, products=products, count=len(products))


@router.get("/popular", response_model=ProductListResponse)
def popular(
    limit: Optional[int] = Query(default=None, ge=1),
    service: RecommendationService = Depends(get_service),
    metrics: MetricsService = Depends(get_metrics),
) -> ProductListResponse:
    start_time = time.time()
    products = service.get_popular_products(limit)
    metrics.record_call("popular", _elapsed_ms(start_time))
    return ProductListResponse(products=products, count=len(products))


@router.get("/history/search/{user_id}", response_model=HistoryResponse)
def search_history(
    user_id: str,
    limit: Optional[int] = Query(default=None, ge=1),
    service: RecommendationService = Depends(get_service),
) -> HistoryResponse:
    """Recent search queries for a user, newest first."""
    return HistoryResponse(user_id=user_id, items=service.get_user_search_history(user_id, limit))


@router.get("/history/viewed/{user_id}", response_model=HistoryResponse)
def viewed_history(
    user_id: str,
    limit: Optional[int] = Query(default=None, ge=1),
    service: RecommendationService = Depends(get_service),
) -> HistoryResponse:
    """Distinct recently viewed product ids for a user."""
    return HistoryResponse(
        user_id=user_id, items=service.get_recently_viewed_products(user_id, limit)
    )
