"""Request dependencies shared by the API routers."""

from fastapi import Request

from src.api.metrics import MetricsService
from src.personalization.exceptions import DependencyError
from src.personalization.service import RecommendationService


def get_service(request: Request) -> RecommendationService:
    service = request.app.state.service
    if service is None:
        raise DependencyError("recommendation_service", RuntimeError("service is not initialized"))
    return service


def get_metrics(request: Request) -> MetricsService:
    return request.app.state.metrics
