"""FastAPI application main module.

This module builds the FastAPI application for the GlowRec recommendation
service: health, status and metrics endpoints, the recommendation and
activity routers, request logging and exception handlers.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI

from src import __version__
from src.api.dependencies import get_metrics, get_service
from src.api.exceptions import register_exception_handlers
from src.api.logging_config import RequestLoggingMiddleware, setup_logging
from src.api.metrics import MetricsService
from src.api.routes import activity, recommendations
from src.config import get_settings
from src.personalization.service import RecommendationService, build_service

# Configure module logger
logger = logging.getLogger(__name__)


def create_app(service: Optional[RecommendationService] = None) -> FastAPI:
    """Create the API application.

    Args:
        service: Recommendation service to serve. When omitted, one is built
            from the environment settings at startup.

    Returns:
        Configured FastAPI application.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owns_service = app.state.service is None
        if owns_service:
            settings = get_settings()
            setup_logging(settings.log_level)
            app.state.service = build_service(settings)
            logger.info("Recommendation service started", extra=app.state.service.status())
        try:
            yield
        finally:
            if owns_service:
                app.state.service.close()
                app.state.service = None

    app = FastAPI(
        title="GlowRec API",
        description="Personalized product recommendations and activity tracking",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.service = service
    app.state.metrics = MetricsService()

    app.add_middleware(RequestLoggingMiddleware)
    register_exception_handlers(app)

    app.include_router(recommendations.router)
    app.include_router(activity.router)

    @app.get("/ping")
    def ping() -> Dict[str, str]:
        """Health check endpoint.

        Returns:
            Dictionary with status key set to "ok".

        Example:
            >>> response = client.get("/ping")
            >>> assert response.json() == {"status": "ok"}
        """
        return {"status": "ok"}

    @app.get("/status")
    def service_status(
        service: RecommendationService = Depends(get_service),
    ) -> Dict[str, Any]:
        """Catalog and activity ledger sizes."""
        return {"status": "ok", "version": __version__, **service.status()}

    @app.get("/metrics")
    def metrics(metrics_service: MetricsService = Depends(get_metrics)) -> Dict[str, Any]:
        """Per-endpoint call counts and latency, and per-tier product counts."""
        return metrics_service.get_metrics()

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "src.api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
