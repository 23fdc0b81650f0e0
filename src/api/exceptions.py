"""Exception handlers for the GlowRec API.

Renders every error as ``{"error", "message", "details"}`` so clients see
one response shape for domain errors, request validation errors and
unexpected failures.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from src.personalization.exceptions import GlowRecException

# Configure module logger
logger = logging.getLogger(__name__)


def error_body(
    error: str, message: str, details: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    return {"error": error, "message": message, "details": details or {}}


async def glowrec_exception_handler(request: Request, exc: GlowRecException) -> JSONResponse:
    """Map domain exceptions to their HTTP status code."""
    log = logger.warning if exc.status_code < 500 else logger.error
    log(
        "Request rejected",
        extra={
            "path": str(request.url.path),
            "status_code": exc.status_code,
            "error_type": type(exc).__name__,
            "error": exc.message,
        },
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(type(exc).__name__, exc.message, exc.details),
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Report invalid path, query or body parameters."""
    errors = [
        {"loc": [str(part) for part in err.get("loc", ())], "msg": err.get("msg", "")}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=error_body("RequestValidationError", "Invalid request parameters", {"errors": errors}),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "Unhandled error",
        extra={"path": str(request.url.path), "error_type": type(exc).__name__},
        exc_info=exc,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body("InternalServerError", "An unexpected error occurred"),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Attach the GlowRec exception handlers to an application."""
    app.add_exception_handler(GlowRecException, glowrec_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
