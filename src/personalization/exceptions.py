"""Custom exceptions for the GlowRec personalization engine.

Defines specific exception types for better error handling and reporting.
"""

from typing import Any, Dict, Optional


class GlowRecException(Exception):
    """Base exception for GlowRec errors."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
    ):
        """Initialize exception.

        Args:
            message: Human-readable error message
            status_code: HTTP status code for API responses
            details: Additional error details for debugging
        """
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details or {}


class ValidationError(GlowRecException):
    """Raised when an identifier is malformed or a required field is missing."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, status_code=400, details=details)


class NotFoundError(GlowRecException):
    """Raised when a referenced entity does not exist."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, status_code=404, details=details)


class ProductNotFoundError(NotFoundError):
    """Raised when a product is not in the catalog."""

    def __init__(self, product_id: str):
        super().__init__(
            message=f"Product '{product_id}' not found in catalog.",
            details={"product_id": product_id},
        )
        self.product_id = product_id


class DependencyError(GlowRecException):
    """Raised when the catalog or activity store cannot serve a request."""

    def __init__(self, dependency: str, error: Exception):
        message = f"Dependency '{dependency}' failed: {str(error)}"
        super().__init__(
            message=message,
            status_code=503,
            details={
                "dependency": dependency,
                "error": str(error),
                "error_type": type(error).__name__,
            },
        )
