"""
Custom exception classes for the application.

Repository failures surface as DatabaseError and are never converted
into an unmatched result. A miss is a None return, not an exception.
"""

from typing import Optional, Any
from datetime import datetime


class AppError(Exception):
    """
    Base exception for all application errors.

    All custom exceptions inherit from this.

    Attributes:
        code: Error code (e.g., "EMISSION_FACTOR_NOT_FOUND")
        message: Human-readable message
        status_code: HTTP status code
        details: Additional context
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: Optional[dict[str, Any]] = None
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.timestamp = datetime.utcnow().isoformat()
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to API response format."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
                "timestamp": self.timestamp
            }
        }


class NotFoundError(AppError):
    """Resource not found (404)."""

    def __init__(
        self,
        resource: str,
        identifier: str,
        code: Optional[str] = None
    ):
        super().__init__(
            code=code or f"{resource.upper()}_NOT_FOUND",
            message=f"{resource} not found",
            status_code=404,
            details={"id": identifier}
        )


class ValidationError(AppError):
    """Validation failed (422)."""

    def __init__(
        self,
        message: str,
        code: str = "VALIDATION_ERROR",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=422,
            details=details
        )


class DatabaseError(AppError):
    """Database operation failed (500)."""

    def __init__(
        self,
        operation: str,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code="DATABASE_ERROR",
            message=f"Database {operation} failed: {message}",
            status_code=500,
            details={"operation": operation, **(details or {})}
        )


# ===================
# EMISSION FACTOR ERRORS
# ===================

class EmissionFactorNotFoundError(NotFoundError):
    """Emission factor not found."""

    def __init__(self, factor_id: str):
        super().__init__(
            resource="Emission factor",
            identifier=factor_id,
            code="EMISSION_FACTOR_NOT_FOUND"
        )


# ===================
# MATCHING ERRORS
# ===================

class ExchangeRateRequiredError(ValidationError):
    """Amount is in a foreign currency and no rate was supplied."""

    def __init__(self, currency: str, base_currency: str):
        super().__init__(
            code="EXCHANGE_RATE_REQUIRED",
            message=f"Exchange rate required to convert {currency} to {base_currency}",
            details={"currency": currency, "base_currency": base_currency}
        )


class EmptyBatchError(ValidationError):
    """Batch request contained no transactions."""

    def __init__(self):
        super().__init__(
            code="EMPTY_BATCH",
            message="Batch must contain at least one transaction"
        )
