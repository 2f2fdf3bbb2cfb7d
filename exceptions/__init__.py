"""
Custom exceptions module.
"""

from exceptions.errors import (
    # Base exceptions
    AppError,
    NotFoundError,
    ValidationError,
    DatabaseError,

    # Emission factors
    EmissionFactorNotFoundError,

    # Matching
    ExchangeRateRequiredError,
    EmptyBatchError,
)

__all__ = [
    # Base
    "AppError",
    "NotFoundError",
    "ValidationError",
    "DatabaseError",

    # Emission factors
    "EmissionFactorNotFoundError",

    # Matching
    "ExchangeRateRequiredError",
    "EmptyBatchError",
]
