"""
Matching API routes.

Match transactions to emission factors, one at a time or in batches,
and inspect tier resolution for a NACE code directly.
"""

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse
from typing import Optional
import structlog

from models.matching import (
    BatchMatchRequest,
    BatchMatchResponse,
    MatchRequest,
    MatchResult,
    TierResolution,
)
from services.factor_resolver_service import get_factor_resolver_service
from services.matching_service import get_matching_service
from exceptions import AppError, EmptyBatchError
from utils.text_utils import extract_product_hints

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/matching", tags=["Matching"])


# ===================
# EXCEPTION HANDLER
# ===================

def handle_error(e: Exception) -> JSONResponse:
    """Convert exception to JSON response."""
    if isinstance(e, AppError):
        return JSONResponse(
            status_code=e.status_code,
            content=e.to_dict()
        )
    # Unexpected error
    logger.error("unexpected_error", error=str(e), type=type(e).__name__)
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred"
            }
        }
    )


# ===================
# ROUTES
# ===================

@router.post("/match", response_model=MatchResult)
async def match_transaction(data: MatchRequest):
    """
    Match a single transaction.

    Emissions are filled in when a factor is found.

    Raises:
        422: Foreign currency without exchange_rate
        500: Database failure
    """
    try:
        service = get_matching_service()
        return service.match_with_emissions(
            data.transaction,
            company_id=data.company_id,
            exchange_rate=data.exchange_rate
        )
    except Exception as e:
        return handle_error(e)


@router.post("/batch", response_model=BatchMatchResponse)
async def batch_match(data: BatchMatchRequest):
    """
    Match many transactions sequentially.

    Per-transaction failures are reported under `errors` unless
    stop_on_error is set.

    Raises:
        422: Empty batch
    """
    try:
        if not data.transactions:
            raise EmptyBatchError()

        service = get_matching_service()
        return service.batch_match(
            data.transactions,
            company_id=data.company_id,
            stop_on_error=data.stop_on_error
        )
    except Exception as e:
        return handle_error(e)


@router.get("/resolve", response_model=TierResolution)
async def resolve_factor(
    nace_code: str = Query(..., min_length=1, description="NACE Rev. 2 code"),
    country_code: Optional[str] = Query(None, min_length=2, max_length=2, description="ISO2 country"),
    description: Optional[str] = Query(None, description="Free text for product hints")
):
    """
    Resolve the emission factor for a NACE code with tier fallback.

    A miss returns factor=null and tier=null with status 200.
    """
    try:
        service = get_factor_resolver_service()
        return service.resolve_factor(
            nace_code,
            country_code=country_code.upper() if country_code else None,
            product_hints=extract_product_hints(description)
        )
    except Exception as e:
        return handle_error(e)
