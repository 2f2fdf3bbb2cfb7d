"""
Learning-system API routes.

Teach the matcher supplier mappings, company account mappings and
VAT registry results.
"""

from fastapi import APIRouter
import structlog

from models.mappings import (
    AccountMapping,
    AccountMappingCreate,
    SupplierMappingCreate,
    SupplierNACEMapping,
    VATCacheCreate,
    VATCacheEntry,
)
from services.mapping_service import get_mapping_service
from routes.matching import handle_error

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/mappings", tags=["Mappings"])


@router.post("/suppliers", response_model=SupplierNACEMapping, status_code=201)
async def create_supplier_mapping(data: SupplierMappingCreate):
    """
    Save a supplier → NACE mapping.

    The supplier name is normalized before storing.

    Raises:
        500: Database failure
    """
    try:
        service = get_mapping_service()
        return service.learn_supplier(data)
    except Exception as e:
        return handle_error(e)


@router.post("/accounts", response_model=AccountMapping, status_code=201)
async def create_account_mapping(data: AccountMappingCreate):
    """
    Map a company account code to a NACE code or emission factor.

    Raises:
        404: Pre-linked emission factor not found
    """
    try:
        service = get_mapping_service()
        return service.set_account_mapping(data)
    except Exception as e:
        return handle_error(e)


@router.post("/vat-cache", response_model=VATCacheEntry, status_code=201)
async def create_vat_cache_entry(data: VATCacheCreate):
    """Cache a VAT registry lookup result."""
    try:
        service = get_mapping_service()
        return service.cache_vat(data)
    except Exception as e:
        return handle_error(e)
