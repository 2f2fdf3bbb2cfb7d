"""
Learning-system models.

Supplier mappings, VAT registry cache entries and company account-code
mappings. The matcher only reads them (and bumps supplier usage);
MappingService writes them.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import Field, model_validator

from models.base import BaseSchema, TimestampMixin


class MappingSource(str, Enum):
    """Provenance of a supplier → NACE mapping."""
    VAT_LOOKUP = "vat_lookup"
    MANUAL = "manual"
    AI_SUGGESTED = "ai_suggested"
    CROWD_SOURCED = "crowd_sourced"
    USER_VERIFIED = "user_verified"


# ===================
# SUPPLIER MAPPINGS
# ===================

class SupplierMappingCreate(BaseSchema):
    """Teach the matcher which NACE code a supplier belongs to."""

    supplier_name: str = Field(..., min_length=1, description="Supplier name as it appears on transactions")
    nace_code: str = Field(..., min_length=1, max_length=10, description="NACE Rev. 2 code")
    vat_number: Optional[str] = Field(None, max_length=50)
    country_code: Optional[str] = Field(None, min_length=2, max_length=2)
    confidence_score: float = Field(1.0, ge=0, le=1)
    source: MappingSource = Field(MappingSource.MANUAL)
    company_id: Optional[str] = Field(None, description="Owning company, None for shared mappings")
    verified_by: Optional[str] = None


class SupplierNACEMapping(BaseSchema, TimestampMixin):
    """Row from supplier_nace_mappings."""

    id: str
    supplier_name_normalized: str
    vat_number: Optional[str] = None
    country_code: Optional[str] = None
    nace_code: str
    confidence_score: float = Field(1.0, ge=0, le=1)
    source: Optional[MappingSource] = None
    times_used: int = Field(0, ge=0)
    verified_by: Optional[str] = None
    verified_at: Optional[datetime] = None
    company_id: Optional[str] = None


# ===================
# VAT CACHE
# ===================

class VATCacheCreate(BaseSchema):
    """Registry lookup result to cache."""

    vat_number: str = Field(..., min_length=2, max_length=50)
    country_code: Optional[str] = Field(None, min_length=2, max_length=2)
    company_name: Optional[str] = None
    nace_code: Optional[str] = Field(None, max_length=10)
    is_valid: bool = True
    validation_date: Optional[datetime] = None


class VATCacheEntry(BaseSchema, TimestampMixin):
    """Row from vat_cache."""

    id: str
    vat_number: str
    country_code: Optional[str] = None
    company_name: Optional[str] = None
    nace_code: Optional[str] = None
    is_valid: bool = False
    validation_date: Optional[datetime] = None
    cached_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None


# ===================
# ACCOUNT MAPPINGS
# ===================

class AccountMappingCreate(BaseSchema):
    """Map a company's ledger account to a NACE code or a specific factor."""

    company_id: str = Field(..., min_length=1)
    account_code: str = Field(..., min_length=1, max_length=50)
    account_name: Optional[str] = None
    nace_code: Optional[str] = Field(None, max_length=10)
    emission_factor_id: Optional[str] = None
    category: Optional[str] = None
    notes: Optional[str] = None
    created_by: Optional[str] = None

    @model_validator(mode="after")
    def require_target(self):
        if not self.nace_code and not self.emission_factor_id:
            raise ValueError("Either nace_code or emission_factor_id is required")
        return self


class AccountMapping(BaseSchema, TimestampMixin):
    """Row from emission_category_mappings."""

    id: str
    company_id: str
    account_code: str
    account_name: Optional[str] = None
    nace_code: Optional[str] = None
    emission_factor_id: Optional[str] = None
    category: Optional[str] = None
    notes: Optional[str] = None
    created_by: Optional[str] = None
