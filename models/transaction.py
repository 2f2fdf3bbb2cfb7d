"""
Transaction models.

Accounting transactions submitted for emission factor matching.
"""

from datetime import date as date_type
from typing import Optional
from pydantic import Field, field_validator

from models.base import FrozenSchema


class Transaction(FrozenSchema):
    """A purchase to match. Read-only for the matcher."""

    id: str = Field(..., min_length=1, description="Transaction identifier")
    supplier_name: str = Field(..., min_length=1, max_length=500, description="Supplier/vendor name")
    vat_number: Optional[str] = Field(None, max_length=50, description="VAT number, e.g. SE556036079301")
    account_code: Optional[str] = Field(None, max_length=50, description="Ledger account code")
    amount: float = Field(..., description="Transaction amount (any sign)")
    currency: str = Field("EUR", min_length=3, max_length=3, description="ISO 4217 currency")
    description: Optional[str] = Field(None, description="Free text, used for product hints")
    supplier_country: Optional[str] = Field(None, min_length=2, max_length=2, description="ISO2 supplier country")
    date: Optional[date_type] = Field(None, description="Transaction date")
    category: Optional[str] = Field(None, description="Category hint")

    @field_validator("currency", "supplier_country")
    @classmethod
    def uppercase_codes(cls, v: Optional[str]) -> Optional[str]:
        return v.upper() if v else v

    @field_validator("vat_number", "account_code", "description", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v
