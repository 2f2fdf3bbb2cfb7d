"""
Emission factor models.

A stored catalog row is an EmissionFactor (kind "exact"). Tiers 2-4
build the other variants in memory; they are never persisted. Consumers
branch on `kind` (or tier_for_factor) instead of sniffing null fields.
"""

from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union
from pydantic import Field, field_validator

from models.base import BaseSchema


class Scope(str, Enum):
    """GHG Protocol scope. SCOPE3 is the supply-chain scope."""
    SCOPE1 = "scope1"
    SCOPE2 = "scope2"
    SCOPE3 = "scope3"


class ConfidenceLevel(str, Enum):
    """Data-quality label attached to a factor."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class FactorKind(str, Enum):
    """Which resolution tier produced a factor."""
    EXACT = "exact"
    COUNTRY_AVERAGE = "country_average"
    REGION_AVERAGE = "region_average"
    SECTOR_AVERAGE = "sector_average"


FACTOR_KIND_TIERS: dict[FactorKind, int] = {
    FactorKind.EXACT: 1,
    FactorKind.COUNTRY_AVERAGE: 2,
    FactorKind.REGION_AVERAGE: 3,
    FactorKind.SECTOR_AVERAGE: 4,
}


class EmissionFactor(BaseSchema):
    """A catalog entry from the emission_factors table."""

    kind: Literal["exact"] = "exact"

    id: Optional[str] = Field(None, description="Factor UUID")
    nace_code: Optional[str] = Field(None, description="NACE Rev. 2 code, e.g. 35.11")
    category: str = Field(..., description="High-level category")
    subcategory: Optional[str] = Field(None, description="Product name")
    exiobase_product_code: Optional[str] = Field(None, description="Exiobase product code, e.g. p40.11.e")
    exiobase_product_name: Optional[str] = Field(None, description="Exiobase product name")
    country_code: Optional[str] = Field(None, description="ISO2 country code")
    country_name: Optional[str] = Field(None, description="Country name")
    emission_factor_kgco2e_per_eur: float = Field(..., ge=0, description="kg CO2e per EUR spent")
    emission_factor_kgco2e_per_unit: Optional[float] = Field(None, ge=0, description="kg CO2e per physical unit")
    physical_unit: Optional[str] = Field(None, description="Physical unit, e.g. kWh")
    scope: Optional[Scope] = Field(None, description="Emission scope")
    region: Optional[str] = Field(None, description="Region code")
    data_source: Optional[str] = Field(None, description="Source dataset")
    source_year: Optional[int] = Field(None, description="Source year")
    confidence_level: Optional[ConfidenceLevel] = Field(None, description="Data-quality label")
    total_output_eur: Optional[float] = Field(None, description="Total economic output used in aggregation")
    num_countries: Optional[int] = Field(None, ge=0, description="Countries used in aggregation")
    metadata: dict[str, Any] = Field(default_factory=dict, description="Free-form metadata")
    is_active: bool = Field(True, description="Whether the factor is usable")

    @field_validator("metadata", mode="before")
    @classmethod
    def metadata_none_to_empty(cls, v):
        return v if v is not None else {}


class CountryAverageFactor(EmissionFactor):
    """Tier 2: mean of every product factor for one NACE code in one country."""

    kind: Literal["country_average"] = "country_average"
    num_averaged: int = Field(..., ge=1, description="Rows averaged")


class RegionAverageFactor(EmissionFactor):
    """Tier 3: mean of the NACE code's factors across EU member states."""

    kind: Literal["region_average"] = "region_average"
    num_averaged: int = Field(..., ge=1, description="Rows averaged")


class SectorAverageFactor(EmissionFactor):
    """Tier 4: global sector baseline from nace_emission_factors."""

    kind: Literal["sector_average"] = "sector_average"


ResolvedFactor = Annotated[
    Union[EmissionFactor, CountryAverageFactor, RegionAverageFactor, SectorAverageFactor],
    Field(discriminator="kind"),
]


def tier_for_factor(factor: EmissionFactor) -> int:
    """Tier (1-4) a resolved factor belongs to."""
    return FACTOR_KIND_TIERS[FactorKind(factor.kind)]


class NACEEmissionFactor(BaseSchema):
    """Aggregated NACE-level row used for the tier 4 fallback."""

    id: str = Field(..., description="Row UUID")
    nace_code: str = Field(..., description="NACE Rev. 2 code")
    nace_description: Optional[str] = Field(None, description="Sector description")
    scope_1_factor: Optional[float] = Field(None, ge=0)
    scope_2_factor: Optional[float] = Field(None, ge=0)
    scope_3_factor: Optional[float] = Field(None, ge=0)
    source: Optional[str] = Field(None, description="Source dataset")
    source_year: Optional[int] = None
    confidence_level: Optional[ConfidenceLevel] = None
    total_output_eur: Optional[float] = None
    num_countries: Optional[int] = Field(None, ge=0)
    exiobase_sectors: Optional[dict[str, Any]] = None
