"""
Matching models.

MatcherConfig is the one configuration value passed through the matcher.
MatchResult is built once per transaction and never modified.

See MatchingService for how these are produced.
"""

from enum import Enum
from typing import Any, Optional
from pydantic import Field, model_validator

from models.base import BaseSchema, FrozenSchema
from models.emission_factor import ResolvedFactor
from models.transaction import Transaction


class MatchMethod(str, Enum):
    """Strategy that produced a match."""
    VAT_LOOKUP = "vat_lookup"
    ACCOUNT_MAPPING = "account_mapping"
    SUPPLIER_MAPPING = "supplier_mapping"
    MANUAL = "manual"
    NONE = "none"


# ===================
# CONFIGURATION
# ===================

class TierConfidence(FrozenSchema):
    """Reference confidence per tier. Informational; scoring uses penalties."""
    tier1: float = Field(0.95, ge=0, le=1)
    tier2: float = Field(0.85, ge=0, le=1)
    tier3: float = Field(0.75, ge=0, le=1)
    tier4: float = Field(0.65, ge=0, le=1)


class MethodConfidence(FrozenSchema):
    """Base confidence per matching method."""
    vat_lookup: float = Field(0.95, ge=0, le=1)
    account_mapping: float = Field(0.85, ge=0, le=1)
    supplier_mapping: float = Field(0.75, ge=0, le=1)


class TierAdjustments(FrozenSchema):
    """Confidence offsets for fallback tiers. Tier 1 is always 0."""
    tier2: float = Field(-0.10, ge=-1, le=0)
    tier3: float = Field(-0.20, ge=-1, le=0)
    tier4: float = Field(-0.30, ge=-1, le=0)


class MatcherConfig(FrozenSchema):
    """Immutable matcher configuration."""

    confidence_levels: TierConfidence = Field(default_factory=TierConfidence)
    method_confidence: MethodConfidence = Field(default_factory=MethodConfidence)
    tier_adjustments: TierAdjustments = Field(default_factory=TierAdjustments)
    enable_learning: bool = Field(True, description="Increment supplier usage on match")
    cache_vat: bool = Field(True, description="Consult the VAT registry cache")
    cache_ttl_hours: int = Field(24, ge=1, description="Used by the VAT cache writer only")
    base_currency: str = Field("EUR", min_length=3, max_length=3)

    def base_confidence(self, method: MatchMethod) -> float:
        """Base confidence for a strategy; 0 for methods without one."""
        return getattr(self.method_confidence, method.value, 0.0)

    def tier_penalty(self, tier: int) -> float:
        """Confidence offset for a tier. Tier 1 never pays a penalty."""
        if tier == 1:
            return 0.0
        return getattr(self.tier_adjustments, f"tier{tier}", 0.0)

    @classmethod
    def from_settings(cls, settings) -> "MatcherConfig":
        """Build from application Settings."""
        return cls(
            confidence_levels=TierConfidence(
                tier1=settings.tier1_confidence,
                tier2=settings.tier2_confidence,
                tier3=settings.tier3_confidence,
                tier4=settings.tier4_confidence,
            ),
            method_confidence=MethodConfidence(
                vat_lookup=settings.vat_lookup_confidence,
                account_mapping=settings.account_mapping_confidence,
                supplier_mapping=settings.supplier_mapping_confidence,
            ),
            tier_adjustments=TierAdjustments(
                tier2=settings.tier2_penalty,
                tier3=settings.tier3_penalty,
                tier4=settings.tier4_penalty,
            ),
            enable_learning=settings.enable_learning,
            cache_vat=settings.cache_vat,
            cache_ttl_hours=settings.vat_cache_ttl_hours,
            base_currency=settings.base_currency,
        )


DEFAULT_MATCHER_CONFIG = MatcherConfig()


# ===================
# RESULTS
# ===================

class TierResolution(FrozenSchema):
    """Outcome of FactorResolverService.resolve_factor()."""

    factor: Optional[ResolvedFactor] = None
    tier: Optional[int] = Field(None, ge=1, le=4)
    reasoning: str

    @property
    def resolved(self) -> bool:
        return self.factor is not None


class MatchResult(FrozenSchema):
    """Emission factor assignment for one transaction."""

    emission_factor: Optional[ResolvedFactor] = None
    nace_code: Optional[str] = None
    country_code: Optional[str] = None
    product_code: Optional[str] = None
    confidence: float = Field(..., ge=0, le=1)
    tier: Optional[int] = Field(None, ge=1, le=4)
    method: MatchMethod
    reasoning: str
    fallback_applied: bool = False
    emissions: Optional[float] = Field(None, description="kg CO2e for the transaction amount")

    @model_validator(mode="after")
    def fallback_matches_tier(self):
        expected = self.tier is not None and self.tier != 1
        if self.fallback_applied != expected:
            raise ValueError("fallback_applied must be true exactly when tier is 2-4")
        return self

    @property
    def is_matched(self) -> bool:
        return self.emission_factor is not None


class MatchingStatistics(BaseSchema):
    """Tier and method distribution over a set of match results."""

    total: int
    matched: int
    unmatched: int
    tier1: int
    tier2: int
    tier3: int
    tier4: int
    match_rate: str
    avg_confidence: str
    tier1_rate: str
    tier2_rate: str
    tier3_rate: str
    tier4_rate: str
    methods: dict[str, int] = Field(default_factory=dict)


# ===================
# API SCHEMAS
# ===================

class MatchRequest(BaseSchema):
    """Match a single transaction."""

    transaction: Transaction
    company_id: Optional[str] = Field(None, description="Scopes account-code mappings")
    exchange_rate: Optional[float] = Field(None, gt=0, description="Transaction currency → base currency")


class BatchMatchRequest(BaseSchema):
    """Match many transactions sequentially."""

    transactions: list[Transaction]
    company_id: Optional[str] = None
    stop_on_error: bool = Field(False, description="Abort the batch on the first failure")


class BatchMatchResponse(BaseSchema):
    """Batch results keyed by transaction id."""

    results: dict[str, MatchResult]
    statistics: Optional[MatchingStatistics] = None
    errors: dict[str, dict[str, Any]] = Field(default_factory=dict)
