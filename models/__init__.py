"""
Pydantic models for validation and serialization.
"""

from models.base import (
    BaseSchema,
    FrozenSchema,
    TimestampMixin,
)
from models.emission_factor import (
    Scope,
    ConfidenceLevel,
    FactorKind,
    EmissionFactor,
    CountryAverageFactor,
    RegionAverageFactor,
    SectorAverageFactor,
    ResolvedFactor,
    NACEEmissionFactor,
    tier_for_factor,
)
from models.transaction import Transaction
from models.mappings import (
    MappingSource,
    SupplierMappingCreate,
    SupplierNACEMapping,
    VATCacheCreate,
    VATCacheEntry,
    AccountMappingCreate,
    AccountMapping,
)
from models.matching import (
    MatchMethod,
    TierConfidence,
    MethodConfidence,
    TierAdjustments,
    MatcherConfig,
    DEFAULT_MATCHER_CONFIG,
    TierResolution,
    MatchResult,
    MatchingStatistics,
    MatchRequest,
    BatchMatchRequest,
    BatchMatchResponse,
)

__all__ = [
    # Base
    "BaseSchema",
    "FrozenSchema",
    "TimestampMixin",

    # Emission factors
    "Scope",
    "ConfidenceLevel",
    "FactorKind",
    "EmissionFactor",
    "CountryAverageFactor",
    "RegionAverageFactor",
    "SectorAverageFactor",
    "ResolvedFactor",
    "NACEEmissionFactor",
    "tier_for_factor",

    # Transactions
    "Transaction",

    # Learning system
    "MappingSource",
    "SupplierMappingCreate",
    "SupplierNACEMapping",
    "VATCacheCreate",
    "VATCacheEntry",
    "AccountMappingCreate",
    "AccountMapping",

    # Matching
    "MatchMethod",
    "TierConfidence",
    "MethodConfidence",
    "TierAdjustments",
    "MatcherConfig",
    "DEFAULT_MATCHER_CONFIG",
    "TierResolution",
    "MatchResult",
    "MatchingStatistics",
    "MatchRequest",
    "BatchMatchRequest",
    "BatchMatchResponse",
]
