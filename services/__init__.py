"""
Business logic services.

Each service handles one domain area.
"""

from services.emission_factor_repository import (
    EmissionFactorRepository,
    SupabaseEmissionFactorRepository,
    get_emission_factor_repository,
)
from services.factor_resolver_service import FactorResolverService, get_factor_resolver_service
from services.matching_service import MatchingService, get_matching_service
from services.mapping_service import MappingService, get_mapping_service
from services.statistics_service import get_matching_statistics

__all__ = [
    "EmissionFactorRepository",
    "SupabaseEmissionFactorRepository",
    "get_emission_factor_repository",
    "FactorResolverService",
    "get_factor_resolver_service",
    "MatchingService",
    "get_matching_service",
    "MappingService",
    "get_mapping_service",
    "get_matching_statistics",
]
