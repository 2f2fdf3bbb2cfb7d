"""
Tier resolver: picks the most specific emission factor available.

Tiers, tried in order and stopping at the first hit:
    1. Exact        NACE + country (+ product hint)      stored row
    2. Country avg  mean of NACE + country rows           synthesized
    3. EU avg       mean of NACE rows across EU members   synthesized
    4. Sector avg   global nace_emission_factors row      synthesized

Tiers 1-2 need a country. Synthesized factors live only in memory.
A miss at every tier is a TierResolution with factor=None, not an error.
"""

from typing import Optional, Sequence
import structlog

from models.emission_factor import (
    ConfidenceLevel,
    CountryAverageFactor,
    EmissionFactor,
    NACEEmissionFactor,
    RegionAverageFactor,
    Scope,
    SectorAverageFactor,
)
from models.matching import TierResolution
from services.emission_factor_repository import (
    EmissionFactorRepository,
    get_emission_factor_repository,
)

logger = structlog.get_logger(__name__)

# EU member states used for the tier 3 average
EU_COUNTRIES = (
    "AT", "BE", "BG", "HR", "CY", "CZ", "DK", "EE", "FI", "FR",
    "DE", "GR", "HU", "IE", "IT", "LV", "LT", "LU", "MT", "NL",
    "PL", "PT", "RO", "SK", "SI", "ES", "SE",
)

EU_COUNTRY_CODE = "EU"
EU_COUNTRY_NAME = "European Union (Average)"
GLOBAL_COUNTRY_CODE = "XX"
GLOBAL_COUNTRY_NAME = "Global Average"
DEFAULT_AGGREGATE_SOURCE = "EXIOBASE_AGGREGATED"


def average_intensity(factors: Sequence[EmissionFactor]) -> float:
    """Unweighted mean of kg CO2e/EUR across factors."""
    return sum(f.emission_factor_kgco2e_per_eur for f in factors) / len(factors)


class FactorResolverService:
    """
    Resolves a NACE code (plus optional country and hints) to one factor.

    Result ordering inside a tier is whatever the repository returns;
    no secondary ranking is applied.
    """

    def __init__(self, repository: Optional[EmissionFactorRepository] = None):
        self.repository = repository or get_emission_factor_repository()

    def resolve_factor(
        self,
        nace_code: str,
        country_code: Optional[str] = None,
        product_hints: Optional[Sequence[str]] = None
    ) -> TierResolution:
        """
        Resolve with tier fallback.

        Args:
            nace_code: NACE Rev. 2 code
            country_code: ISO2 country, enables tiers 1-2
            product_hints: Keywords tried in order at tier 1

        Returns:
            TierResolution (factor None and tier None when nothing exists)

        Raises:
            DatabaseError: Repository failure at any tier
        """
        if country_code:
            exact, hint = self._find_exact(nace_code, country_code, product_hints or [])
            if exact:
                product_info = f" + {hint}" if hint else ""
                return self._resolved(
                    exact, 1,
                    f"Exact match: {country_code} + NACE {nace_code}{product_info}"
                )

            country_avg = self._country_average(nace_code, country_code)
            if country_avg:
                return self._resolved(
                    country_avg, 2,
                    f"Country average for {country_code} + NACE {nace_code} (product-averaged)"
                )

        eu_avg = self._eu_average(nace_code)
        if eu_avg:
            return self._resolved(
                eu_avg, 3,
                f"EU average for NACE {nace_code} (country-averaged across EU)"
            )

        sector_avg = self._sector_average(nace_code)
        if sector_avg:
            return self._resolved(
                sector_avg, 4,
                f"Global sector average for NACE {nace_code}"
            )

        logger.info("tier_resolution_failed", nace_code=nace_code, country_code=country_code)

        return TierResolution(
            factor=None,
            tier=None,
            reasoning=f"No emission factor found for NACE {nace_code}"
        )

    # ===================
    # TIERS
    # ===================

    def _find_exact(
        self,
        nace_code: str,
        country_code: str,
        product_hints: Sequence[str]
    ) -> tuple[Optional[EmissionFactor], Optional[str]]:
        """Tier 1. Returns the factor and the hint that selected it."""
        for hint in product_hints:
            factor = self.repository.find_emission_factor(
                nace_code, country_code, product_hint=hint, scope=Scope.SCOPE3
            )
            if factor:
                return factor, hint

        factor = self.repository.find_emission_factor(
            nace_code, country_code, scope=Scope.SCOPE3
        )
        if not factor:
            logger.debug("tier1_miss", nace_code=nace_code, country_code=country_code)
        return factor, None

    def _country_average(
        self,
        nace_code: str,
        country_code: str
    ) -> Optional[CountryAverageFactor]:
        """Tier 2."""
        factors = self.repository.find_emission_factors(
            nace_code, country_code, scope=Scope.SCOPE3
        )
        if not factors:
            logger.debug("tier2_miss", nace_code=nace_code, country_code=country_code)
            return None

        template = factors[0]
        count = len(factors)

        return CountryAverageFactor(**{
            **template.model_dump(exclude={"kind"}),
            "emission_factor_kgco2e_per_eur": average_intensity(factors),
            "subcategory": None,
            "exiobase_product_code": None,
            "exiobase_product_name": f"Country Average ({count} products)",
            "confidence_level": ConfidenceLevel.MEDIUM,
            "num_averaged": count,
            "metadata": {
                **template.metadata,
                "tier": 2,
                "num_products_averaged": count,
                "fallback_reason": "No exact product match, using country average",
            },
        })

    def _eu_average(self, nace_code: str) -> Optional[RegionAverageFactor]:
        """Tier 3."""
        factors = self.repository.find_emission_factors_in_countries(
            nace_code, EU_COUNTRIES, scope=Scope.SCOPE3
        )
        if not factors:
            logger.debug("tier3_miss", nace_code=nace_code)
            return None

        template = factors[0]
        count = len(factors)

        return RegionAverageFactor(**{
            **template.model_dump(exclude={"kind"}),
            "emission_factor_kgco2e_per_eur": average_intensity(factors),
            "country_code": EU_COUNTRY_CODE,
            "country_name": EU_COUNTRY_NAME,
            "subcategory": None,
            "exiobase_product_code": None,
            "exiobase_product_name": f"EU Average ({count} factors)",
            "confidence_level": ConfidenceLevel.MEDIUM,
            "num_averaged": count,
            "metadata": {
                **template.metadata,
                "tier": 3,
                "num_factors_averaged": count,
                "fallback_reason": "No country-specific data, using EU average",
            },
        })

    def _sector_average(self, nace_code: str) -> Optional[SectorAverageFactor]:
        """Tier 4."""
        aggregate: Optional[NACEEmissionFactor] = self.repository.find_nace_emission_factor(nace_code)
        if not aggregate:
            logger.debug("tier4_miss", nace_code=nace_code)
            return None

        return SectorAverageFactor(
            id=aggregate.id,
            nace_code=aggregate.nace_code,
            category=aggregate.nace_description or f"NACE {nace_code}",
            subcategory=None,
            exiobase_product_code=None,
            exiobase_product_name="Sector Average",
            country_code=GLOBAL_COUNTRY_CODE,
            country_name=GLOBAL_COUNTRY_NAME,
            emission_factor_kgco2e_per_eur=aggregate.scope_3_factor or 0.0,
            scope=Scope.SCOPE3,
            confidence_level=ConfidenceLevel.LOW,
            data_source=aggregate.source or DEFAULT_AGGREGATE_SOURCE,
            source_year=aggregate.source_year,
            total_output_eur=aggregate.total_output_eur,
            num_countries=aggregate.num_countries,
            metadata={
                "tier": 4,
                "fallback_reason": "No detailed data available, using global sector average",
            },
        )

    def _resolved(self, factor: EmissionFactor, tier: int, reasoning: str) -> TierResolution:
        logger.debug(
            "tier_resolved",
            nace_code=factor.nace_code,
            tier=tier,
            kind=factor.kind,
            intensity=factor.emission_factor_kgco2e_per_eur
        )
        return TierResolution(factor=factor, tier=tier, reasoning=reasoning)


# Singleton instance
_factor_resolver_service: Optional[FactorResolverService] = None


def get_factor_resolver_service() -> FactorResolverService:
    """Get or create FactorResolverService instance."""
    global _factor_resolver_service
    if _factor_resolver_service is None:
        _factor_resolver_service = FactorResolverService()
    return _factor_resolver_service
