"""
Matching service: transaction → emission factor.

Strategies run in a fixed order and the first one whose NACE code
resolves to a factor wins:
    1. VAT lookup        (VAT registry cache)
    2. Account mapping   (company-scoped ledger account)
    3. Supplier mapping  (learned supplier names)

A strategy that only yields a NACE code the resolver can't place does
not stop the chain. Repository failures are not caught here.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional, Sequence
import structlog

from config import settings
from exceptions import AppError, DatabaseError
from models.matching import (
    BatchMatchResponse,
    MatcherConfig,
    MatchMethod,
    MatchResult,
)
from models.transaction import Transaction
from services.emission_factor_repository import (
    EmissionFactorRepository,
    get_emission_factor_repository,
)
from services.factor_resolver_service import FactorResolverService
from services.statistics_service import get_matching_statistics
from utils.emissions import calculate_confidence, calculate_emissions
from utils.text_utils import (
    country_from_vat,
    extract_product_hints,
    normalize_supplier_name,
)

logger = structlog.get_logger(__name__)

UNMATCHED_REASONING = "No automatic match found. Manual assignment required."


@dataclass
class MatchContext:
    """Per-transaction state shared by the strategies."""
    transaction: Transaction
    company_id: Optional[str] = None
    country_code: Optional[str] = None
    product_hints: list[str] = field(default_factory=list)


@dataclass
class StrategyCandidate:
    """What a strategy found before tiering."""
    label: str
    nace_code: Optional[str] = None
    emission_factor_id: Optional[str] = None


# ===================
# STRATEGIES
# ===================

class MatchStrategy(ABC):
    """One way of finding a NACE code for a transaction."""

    method: MatchMethod

    def __init__(self, repository: EmissionFactorRepository, config: MatcherConfig):
        self.repository = repository
        self.config = config

    @abstractmethod
    def attempt(self, context: MatchContext) -> Optional[StrategyCandidate]:
        """Return a candidate, or None when the strategy doesn't apply."""


class VatLookupStrategy(MatchStrategy):
    """
    NACE code from the VAT registry cache.

    Also establishes the supplier country for every later strategy: the
    VAT prefix wins, the cached country is used only when the prefix is
    not recognized. A caller-supplied supplier_country beats both.
    """

    method = MatchMethod.VAT_LOOKUP

    def attempt(self, context: MatchContext) -> Optional[StrategyCandidate]:
        vat_number = context.transaction.vat_number
        if not vat_number:
            return None

        derived_country = country_from_vat(vat_number)

        cached = None
        if self.config.cache_vat:
            entry = self.repository.get_vat_cache(vat_number)
            if entry and entry.is_valid:
                cached = entry

        country_code = derived_country or (cached.country_code if cached else None)
        if not context.country_code and country_code:
            context.country_code = country_code

        if not cached or not cached.nace_code:
            logger.debug(
                "vat_lookup_no_nace",
                vat_number=vat_number,
                country_code=country_code,
                cached=cached is not None
            )
            return None

        return StrategyCandidate(label="VAT lookup", nace_code=cached.nace_code)


class AccountMappingStrategy(MatchStrategy):
    """Company-scoped account code → NACE code or pre-linked factor."""

    method = MatchMethod.ACCOUNT_MAPPING

    def attempt(self, context: MatchContext) -> Optional[StrategyCandidate]:
        account_code = context.transaction.account_code
        if not account_code or not context.company_id:
            return None

        mapping = self.repository.get_account_mapping(context.company_id, account_code)
        if not mapping:
            logger.debug(
                "account_mapping_not_found",
                company_id=context.company_id,
                account_code=account_code
            )
            return None

        return StrategyCandidate(
            label=f"Account code {account_code}",
            nace_code=mapping.nace_code,
            emission_factor_id=mapping.emission_factor_id
        )


class SupplierMappingStrategy(MatchStrategy):
    """Learned supplier name → NACE code."""

    method = MatchMethod.SUPPLIER_MAPPING

    def attempt(self, context: MatchContext) -> Optional[StrategyCandidate]:
        normalized = normalize_supplier_name(context.transaction.supplier_name)
        if not normalized:
            return None

        mapping = self.repository.get_supplier_mapping(normalized)
        if not mapping:
            logger.debug("supplier_mapping_not_found", supplier=normalized)
            return None

        if self.config.enable_learning:
            self._record_usage(mapping.id)

        return StrategyCandidate(label="Supplier name", nace_code=mapping.nace_code)

    def _record_usage(self, mapping_id: str) -> None:
        # Usage counting is best-effort; the match proceeds without it.
        try:
            self.repository.increment_supplier_usage(mapping_id)
        except DatabaseError as e:
            logger.warning(
                "supplier_usage_increment_failed",
                mapping_id=mapping_id,
                error=e.message
            )


# ===================
# SERVICE
# ===================

class MatchingService:
    """
    Matches transactions to emission factors.

    Usage:
        service = MatchingService(repository, MatcherConfig())
        result = service.match_transaction(transaction, company_id="acme")
    """

    def __init__(
        self,
        repository: Optional[EmissionFactorRepository] = None,
        config: Optional[MatcherConfig] = None
    ):
        self.repository = repository or get_emission_factor_repository()
        self.config = config or MatcherConfig.from_settings(settings)
        self.resolver = FactorResolverService(self.repository)
        self.strategies: Sequence[MatchStrategy] = (
            VatLookupStrategy(self.repository, self.config),
            AccountMappingStrategy(self.repository, self.config),
            SupplierMappingStrategy(self.repository, self.config),
        )

    def match_transaction(
        self,
        transaction: Transaction,
        company_id: Optional[str] = None
    ) -> MatchResult:
        """
        Match one transaction.

        Args:
            transaction: Transaction to match (not modified)
            company_id: Scopes account code mappings

        Returns:
            MatchResult; method NONE when no strategy resolved

        Raises:
            DatabaseError: Repository failure during any lookup
        """
        context = MatchContext(
            transaction=transaction,
            company_id=company_id,
            country_code=transaction.supplier_country,
            product_hints=extract_product_hints(transaction.description),
        )

        for strategy in self.strategies:
            candidate = strategy.attempt(context)
            if candidate is None:
                continue

            result = self._resolve_candidate(strategy.method, candidate, context)
            if result is not None:
                logger.info(
                    "transaction_matched",
                    transaction_id=transaction.id,
                    method=result.method.value,
                    tier=result.tier,
                    nace_code=result.nace_code,
                    confidence=result.confidence
                )
                return result

            logger.debug(
                "strategy_unresolved",
                transaction_id=transaction.id,
                method=strategy.method.value,
                nace_code=candidate.nace_code
            )

        logger.info(
            "transaction_unmatched",
            transaction_id=transaction.id,
            supplier=transaction.supplier_name
        )

        return MatchResult(
            emission_factor=None,
            nace_code=None,
            country_code=None,
            product_code=None,
            confidence=0.0,
            tier=None,
            method=MatchMethod.NONE,
            reasoning=UNMATCHED_REASONING,
            fallback_applied=False,
        )

    def match_with_emissions(
        self,
        transaction: Transaction,
        company_id: Optional[str] = None,
        exchange_rate: Optional[float] = None
    ) -> MatchResult:
        """
        Match and compute kg CO2e for the transaction amount.

        Raises:
            ExchangeRateRequiredError: Foreign currency without a rate
            DatabaseError: Repository failure
        """
        result = self.match_transaction(transaction, company_id)
        if not result.is_matched:
            return result

        emissions = calculate_emissions(
            transaction.amount,
            result.emission_factor.emission_factor_kgco2e_per_eur,
            currency=transaction.currency,
            exchange_rate=exchange_rate,
            base_currency=self.config.base_currency
        )

        return result.model_copy(update={"emissions": emissions})

    def batch_match(
        self,
        transactions: Sequence[Transaction],
        company_id: Optional[str] = None,
        stop_on_error: bool = False
    ) -> BatchMatchResponse:
        """
        Match transactions one after another.

        A failing transaction is recorded under errors and the loop moves
        on, unless stop_on_error is set.

        Args:
            transactions: Transactions to match
            company_id: Scopes account code mappings
            stop_on_error: Re-raise the first failure

        Returns:
            BatchMatchResponse (statistics is None when every transaction failed)
        """
        results: dict[str, MatchResult] = {}
        errors: dict[str, dict] = {}

        logger.info("batch_match_started", count=len(transactions), company_id=company_id)

        for transaction in transactions:
            try:
                results[transaction.id] = self.match_transaction(transaction, company_id)
            except AppError as e:
                logger.error(
                    "batch_match_transaction_failed",
                    transaction_id=transaction.id,
                    error=e.message,
                    code=e.code
                )
                if stop_on_error:
                    raise
                errors[transaction.id] = e.to_dict()["error"]

        statistics = get_matching_statistics(results) if results else None

        logger.info(
            "batch_match_complete",
            count=len(transactions),
            matched=statistics.matched if statistics else 0,
            failed=len(errors)
        )

        return BatchMatchResponse(results=results, statistics=statistics, errors=errors)

    # ===================
    # HELPERS
    # ===================

    def _resolve_candidate(
        self,
        method: MatchMethod,
        candidate: StrategyCandidate,
        context: MatchContext
    ) -> Optional[MatchResult]:
        """Turn a strategy candidate into a result, or None if it can't be placed."""
        if candidate.emission_factor_id:
            factor = self.repository.get_emission_factor_by_id(candidate.emission_factor_id)
            if factor:
                return MatchResult(
                    emission_factor=factor,
                    nace_code=candidate.nace_code or factor.nace_code,
                    country_code=factor.country_code,
                    product_code=factor.exiobase_product_code,
                    confidence=calculate_confidence(method, 1, self.config),
                    tier=1,
                    method=method,
                    reasoning=f"{candidate.label} → Pre-mapped emission factor",
                    fallback_applied=False,
                )
            logger.warning(
                "premapped_factor_missing",
                emission_factor_id=candidate.emission_factor_id,
                method=method.value
            )

        if not candidate.nace_code:
            return None

        resolution = self.resolver.resolve_factor(
            candidate.nace_code,
            context.country_code,
            context.product_hints
        )
        if not resolution.resolved:
            return None

        return MatchResult(
            emission_factor=resolution.factor,
            nace_code=candidate.nace_code,
            country_code=context.country_code,
            product_code=resolution.factor.exiobase_product_code,
            confidence=calculate_confidence(method, resolution.tier, self.config),
            tier=resolution.tier,
            method=method,
            reasoning=f"{candidate.label} → {resolution.reasoning}",
            fallback_applied=resolution.tier != 1,
        )


# Singleton instance
_matching_service: Optional[MatchingService] = None


def get_matching_service() -> MatchingService:
    """Get or create MatchingService instance."""
    global _matching_service
    if _matching_service is None:
        _matching_service = MatchingService()
    return _matching_service
