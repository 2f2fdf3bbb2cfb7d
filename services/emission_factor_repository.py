"""
Emission factor repository.

EmissionFactorRepository is everything the matcher needs from storage.
Implementations return None / [] for misses and raise DatabaseError when
the store itself fails. The matcher never turns a failure into a miss.

SupabaseEmissionFactorRepository backs it with the Supabase tables:
    emission_factors, nace_emission_factors, vat_cache,
    emission_category_mappings, supplier_nace_mappings
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Optional, Sequence, TypeVar
from pydantic import BaseModel, ValidationError as PydanticValidationError
import structlog

from config import get_supabase_client
from exceptions import DatabaseError
from models.emission_factor import EmissionFactor, NACEEmissionFactor, Scope
from models.mappings import (
    AccountMapping,
    AccountMappingCreate,
    SupplierMappingCreate,
    SupplierNACEMapping,
    VATCacheCreate,
    VATCacheEntry,
)
from utils.text_utils import normalize_supplier_name

logger = structlog.get_logger(__name__)

RowModel = TypeVar("RowModel", bound=BaseModel)


def _parse_row(model: type[RowModel], row: dict) -> RowModel:
    """Validate a stored row. A malformed row is a store failure, not a miss."""
    try:
        return model.model_validate(row)
    except PydanticValidationError as e:
        logger.error(
            "malformed_row",
            model=model.__name__,
            row_id=row.get("id"),
            error_count=e.error_count()
        )
        raise DatabaseError("parse", str(e), details={"model": model.__name__, "row_id": row.get("id")})


class EmissionFactorRepository(ABC):
    """
    Storage capability consumed by the matcher.

    Every factor query is restricted to active rows of the given scope
    (supply chain by default).
    """

    # ===================
    # FACTOR LOOKUPS
    # ===================

    @abstractmethod
    def find_emission_factor(
        self,
        nace_code: str,
        country_code: str,
        product_hint: Optional[str] = None,
        scope: Scope = Scope.SCOPE3
    ) -> Optional[EmissionFactor]:
        """First active factor for NACE + country, optionally filtered by product name substring."""

    @abstractmethod
    def find_emission_factors(
        self,
        nace_code: str,
        country_code: str,
        scope: Scope = Scope.SCOPE3
    ) -> list[EmissionFactor]:
        """All active factors for NACE + country."""

    @abstractmethod
    def find_emission_factors_in_countries(
        self,
        nace_code: str,
        country_codes: Sequence[str],
        scope: Scope = Scope.SCOPE3
    ) -> list[EmissionFactor]:
        """All active factors for NACE within a set of countries."""

    @abstractmethod
    def get_emission_factor_by_id(self, factor_id: str) -> Optional[EmissionFactor]:
        """Factor by id."""

    @abstractmethod
    def find_nace_emission_factor(self, nace_code: str) -> Optional[NACEEmissionFactor]:
        """Aggregated NACE-level row (tier 4)."""

    # ===================
    # LEARNING SYSTEM READS
    # ===================

    @abstractmethod
    def get_vat_cache(self, vat_number: str) -> Optional[VATCacheEntry]:
        """Unexpired VAT registry cache entry."""

    @abstractmethod
    def get_account_mapping(self, company_id: str, account_code: str) -> Optional[AccountMapping]:
        """Company-scoped account code mapping."""

    @abstractmethod
    def get_supplier_mapping(self, supplier_name_normalized: str) -> Optional[SupplierNACEMapping]:
        """Learned supplier → NACE mapping by normalized name."""

    @abstractmethod
    def increment_supplier_usage(self, mapping_id: str) -> None:
        """Bump times_used on a supplier mapping."""

    # ===================
    # LEARNING SYSTEM WRITES
    # ===================

    @abstractmethod
    def save_vat_cache(self, entry: VATCacheCreate, ttl_hours: int) -> VATCacheEntry:
        """Insert or refresh a VAT cache entry."""

    @abstractmethod
    def save_supplier_mapping(self, mapping: SupplierMappingCreate) -> SupplierNACEMapping:
        """Insert or update a supplier mapping."""

    @abstractmethod
    def save_account_mapping(self, mapping: AccountMappingCreate) -> AccountMapping:
        """Insert or update an account code mapping."""


class SupabaseEmissionFactorRepository(EmissionFactorRepository):
    """
    Supabase-backed repository.

    Client errors and malformed rows are logged and re-raised as DatabaseError.
    """

    def __init__(self, client=None):
        self.db = client if client is not None else get_supabase_client()
        self.factors_table = "emission_factors"
        self.nace_table = "nace_emission_factors"
        self.vat_table = "vat_cache"
        self.account_table = "emission_category_mappings"
        self.supplier_table = "supplier_nace_mappings"

    def _factor_query(self, nace_code: str, scope: Scope):
        return (
            self.db.table(self.factors_table)
            .select("*")
            .eq("nace_code", nace_code)
            .eq("scope", scope.value)
            .eq("is_active", True)
        )

    # ===================
    # FACTOR LOOKUPS
    # ===================

    def find_emission_factor(
        self,
        nace_code: str,
        country_code: str,
        product_hint: Optional[str] = None,
        scope: Scope = Scope.SCOPE3
    ) -> Optional[EmissionFactor]:
        try:
            query = self._factor_query(nace_code, scope).eq("country_code", country_code)

            if product_hint:
                query = query.ilike("exiobase_product_name", f"%{product_hint}%")

            result = query.limit(1).execute()

        except Exception as e:
            logger.error(
                "find_emission_factor_failed",
                nace_code=nace_code,
                country_code=country_code,
                product_hint=product_hint,
                error=str(e)
            )
            raise DatabaseError("select", str(e))

        if not result.data:
            return None

        return _parse_row(EmissionFactor, result.data[0])

    def find_emission_factors(
        self,
        nace_code: str,
        country_code: str,
        scope: Scope = Scope.SCOPE3
    ) -> list[EmissionFactor]:
        try:
            result = (
                self._factor_query(nace_code, scope)
                .eq("country_code", country_code)
                .execute()
            )
        except Exception as e:
            logger.error(
                "find_emission_factors_failed",
                nace_code=nace_code,
                country_code=country_code,
                error=str(e)
            )
            raise DatabaseError("select", str(e))

        return [_parse_row(EmissionFactor, row) for row in result.data or []]

    def find_emission_factors_in_countries(
        self,
        nace_code: str,
        country_codes: Sequence[str],
        scope: Scope = Scope.SCOPE3
    ) -> list[EmissionFactor]:
        try:
            result = (
                self._factor_query(nace_code, scope)
                .in_("country_code", list(country_codes))
                .execute()
            )
        except Exception as e:
            logger.error(
                "find_emission_factors_in_countries_failed",
                nace_code=nace_code,
                countries=len(country_codes),
                error=str(e)
            )
            raise DatabaseError("select", str(e))

        return [_parse_row(EmissionFactor, row) for row in result.data or []]

    def get_emission_factor_by_id(self, factor_id: str) -> Optional[EmissionFactor]:
        try:
            result = (
                self.db.table(self.factors_table)
                .select("*")
                .eq("id", factor_id)
                .limit(1)
                .execute()
            )
        except Exception as e:
            logger.error("get_emission_factor_failed", factor_id=factor_id, error=str(e))
            raise DatabaseError("select", str(e))

        if not result.data:
            return None

        return _parse_row(EmissionFactor, result.data[0])

    def find_nace_emission_factor(self, nace_code: str) -> Optional[NACEEmissionFactor]:
        try:
            result = (
                self.db.table(self.nace_table)
                .select("*")
                .eq("nace_code", nace_code)
                .limit(1)
                .execute()
            )
        except Exception as e:
            logger.error("find_nace_emission_factor_failed", nace_code=nace_code, error=str(e))
            raise DatabaseError("select", str(e))

        if not result.data:
            return None

        return _parse_row(NACEEmissionFactor, result.data[0])

    # ===================
    # LEARNING SYSTEM READS
    # ===================

    def get_vat_cache(self, vat_number: str) -> Optional[VATCacheEntry]:
        now = datetime.now(timezone.utc).isoformat()

        try:
            result = (
                self.db.table(self.vat_table)
                .select("*")
                .eq("vat_number", vat_number)
                .gt("expires_at", now)
                .limit(1)
                .execute()
            )
        except Exception as e:
            logger.error("get_vat_cache_failed", vat_number=vat_number, error=str(e))
            raise DatabaseError("select", str(e))

        if not result.data:
            return None

        return _parse_row(VATCacheEntry, result.data[0])

    def get_account_mapping(self, company_id: str, account_code: str) -> Optional[AccountMapping]:
        try:
            result = (
                self.db.table(self.account_table)
                .select("*")
                .eq("company_id", company_id)
                .eq("account_code", account_code)
                .limit(1)
                .execute()
            )
        except Exception as e:
            logger.error(
                "get_account_mapping_failed",
                company_id=company_id,
                account_code=account_code,
                error=str(e)
            )
            raise DatabaseError("select", str(e))

        if not result.data:
            return None

        return _parse_row(AccountMapping, result.data[0])

    def get_supplier_mapping(self, supplier_name_normalized: str) -> Optional[SupplierNACEMapping]:
        try:
            result = (
                self.db.table(self.supplier_table)
                .select("*")
                .eq("supplier_name_normalized", supplier_name_normalized)
                .order("times_used", desc=True)
                .limit(1)
                .execute()
            )
        except Exception as e:
            logger.error(
                "get_supplier_mapping_failed",
                supplier=supplier_name_normalized,
                error=str(e)
            )
            raise DatabaseError("select", str(e))

        if not result.data:
            return None

        return _parse_row(SupplierNACEMapping, result.data[0])

    def increment_supplier_usage(self, mapping_id: str) -> None:
        try:
            self.db.rpc("increment_supplier_usage", {"supplier_id": mapping_id}).execute()
        except Exception as e:
            logger.error("increment_supplier_usage_failed", mapping_id=mapping_id, error=str(e))
            raise DatabaseError("rpc", str(e))

        logger.debug("supplier_usage_incremented", mapping_id=mapping_id)

    # ===================
    # LEARNING SYSTEM WRITES
    # ===================

    def save_vat_cache(self, entry: VATCacheCreate, ttl_hours: int) -> VATCacheEntry:
        cached_at = datetime.now(timezone.utc)
        row = entry.model_dump(mode="json")
        row["cached_at"] = cached_at.isoformat()
        row["expires_at"] = (cached_at + timedelta(hours=ttl_hours)).isoformat()

        try:
            result = (
                self.db.table(self.vat_table)
                .upsert(row, on_conflict="vat_number")
                .execute()
            )
        except Exception as e:
            logger.error("save_vat_cache_failed", vat_number=entry.vat_number, error=str(e))
            raise DatabaseError("upsert", str(e))

        logger.info("vat_cache_saved", vat_number=entry.vat_number, ttl_hours=ttl_hours)

        return _parse_row(VATCacheEntry, result.data[0])

    def save_supplier_mapping(self, mapping: SupplierMappingCreate) -> SupplierNACEMapping:
        normalized = normalize_supplier_name(mapping.supplier_name)
        row = mapping.model_dump(mode="json", exclude={"supplier_name"})
        row["supplier_name_normalized"] = normalized

        try:
            result = (
                self.db.table(self.supplier_table)
                .upsert(row, on_conflict="supplier_name_normalized,company_id")
                .execute()
            )
        except Exception as e:
            logger.error("save_supplier_mapping_failed", supplier=normalized, error=str(e))
            raise DatabaseError("upsert", str(e))

        logger.info("supplier_mapping_saved", supplier=normalized, nace_code=mapping.nace_code)

        return _parse_row(SupplierNACEMapping, result.data[0])

    def save_account_mapping(self, mapping: AccountMappingCreate) -> AccountMapping:
        row = mapping.model_dump(mode="json")

        try:
            result = (
                self.db.table(self.account_table)
                .upsert(row, on_conflict="company_id,account_code")
                .execute()
            )
        except Exception as e:
            logger.error(
                "save_account_mapping_failed",
                company_id=mapping.company_id,
                account_code=mapping.account_code,
                error=str(e)
            )
            raise DatabaseError("upsert", str(e))

        logger.info(
            "account_mapping_saved",
            company_id=mapping.company_id,
            account_code=mapping.account_code
        )

        return _parse_row(AccountMapping, result.data[0])


# Singleton instance
_repository: Optional[EmissionFactorRepository] = None


def get_emission_factor_repository() -> EmissionFactorRepository:
    """Get or create the Supabase repository instance."""
    global _repository
    if _repository is None:
        _repository = SupabaseEmissionFactorRepository()
    return _repository
