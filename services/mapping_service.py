"""
Mapping service for the learning system.

Writes the supplier mappings, VAT cache entries and account mappings
the matcher reads.
"""

from typing import Optional
import structlog

from config import settings
from exceptions import EmissionFactorNotFoundError
from models.mappings import (
    AccountMapping,
    AccountMappingCreate,
    SupplierMappingCreate,
    SupplierNACEMapping,
    VATCacheCreate,
    VATCacheEntry,
)
from services.emission_factor_repository import (
    EmissionFactorRepository,
    get_emission_factor_repository,
)
from utils.text_utils import country_from_vat

logger = structlog.get_logger(__name__)


class MappingService:
    """
    Learning-system writes.

    Validates input against the catalog before handing it to the repository.
    """

    def __init__(
        self,
        repository: Optional[EmissionFactorRepository] = None,
        cache_ttl_hours: Optional[int] = None
    ):
        self.repository = repository or get_emission_factor_repository()
        self.cache_ttl_hours = cache_ttl_hours or settings.vat_cache_ttl_hours

    def learn_supplier(self, data: SupplierMappingCreate) -> SupplierNACEMapping:
        """
        Save a supplier → NACE mapping.

        Raises:
            DatabaseError: If save fails
        """
        logger.info(
            "learning_supplier_mapping",
            supplier=data.supplier_name,
            nace_code=data.nace_code,
            source=data.source.value
        )

        return self.repository.save_supplier_mapping(data)

    def cache_vat(self, data: VATCacheCreate) -> VATCacheEntry:
        """
        Cache a VAT registry lookup.

        Fills country_code from the VAT prefix when missing.

        Raises:
            DatabaseError: If save fails
        """
        if not data.country_code:
            derived = country_from_vat(data.vat_number)
            if derived:
                data = data.model_copy(update={"country_code": derived})

        logger.info(
            "caching_vat_entry",
            vat_number=data.vat_number,
            nace_code=data.nace_code,
            is_valid=data.is_valid
        )

        return self.repository.save_vat_cache(data, self.cache_ttl_hours)

    def set_account_mapping(self, data: AccountMappingCreate) -> AccountMapping:
        """
        Map a company account code.

        Raises:
            EmissionFactorNotFoundError: Pre-linked factor doesn't exist
            DatabaseError: If save fails
        """
        if data.emission_factor_id:
            factor = self.repository.get_emission_factor_by_id(data.emission_factor_id)
            if not factor:
                raise EmissionFactorNotFoundError(data.emission_factor_id)

        logger.info(
            "setting_account_mapping",
            company_id=data.company_id,
            account_code=data.account_code,
            nace_code=data.nace_code,
            emission_factor_id=data.emission_factor_id
        )

        return self.repository.save_account_mapping(data)


# Singleton instance
_mapping_service: Optional[MappingService] = None


def get_mapping_service() -> MappingService:
    """Get or create MappingService instance."""
    global _mapping_service
    if _mapping_service is None:
        _mapping_service = MappingService()
    return _mapping_service
