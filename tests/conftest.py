"""
Shared test fixtures.

Two database doubles:
    MockSupabaseClient      chainable query builder for the Supabase repository
    InMemoryRepository      EmissionFactorRepository for the matcher services
"""

import sys
from pathlib import Path

# Add project directory to Python path
project_dir = Path(__file__).parent.parent
sys.path.insert(0, str(project_dir))

import pytest
from datetime import datetime, timedelta, timezone
from typing import Optional, Sequence
from unittest.mock import patch

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
from models.matching import DEFAULT_MATCHER_CONFIG
from services.emission_factor_repository import EmissionFactorRepository
from utils.text_utils import normalize_supplier_name


# ===================
# MOCK SUPABASE CLIENT
# ===================

class MockSupabaseResponse:
    """Mock Supabase query response."""

    def __init__(self, data: list = None, count: int = None):
        self.data = data or []
        self.count = count if count is not None else len(self.data)


class MockSupabaseQuery:
    """Mock Supabase query builder that applies filters to table rows."""

    def __init__(self, client: "MockSupabaseClient", table: str, data: list = None):
        self._client = client
        self._table = table
        self._data = list(data or [])
        self._written = None

    def _record(self, method: str, *args):
        self._client.calls.append((self._table, method, args))

    def select(self, *args, **kwargs):
        self._record("select", *args)
        return self

    def upsert(self, data, on_conflict: str = None):
        self._record("upsert", on_conflict)
        rows = [data] if isinstance(data, dict) else data
        now = datetime.now(timezone.utc).isoformat()
        self._written = [
            {"id": "test-uuid-123", "created_at": now, "updated_at": now, **row}
            for row in rows
        ]
        return self

    def eq(self, column, value):
        self._record("eq", column, value)
        self._data = [row for row in self._data if row.get(column) == value]
        return self

    def in_(self, column, values):
        self._record("in_", column, list(values))
        self._data = [row for row in self._data if row.get(column) in values]
        return self

    def ilike(self, column, pattern: str):
        self._record("ilike", column, pattern)
        needle = pattern.strip("%").lower()
        self._data = [row for row in self._data if needle in (row.get(column) or "").lower()]
        return self

    def gt(self, column, value):
        self._record("gt", column, value)
        self._data = [
            row for row in self._data
            if row.get(column) is not None and str(row.get(column)) > str(value)
        ]
        return self

    def order(self, column, desc: bool = False, **kwargs):
        self._record("order", column, desc)
        self._data = sorted(self._data, key=lambda row: row.get(column) or 0, reverse=desc)
        return self

    def limit(self, count):
        self._record("limit", count)
        self._data = self._data[:count]
        return self

    def execute(self) -> MockSupabaseResponse:
        if self._client.error is not None:
            raise self._client.error
        if self._written is not None:
            return MockSupabaseResponse(data=self._written)
        return MockSupabaseResponse(data=self._data)


class MockSupabaseRPC:
    """Mock stored-procedure call."""

    def __init__(self, client: "MockSupabaseClient"):
        self._client = client

    def execute(self) -> MockSupabaseResponse:
        if self._client.error is not None:
            raise self._client.error
        return MockSupabaseResponse(data=[])


class MockSupabaseClient:
    """Mock Supabase client."""

    def __init__(self):
        self._tables = {}
        self.calls = []
        self.rpc_calls = []
        self.error: Optional[Exception] = None

    def set_table_data(self, table_name: str, data: list):
        """Configure mock data for a table."""
        self._tables[table_name] = data

    def fail_with(self, error: Exception):
        """Make every subsequent execute() raise."""
        self.error = error

    def table(self, name: str) -> MockSupabaseQuery:
        """Get mock table query."""
        return MockSupabaseQuery(self, name, self._tables.get(name, []))

    def rpc(self, name: str, params: dict) -> MockSupabaseRPC:
        self.rpc_calls.append((name, params))
        return MockSupabaseRPC(self)


# ===================
# IN-MEMORY REPOSITORY
# ===================

class InMemoryRepository(EmissionFactorRepository):
    """
    Repository double honoring every filter.

    Usage:
        repository.add_factor(EmissionFactorFactory.build(...))
        repository.fail_on("find_emission_factors")
    """

    def __init__(self):
        self.factors: list[EmissionFactor] = []
        self.nace_factors: dict[str, NACEEmissionFactor] = {}
        self.vat_cache: dict[str, VATCacheEntry] = {}
        self.account_mappings: dict[tuple[str, str], AccountMapping] = {}
        self.supplier_mappings: dict[str, SupplierNACEMapping] = {}
        self.usage: dict[str, int] = {}
        self.calls: list[tuple] = []
        self._failing: set[str] = set()

    # ===================
    # SETUP
    # ===================

    def add_factor(self, *factors: EmissionFactor):
        self.factors.extend(factors)

    def add_nace_factor(self, factor: NACEEmissionFactor):
        self.nace_factors[factor.nace_code] = factor

    def add_vat_entry(self, entry: VATCacheEntry):
        self.vat_cache[entry.vat_number] = entry

    def add_account_mapping(self, mapping: AccountMapping):
        self.account_mappings[(mapping.company_id, mapping.account_code)] = mapping

    def add_supplier_mapping(self, mapping: SupplierNACEMapping):
        self.supplier_mappings[mapping.supplier_name_normalized] = mapping

    def fail_on(self, *operations: str):
        self._failing.update(operations)

    def called(self, operation: str) -> list[tuple]:
        return [call for call in self.calls if call[0] == operation]

    def _track(self, operation: str, *args):
        self.calls.append((operation, *args))
        if operation in self._failing:
            raise DatabaseError("select", f"{operation} unavailable")

    def _active(self, nace_code: str, scope: Scope) -> list[EmissionFactor]:
        return [
            f for f in self.factors
            if f.is_active and f.nace_code == nace_code and f.scope == scope
        ]

    # ===================
    # REPOSITORY
    # ===================

    def find_emission_factor(self, nace_code, country_code, product_hint=None, scope=Scope.SCOPE3):
        self._track("find_emission_factor", nace_code, country_code, product_hint)
        for factor in self._active(nace_code, scope):
            if factor.country_code != country_code:
                continue
            if product_hint and product_hint.lower() not in (factor.exiobase_product_name or "").lower():
                continue
            return factor
        return None

    def find_emission_factors(self, nace_code, country_code, scope=Scope.SCOPE3):
        self._track("find_emission_factors", nace_code, country_code)
        return [f for f in self._active(nace_code, scope) if f.country_code == country_code]

    def find_emission_factors_in_countries(self, nace_code, country_codes: Sequence[str], scope=Scope.SCOPE3):
        self._track("find_emission_factors_in_countries", nace_code, tuple(country_codes))
        return [f for f in self._active(nace_code, scope) if f.country_code in country_codes]

    def get_emission_factor_by_id(self, factor_id):
        self._track("get_emission_factor_by_id", factor_id)
        return next((f for f in self.factors if f.id == factor_id), None)

    def find_nace_emission_factor(self, nace_code):
        self._track("find_nace_emission_factor", nace_code)
        return self.nace_factors.get(nace_code)

    def get_vat_cache(self, vat_number):
        self._track("get_vat_cache", vat_number)
        return self.vat_cache.get(vat_number)

    def get_account_mapping(self, company_id, account_code):
        self._track("get_account_mapping", company_id, account_code)
        return self.account_mappings.get((company_id, account_code))

    def get_supplier_mapping(self, supplier_name_normalized):
        self._track("get_supplier_mapping", supplier_name_normalized)
        return self.supplier_mappings.get(supplier_name_normalized)

    def increment_supplier_usage(self, mapping_id):
        self._track("increment_supplier_usage", mapping_id)
        self.usage[mapping_id] = self.usage.get(mapping_id, 0) + 1

    def save_vat_cache(self, entry: VATCacheCreate, ttl_hours: int) -> VATCacheEntry:
        self._track("save_vat_cache", entry.vat_number, ttl_hours)
        now = datetime.now(timezone.utc)
        saved = VATCacheEntry(
            id=f"vat-{len(self.vat_cache) + 1}",
            cached_at=now,
            expires_at=now + timedelta(hours=ttl_hours),
            **entry.model_dump()
        )
        self.vat_cache[saved.vat_number] = saved
        return saved

    def save_supplier_mapping(self, mapping: SupplierMappingCreate) -> SupplierNACEMapping:
        self._track("save_supplier_mapping", mapping.supplier_name)
        normalized = normalize_supplier_name(mapping.supplier_name)
        saved = SupplierNACEMapping(
            id=f"supplier-{len(self.supplier_mappings) + 1}",
            supplier_name_normalized=normalized,
            **mapping.model_dump(exclude={"supplier_name"})
        )
        self.supplier_mappings[normalized] = saved
        return saved

    def save_account_mapping(self, mapping: AccountMappingCreate) -> AccountMapping:
        self._track("save_account_mapping", mapping.company_id, mapping.account_code)
        saved = AccountMapping(
            id=f"account-{len(self.account_mappings) + 1}",
            **mapping.model_dump()
        )
        self.account_mappings[(saved.company_id, saved.account_code)] = saved
        return saved


# ===================
# FIXTURES
# ===================

@pytest.fixture
def mock_supabase() -> MockSupabaseClient:
    """
    Create a mock Supabase client.

    Usage:
        def test_something(mock_supabase):
            mock_supabase.set_table_data("emission_factors", [
                {"id": "1", "nace_code": "35.11", ...}
            ])
    """
    return MockSupabaseClient()


@pytest.fixture
def repository() -> InMemoryRepository:
    """Empty in-memory repository."""
    return InMemoryRepository()


@pytest.fixture
def matcher_config():
    """Documented default configuration."""
    return DEFAULT_MATCHER_CONFIG


# ===================
# API TEST CLIENT
# ===================

@pytest.fixture
def test_client():
    """
    Create FastAPI test client.

    Usage:
        def test_endpoint(test_client):
            response = test_client.get("/")
            assert response.status_code == 200
    """
    from fastapi.testclient import TestClient
    from main import app

    return TestClient(app)


@pytest.fixture
def test_client_with_repository(repository):
    """
    FastAPI test client whose services use the in-memory repository.

    Usage:
        def test_endpoint(test_client_with_repository, repository):
            repository.add_factor(...)
            response = test_client_with_repository.post("/api/matching/match", json=...)
    """
    from fastapi.testclient import TestClient
    from main import app
    from services.factor_resolver_service import FactorResolverService
    from services.mapping_service import MappingService
    from services.matching_service import MatchingService

    matching = MatchingService(repository, DEFAULT_MATCHER_CONFIG)
    resolver = FactorResolverService(repository)
    mapping = MappingService(repository, cache_ttl_hours=24)

    with patch("routes.matching.get_matching_service", return_value=matching):
        with patch("routes.matching.get_factor_resolver_service", return_value=resolver):
            with patch("routes.mappings.get_mapping_service", return_value=mapping):
                yield TestClient(app)
